"""Tests for the command line front end."""

import json

import pytest

import main
from config import Config


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.setattr(Config, 'setup_logging', lambda self: None)
    path = tmp_path / 'cbratasks.json'
    path.write_text(json.dumps({'storage': {'data_dir': str(tmp_path / 'data')}}), encoding='utf-8')
    return str(path)


def run(config_file, *args):
    return main.main(['--config', config_file, *args])


def test_add_list_done_archive(config_file, capsys):
    assert run(config_file, 'add', 'Buy', 'milk', '+shopping', '+today') == 0
    added = capsys.readouterr().out
    assert '[ ] Buy milk' in added
    assert '+shopping' in added
    assert '(Today)' in added

    assert run(config_file, 'today') == 0
    assert 'Buy milk' in capsys.readouterr().out

    assert run(config_file, 'list', 'bym') == 0
    task_id = capsys.readouterr().out.split()[-1]

    assert run(config_file, 'done', task_id) == 0
    assert '[x] Buy milk' in capsys.readouterr().out

    assert run(config_file, 'archive') == 0
    assert 'Archived 1 tasks' in capsys.readouterr().out

    assert run(config_file, 'list') == 0
    assert capsys.readouterr().out == ''

    assert run(config_file, 'archived') == 0
    assert '[x] Buy milk' in capsys.readouterr().out


def test_add_with_options(config_file, capsys):
    assert run(config_file, 'add', 'Report', '--due', '2030-01-15', '--tag', 'Work', '--note', 'draft') == 0
    out = capsys.readouterr().out
    assert '+work' in out
    assert '(15 Jan)' in out


def test_errors_are_reported(config_file, capsys):
    assert run(config_file, 'add', 'x', '--due', 'someday') == 1
    assert 'Invalid due date' in capsys.readouterr().err

    assert run(config_file, 'sync') == 1
    assert 'Sync is not enabled' in capsys.readouterr().err


def test_archived_is_empty_without_completed_tasks(config_file, capsys):
    assert run(config_file, 'add', 'Open', 'task') == 0
    capsys.readouterr()
    assert run(config_file, 'archived') == 0
    assert capsys.readouterr().out == ''


def test_out_of_range_due_date_is_an_error(config_file, capsys):
    assert run(config_file, 'add', 'x', '--due', '+9999999999d') == 1
    assert 'Invalid due date' in capsys.readouterr().err
