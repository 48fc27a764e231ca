"""Tests for the Task entity and quick-add parsing."""

from datetime import datetime, timedelta, date, timezone

import pytest

from domain import (
    Task, ListName, FixedClock, parse_task_input, end_of_day,
    round_grade, calculate_grade
)
from monitoring import ParseError


class TestParseTaskInput:
    def test_quick_add_splits_title_tags_and_due(self, clock):
        task = parse_task_input("Buy milk +shopping +1d", ListName.LOCAL, clock)

        assert task.title == "Buy milk"
        assert task.tags == ["shopping"]
        assert task.due_date == end_of_day(date(2024, 6, 13))
        assert task.completed is False
        assert task.list_name is ListName.LOCAL
        assert task.created_at == task.updated_at == clock.now()

    def test_tags_are_lowercased_and_deduplicated(self, clock):
        task = parse_task_input("Call mom +Family +urgent +family", ListName.LOCAL, clock)
        assert task.title == "Call mom"
        assert task.tags == ["family", "urgent"]
        assert task.due_date is None

    def test_last_due_token_wins(self, clock):
        task = parse_task_input("Report +today +tomorrow", ListName.LOCAL, clock)
        assert task.due_date == end_of_day(date(2024, 6, 13))
        assert task.tags == []

    def test_lone_plus_is_part_of_the_title(self, clock):
        task = parse_task_input("a + b", "remote", clock)
        assert task.title == "a + b"
        assert task.is_remote

    def test_input_without_title_is_rejected(self, clock):
        with pytest.raises(ParseError):
            parse_task_input("+shopping +1d", ListName.LOCAL, clock)

    def test_new_tasks_get_distinct_ids(self, clock):
        first = parse_task_input("one", ListName.LOCAL, clock)
        second = parse_task_input("two", ListName.LOCAL, clock)
        assert first.id != second.id


class TestTaskInvariants:
    def test_empty_title_is_rejected(self, clock):
        with pytest.raises(ParseError):
            Task.new("   ", ListName.LOCAL, clock)

    def test_completion_toggle_sets_and_clears_completed_at(self, clock):
        task = Task.new("Write report", ListName.LOCAL, clock)

        clock.advance(minutes=5)
        task.toggle_complete(clock.now())
        assert task.completed is True
        assert task.completed_at == clock.now()
        assert task.updated_at == clock.now()

        clock.advance(minutes=5)
        task.toggle_complete(clock.now())
        assert task.completed is False
        assert task.completed_at is None
        assert task.updated_at == clock.now()

    def test_updated_at_never_moves_backwards(self, clock):
        task = Task.new("Write report", ListName.LOCAL, clock)
        later = clock.advance(hours=1)
        task.set_title("Write the report", later)

        task.add_tag("work", later - timedelta(minutes=30))
        assert task.updated_at == later
        assert task.updated_at >= task.created_at

    def test_constructor_repairs_completion_fields(self, clock):
        now = clock.now()
        done = Task(id="a", title="x", created_at=now, updated_at=now, completed=True)
        assert done.completed_at == now

        open_task = Task(id="b", title="x", created_at=now, updated_at=now,
                         completed=False, completed_at=now)
        assert open_task.completed_at is None

    def test_blank_note_is_dropped(self, clock):
        task = Task.new("x", ListName.LOCAL, clock)
        task.set_note("   ", clock.now())
        assert task.note is None
        assert not task.has_note
        task.set_note("details", clock.now())
        assert task.has_note

    def test_remove_tag(self, clock):
        task = parse_task_input("x +a +b", ListName.LOCAL, clock)
        task.remove_tag("A", clock.now())
        assert task.tags == ["b"]

    def test_copy_does_not_share_tags(self, clock):
        task = parse_task_input("x +a", ListName.LOCAL, clock)
        duplicate = task.copy()
        duplicate.add_tag("b", clock.now())
        assert task.tags == ["a"]


class TestArchiveRule:
    def test_should_archive_only_after_24_hours(self, clock):
        task = Task.new("x", ListName.LOCAL, clock)
        task.complete(clock.now())

        assert not task.should_archive(clock.now() + timedelta(hours=23))
        assert not task.should_archive(clock.now() + timedelta(hours=24))
        assert task.should_archive(clock.now() + timedelta(hours=24, seconds=1))

    def test_incomplete_task_never_archives(self, clock):
        task = Task.new("x", ListName.LOCAL, clock)
        assert not task.should_archive(clock.now() + timedelta(days=30))


class TestDueHelpers:
    def test_overdue_and_due_on(self, clock):
        task = parse_task_input("x +today", ListName.LOCAL, clock)
        assert task.is_due_on(date(2024, 6, 12))
        assert not task.is_overdue(clock.now())
        assert task.is_overdue(clock.now() + timedelta(days=1))

        task.complete(clock.now())
        assert not task.is_overdue(clock.now() + timedelta(days=1))

    def test_due_string(self, clock):
        now = clock.now()
        assert parse_task_input("x +today", ListName.LOCAL, clock).due_string(now) == "Today"
        assert parse_task_input("x +tomorrow", ListName.LOCAL, clock).due_string(now) == "Tomorrow"
        assert parse_task_input("x +2024-06-15", ListName.LOCAL, clock).due_string(now) == "Sat"
        assert parse_task_input("x +2024-07-20", ListName.LOCAL, clock).due_string(now) == "20 Jul"
        assert Task.new("x", ListName.LOCAL, clock).due_string(now) == ""


class TestSerialization:
    def test_dict_round_trip(self, clock):
        task = parse_task_input("Buy milk +shopping +1d", ListName.REMOTE, clock)
        task.set_note("two litres", clock.now())
        task.complete(clock.advance(minutes=1))

        restored = Task.from_dict(task.to_dict())
        assert restored == task

    def test_from_dict_ignores_unknown_keys_and_accepts_legacy_list(self):
        task = Task.from_dict({
            'id': 'abc',
            'title': 'Legacy',
            'created_at': '2024-06-01T08:00:00Z',
            'list_name': 'radicale',
            'priority': 3,
        })
        assert task.list_name is ListName.REMOTE
        assert task.updated_at == task.created_at
        assert task.tags == []
        assert task.created_at == datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize('data', [
        {'title': 'no id', 'created_at': '2024-06-01T08:00:00Z'},
        {'id': 'x', 'title': 'no created'},
        {'id': 'x', 'title': '', 'created_at': '2024-06-01T08:00:00Z'},
        {'id': 'x', 'title': 't', 'created_at': 'yesterday'},
        {'id': 'x', 'title': 't', 'created_at': '2024-06-01T08:00:00Z', 'list_name': 'cloud'},
        {'id': 'x', 'title': 42, 'created_at': '2024-06-01T08:00:00Z'},
        {'id': 'x', 'title': 't', 'created_at': '2024-06-01T08:00:00Z', 'note': ['x']},
        {'id': 'x', 'title': 't', 'created_at': '2024-06-01T08:00:00Z', 'tags': 'abc'},
        {'id': 'x', 'title': 't', 'created_at': '2024-06-01T08:00:00Z', 'tags': ['ok', 7]},
        {'id': 'x', 'title': 't', 'created_at': '2024-06-01T08:00:00Z', 'completed': 'maybe'},
    ])
    def test_from_dict_rejects_bad_entries(self, data):
        with pytest.raises(ParseError):
            Task.from_dict(data)

    @pytest.mark.parametrize('value, expected', [
        (True, True), (False, False), ('true', True), ('false', False), ('FALSE', False), (1, True), (0, False),
    ])
    def test_from_dict_reads_completion_flag_strictly(self, value, expected):
        task = Task.from_dict({
            'id': 'x',
            'title': 't',
            'created_at': '2024-06-01T08:00:00Z',
            'completed': value,
        })
        assert task.completed is expected
        assert (task.completed_at is not None) is expected

    def test_list_name_parse(self):
        assert ListName.parse('Remote') is ListName.REMOTE
        assert ListName.parse(ListName.LOCAL) is ListName.LOCAL
        with pytest.raises(ParseError):
            ListName.parse('elsewhere')


class TestGrades:
    @pytest.mark.parametrize('value, expected', [
        (4.1, 4.0),
        (4.125, 4.25),
        (4.2, 4.25),
        (5.875, 6.0),
        (0.3, 1.0),
        (7.2, 6.0),
    ])
    def test_round_grade(self, value, expected):
        assert round_grade(value) == expected

    def test_calculate_grade(self):
        assert calculate_grade(20, 40) == 3.5
        assert calculate_grade(20, 40, gifted_points=8) == 4.25
        assert calculate_grade(40, 40) == 6.0
        assert calculate_grade(5, 4, gifted_points=4) == 1.0
