"""Tests for the task store."""

import json
import threading

import pytest

from application import TaskStore
from domain import Task, ListName
from infrastructure import JsonFileRepository
from monitoring import (
    ConfigurationError, RemoteStatusError, TaskNotFoundError, TaskStateError
)


@pytest.fixture
def store(local_config, clock):
    return TaskStore(local_config, clock=clock)


def reload(config, clock):
    return TaskStore(config, clock=clock)


class TestLocalOperations:
    def test_starts_empty(self, store, data_dir):
        assert store.all_tasks() == []
        assert store.archived_tasks() == []
        assert not store.is_sync_enabled()
        assert not data_dir.exists()

    def test_add_persists(self, store, local_config, clock):
        task = store.add_from_input("Buy milk +shopping +1d")

        assert [t.id for t in store.all_tasks()] == [task.id]
        assert reload(local_config, clock).all_tasks() == [task]

    def test_create_uses_default_list(self, store, clock):
        task = store.create("Write report", tags=["Work"], due="tomorrow", note="draft first")
        assert task.list_name is ListName.LOCAL
        assert task.tags == ["work"]
        assert task.note == "draft first"
        assert task.due_date is not None

    def test_duplicate_id_is_rejected(self, store, clock):
        task = Task.new("x", ListName.LOCAL, clock)
        store.add(task)
        with pytest.raises(TaskStateError):
            store.add(task)

    def test_unknown_ids(self, store):
        assert store.get("missing") is None
        with pytest.raises(TaskNotFoundError):
            store.toggle_complete("missing")
        with pytest.raises(TaskNotFoundError):
            store.delete("missing")
        with pytest.raises(TaskNotFoundError):
            store.archive("missing")

    def test_readers_get_copies(self, store):
        task = store.add_from_input("Buy milk +shopping")

        listed = store.all_tasks()[0]
        listed.add_tag("changed", listed.updated_at)
        listed.title = "changed"

        stored = store.get(task.id)
        assert stored.title == "Buy milk"
        assert stored.tags == ["shopping"]

    def test_toggle_complete(self, store, clock):
        task = store.add_from_input("Write report")

        clock.advance(minutes=5)
        done = store.toggle_complete(task.id)
        assert done.completed and done.completed_at == clock.now()
        assert done.updated_at == clock.now()

        clock.advance(minutes=5)
        undone = store.toggle_complete(task.id)
        assert not undone.completed and undone.completed_at is None

    def test_update(self, store, clock):
        task = store.add_from_input("Draft")
        changed = store.get(task.id)
        changed.set_title("Final", changed.updated_at)
        changed.created_at = clock.now().replace(year=2000)

        clock.advance(minutes=1)
        updated = store.update(changed)

        assert updated.title == "Final"
        assert updated.created_at == task.created_at
        assert updated.updated_at == clock.now()
        with pytest.raises(TaskNotFoundError):
            store.update(Task.new("ghost", ListName.LOCAL, clock))

    def test_delete(self, store, local_config, clock):
        keep = store.add_from_input("keep")
        gone = store.add_from_input("gone")

        assert store.delete(gone.id).title == "gone"
        assert [t.id for t in reload(local_config, clock).all_tasks()] == [keep.id]

    def test_search_and_due_today(self, store):
        store.add_from_input("Buy milk +today")
        store.add_from_input("Book flights +nextweek")
        store.add_from_input("Call mom")

        assert [t.title for t in store.search("bk")] == ["Buy milk", "Book flights"]
        assert [t.title for t in store.due_today()] == ["Buy milk"]

    def test_sync_requires_configuration(self, store):
        with pytest.raises(ConfigurationError):
            store.sync()


class TestArchive:
    def test_archive_requires_completion(self, store):
        task = store.add_from_input("x")
        with pytest.raises(TaskStateError):
            store.archive(task.id)

    def test_archive_moves_task(self, store, local_config, clock):
        task = store.add_from_input("x")
        store.toggle_complete(task.id)

        archived = store.archive(task.id)

        assert archived.archived
        assert store.all_tasks() == []
        assert [t.id for t in store.archived_tasks()] == [task.id]
        restored = reload(local_config, clock)
        assert restored.all_tasks() == []
        assert restored.archived_tasks()[0].archived

    def test_archive_all_completed(self, store):
        first = store.add_from_input("one")
        store.add_from_input("two")
        third = store.add_from_input("three")
        store.toggle_complete(first.id)
        store.toggle_complete(third.id)

        assert store.archive_all_completed() == 2
        assert [t.title for t in store.all_tasks()] == ["two"]
        assert {t.id for t in store.archived_tasks()} == {first.id, third.id}

    def test_auto_archive_after_24_hours(self, store, local_config, clock):
        task = store.add_from_input("x")
        store.toggle_complete(task.id)

        clock.advance(hours=24)
        assert [t.id for t in reload(local_config, clock).all_tasks()] == [task.id]

        clock.advance(seconds=1)
        restored = reload(local_config, clock)
        assert restored.all_tasks() == []
        assert [t.id for t in restored.archived_tasks()] == [task.id]
        assert [t.id for t in reload(local_config, clock).archived_tasks()] == [task.id]


class TestLoadInvariants:
    def test_archived_copy_wins_over_active_copy(self, local_config, data_dir, clock):
        task = Task.new("both", ListName.LOCAL, clock)
        other = Task.new("other", ListName.LOCAL, clock)
        JsonFileRepository(data_dir).save([task, other], [task])

        store = reload(local_config, clock)

        assert [t.id for t in store.all_tasks()] == [other.id]
        assert [t.id for t in store.archived_tasks()] == [task.id]

    def test_duplicate_ids_collapse(self, local_config, data_dir, clock):
        task = Task.new("dup", ListName.LOCAL, clock)
        data_dir.mkdir(parents=True)
        (data_dir / 'tasks.json').write_text(
            json.dumps([task.to_dict(), task.to_dict()]), encoding='utf-8'
        )

        assert len(reload(local_config, clock).all_tasks()) == 1


class TestRemoteReflection:
    @pytest.fixture
    def remote_store(self, sync_config, clock):
        return TaskStore(sync_config, clock=clock)

    def test_add_pushes_remote_task(self, remote_store, caldav_server):
        task = remote_store.add_from_input("Buy milk +shopping")

        assert task.list_name is ListName.REMOTE
        assert caldav_server.task_ids() == {task.id}
        assert caldav_server.methods()[:3] == ['PROPFIND', 'MKCALENDAR', 'PUT']

    def test_local_tasks_never_touch_the_server(self, remote_store, caldav_server):
        task = remote_store.create("Private", list_name='local')
        remote_store.toggle_complete(task.id)
        remote_store.delete(task.id)
        assert caldav_server.requests == []

    def test_failed_push_keeps_local_change(self, remote_store, sync_config, caldav_server, clock):
        task = Task.new("Unlucky", ListName.REMOTE, clock)
        caldav_server.fail_put.add(task.id)

        with pytest.raises(RemoteStatusError):
            remote_store.add(task)

        assert remote_store.get(task.id) is not None
        assert [t.id for t in reload(sync_config, clock).all_tasks()] == [task.id]

    def test_toggle_pushes_new_state(self, remote_store, caldav_server, clock):
        task = remote_store.add_from_input("Buy milk")
        remote_store.toggle_complete(task.id)

        assert 'STATUS:COMPLETED' in caldav_server.resources['cbratasks'][f'{task.id}.ics']

    def test_remote_delete_failure_is_a_warning(self, remote_store, caldav_server):
        task = remote_store.add_from_input("Buy milk")
        caldav_server.fail_delete.add(task.id)

        remote_store.delete(task.id)

        assert remote_store.get(task.id) is None
        assert caldav_server.task_ids() == {task.id}
        assert remote_store.error_handler.get_error_stats()['total_errors'] == 1

    def test_remote_delete(self, remote_store, caldav_server):
        task = remote_store.add_from_input("Buy milk")
        remote_store.delete(task.id)
        assert caldav_server.task_ids() == set()


def test_concurrent_writers(store, local_config, clock):
    def worker(n):
        for i in range(10):
            store.add_from_input(f"task {n}-{i}")
            store.all_tasks()

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(store.all_tasks()) == 50
    assert len(reload(local_config, clock).all_tasks()) == 50
