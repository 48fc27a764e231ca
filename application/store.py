"""Task store: owns the active and archive lists and reconciles them with CalDAV."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Optional, Union

from config import Config
from domain import (
    Task, Clock, SystemClock, TaskRepository, RemoteTaskGateway,
    parse_due_date, parse_task_input
)
from infrastructure import CalDAVClient, JsonFileRepository
from monitoring import (
    ConfigurationError, NetworkError, TaskNotFoundError, TaskStateError,
    RemoteSyncWarning, ErrorHandler
)
from .locks import ReadWriteLock
from . import query


@dataclass
class SyncResult:
    """Outcome of a reconciliation run."""
    pulled: int = 0
    pushed: int = 0
    kept_local: int = 0
    warnings: List[RemoteSyncWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings


def _unique(tasks: Iterable[Task], logger: logging.Logger, source: str) -> List[Task]:
    seen = set()
    result = []
    for task in tasks:
        if task.id in seen:
            logger.warning(f"Dropping duplicate task {task.id} from {source}")
            continue
        seen.add(task.id)
        result.append(task)
    return result


class TaskStore:
    """Thread-safe store for the active and archive lists.

    Every write follows the same order: mutate memory, persist both files,
    then reflect the change on the CalDAV collection when the task belongs
    to the remote list and sync is enabled. Remote failures never undo the
    local change. Readers always receive copies.
    """

    def __init__(
        self,
        config: Config,
        repository: Optional[TaskRepository] = None,
        remote: Optional[RemoteTaskGateway] = None,
        clock: Optional[Clock] = None
    ):
        self.config = config
        self.clock = clock or SystemClock()
        self.repository = repository or JsonFileRepository(config.storage.data_dir)
        self.remote = remote
        if self.remote is None and config.sync.enabled:
            self.remote = CalDAVClient.from_config(config.sync, clock=self.clock)

        self.logger = logging.getLogger(__name__)
        self.error_handler = ErrorHandler(self.logger)
        self._lock = ReadWriteLock()
        self._tasks: List[Task] = []
        self._archived: List[Task] = []

        self._load()
        self._archive_old_tasks()

    # Loading

    def _load(self) -> None:
        with self._lock.write_locked():
            archived = _unique(self.repository.load_archive(), self.logger, 'archive')
            archived_ids = {task.id for task in archived}

            active = []
            for task in _unique(self.repository.load_active(), self.logger, 'active list'):
                if task.id in archived_ids:
                    self.logger.warning(f"Task {task.id} is both active and archived, keeping the archived copy")
                    continue
                active.append(task)

            self._tasks = active
            self._archived = archived
            self.logger.info(f"Loaded {len(active)} active and {len(archived)} archived tasks")

    def _archive_old_tasks(self) -> int:
        """Move tasks completed more than 24 hours ago into the archive."""
        with self._lock.write_locked():
            now = self.clock.now()
            active = []
            moved = 0
            for task in self._tasks:
                if task.should_archive(now):
                    task.archived = True
                    self._archived.append(task)
                    moved += 1
                else:
                    active.append(task)

            if moved:
                self._tasks = active
                self._persist()
                self.logger.info(f"Auto-archived {moved} completed tasks")
            return moved

    # Internal helpers (callers hold the write lock)

    def _persist(self) -> None:
        self.repository.save(self._tasks, self._archived)

    def _index_of(self, task_id: str) -> int:
        for index, task in enumerate(self._tasks):
            if task.id == task_id:
                return index
        raise TaskNotFoundError(task_id)

    def _reflects(self, task: Task) -> bool:
        return self.remote is not None and task.is_remote

    def _push(self, task: Task, operation: str) -> None:
        if not self._reflects(task):
            return
        try:
            self.remote.put_task(task)
        except NetworkError as e:
            self.error_handler.handle_error(e, operation, {'task_id': task.id})
            raise

    # Reads

    def is_sync_enabled(self) -> bool:
        return self.remote is not None

    def all_tasks(self) -> List[Task]:
        """Active tasks in canonical order."""
        with self._lock.read_locked():
            return [task.copy() for task in query.sort_tasks(self._tasks)]

    def due_today(self) -> List[Task]:
        """Incomplete active tasks due today."""
        with self._lock.read_locked():
            return [task.copy() for task in query.due_today(self._tasks, self.clock.now())]

    def get(self, task_id: str) -> Optional[Task]:
        with self._lock.read_locked():
            for task in self._tasks:
                if task.id == task_id:
                    return task.copy()
        return None

    def archived_tasks(self) -> List[Task]:
        with self._lock.read_locked():
            return [task.copy() for task in self._archived]

    def search(self, text: str) -> List[Task]:
        """Fuzzy title search over the active list."""
        with self._lock.read_locked():
            return [task.copy() for task in query.search(self._tasks, text)]

    # Writes

    def add(self, task: Task) -> Task:
        """Append a new task, persist it and push it when it belongs to the remote list."""
        with self._lock.write_locked():
            if any(t.id == task.id for t in self._tasks) or any(t.id == task.id for t in self._archived):
                raise TaskStateError(f"Task {task.id} already exists", task.id)

            stored = task.copy()
            stored.archived = False
            self._tasks.append(stored)
            self._persist()

            if self._reflects(stored):
                try:
                    self.remote.ensure_collection()
                    self.remote.put_task(stored)
                except NetworkError as e:
                    self.error_handler.handle_error(e, 'add', {'task_id': stored.id})
                    raise

            return stored.copy()

    def create(
        self,
        title: str,
        tags: Iterable[str] = (),
        due: Union[datetime, str, None] = None,
        note: Optional[str] = None,
        list_name: Any = None
    ) -> Task:
        """Build a task with the configured default list and add it."""
        now = self.clock.now()
        task = Task.new(title, list_name or self.config.default_list_name, self.clock)
        for tag in tags:
            task.add_tag(tag, now)
        if isinstance(due, str):
            due = parse_due_date(due, now)
        if due is not None:
            task.set_due_date(due, now)
        if note:
            task.set_note(note, now)
        return self.add(task)

    def add_from_input(self, text: str, list_name: Any = None) -> Task:
        """Add a task from quick-add input such as ``"Buy milk +shopping +1d"``."""
        task = parse_task_input(text, list_name or self.config.default_list_name, self.clock)
        return self.add(task)

    def update(self, task: Task) -> Task:
        """Replace the stored task with the same id."""
        with self._lock.write_locked():
            index = self._index_of(task.id)
            current = self._tasks[index]

            updated = task.copy()
            updated.created_at = current.created_at
            updated.archived = False
            updated.updated_at = max(self.clock.now(), current.updated_at, updated.updated_at)

            self._tasks[index] = updated
            self._persist()
            self._push(updated, 'update')
            return updated.copy()

    def toggle_complete(self, task_id: str) -> Task:
        with self._lock.write_locked():
            task = self._tasks[self._index_of(task_id)]
            task.toggle_complete(self.clock.now())
            self._persist()
            self._push(task, 'toggle_complete')
            return task.copy()

    def delete(self, task_id: str) -> Task:
        """Remove a task. Remote deletion is best effort."""
        with self._lock.write_locked():
            task = self._tasks.pop(self._index_of(task_id))
            self._persist()

            if self._reflects(task):
                try:
                    self.remote.delete_task(task.id)
                except NetworkError as e:
                    self.error_handler.record_warning(e, task.id, 'delete')

            return task.copy()

    def archive(self, task_id: str) -> Task:
        """Archive one completed task. The remote copy is left in place."""
        with self._lock.write_locked():
            index = self._index_of(task_id)
            task = self._tasks[index]
            if not task.completed:
                raise TaskStateError("Cannot archive an incomplete task", task_id)

            self._tasks.pop(index)
            task.archived = True
            self._archived.append(task)
            self._persist()
            return task.copy()

    def archive_all_completed(self) -> int:
        """Archive every completed task and return how many moved."""
        with self._lock.write_locked():
            active = []
            count = 0
            for task in self._tasks:
                if task.completed:
                    task.archived = True
                    self._archived.append(task)
                    count += 1
                else:
                    active.append(task)

            self._tasks = active
            self._persist()
            return count

    # Reconciliation

    def sync(self) -> SyncResult:
        """Reconcile the active list with the CalDAV collection.

        Remote copies win for ids present on both sides; archived ids never
        come back; remote-list tasks the server lacks are pushed; local-list
        tasks are kept untouched.
        """
        if self.remote is None:
            raise ConfigurationError("Sync is not enabled")

        try:
            self.remote.ensure_collection()
            remote_tasks = self.remote.fetch_all()
        except NetworkError as e:
            self.error_handler.handle_error(e, 'sync')
            raise

        result = SyncResult()

        with self._lock.read_locked():
            archived_ids = {task.id for task in self._archived}
            pending = [task.copy() for task in self._tasks if task.is_remote]
        remote_ids = {task.id for task in remote_tasks if task.id not in archived_ids}

        for task in pending:
            if task.id in remote_ids:
                continue
            try:
                self.remote.put_task(task)
                result.pushed += 1
            except NetworkError as e:
                result.warnings.append(self.error_handler.record_warning(e, task.id, 'push'))

        with self._lock.write_locked():
            archived_ids = {task.id for task in self._archived}

            remote_by_id = {}
            for task in remote_tasks:
                if task.id not in archived_ids and task.id not in remote_by_id:
                    remote_by_id[task.id] = task

            local_only = [task for task in self._tasks if not task.is_remote]
            local_only_ids = {task.id for task in local_only}
            merged = list(local_only)

            for task_id, task in remote_by_id.items():
                if task_id in local_only_ids:
                    self.logger.warning(f"Remote task {task_id} collides with a local-only task, keeping the local copy")
                    continue
                merged.append(task)
                result.pulled += 1

            for task in self._tasks:
                if task.is_remote and task.id not in remote_by_id:
                    merged.append(task)

            self._tasks = merged
            self._persist()

        result.kept_local = len(local_only)
        self.logger.info(
            f"Sync complete: {result.pulled} pulled, {result.pushed} pushed, "
            f"{len(result.warnings)} warnings"
        )
        return result
