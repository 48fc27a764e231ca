"""JSON file persistence for the active and archive lists."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Union

from domain import Task, TaskRepository
from monitoring import ParseError, StorageError


TASKS_FILENAME = 'tasks.json'
ARCHIVE_FILENAME = 'archive.json'


class JsonFileRepository(TaskRepository):
    """Stores each list as a pretty-printed JSON array under ``data_dir``."""

    def __init__(self, data_dir: Union[str, Path]):
        self.data_dir = Path(data_dir).expanduser()
        self.logger = logging.getLogger(__name__)

    @property
    def tasks_file(self) -> Path:
        return self.data_dir / TASKS_FILENAME

    @property
    def archive_file(self) -> Path:
        return self.data_dir / ARCHIVE_FILENAME

    def load_active(self) -> List[Task]:
        return self._load(self.tasks_file)

    def load_archive(self) -> List[Task]:
        return self._load(self.archive_file)

    def save(self, active: List[Task], archived: List[Task]) -> None:
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create data directory {self.data_dir}: {e}", cause=e)
        self._write(self.tasks_file, active)
        self._write(self.archive_file, archived)

    def _load(self, path: Path) -> List[Task]:
        """Read one list. A missing file is an empty list; bad entries are skipped."""
        if not path.exists():
            return []

        try:
            with open(path, 'r', encoding='utf-8') as f:
                content = f.read()
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}", cause=e)

        if not content.strip():
            return []

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON in {path}: {e}", cause=e)
        if data is None:
            return []
        if not isinstance(data, list):
            raise ParseError(f"Expected a JSON array in {path}, got {type(data).__name__}")

        tasks = []
        for index, entry in enumerate(data):
            try:
                tasks.append(Task.from_dict(entry))
            except ParseError as e:
                self.logger.warning(f"Skipping entry {index} in {path.name}: {e.message}")
        return tasks

    def _write(self, path: Path, tasks: List[Task]) -> None:
        """Write atomically via tempfile + rename."""
        content = json.dumps([task.to_dict() for task in tasks], indent=2, ensure_ascii=False)
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{path.name}.", suffix=".tmp", dir=str(self.data_dir)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                tmp.write(content)
                tmp.write("\n")
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, path)
        except OSError as e:
            raise StorageError(f"Cannot write {path}: {e}", cause=e)
        finally:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
