"""Domain interfaces for the cbratasks core."""

from abc import ABC, abstractmethod
from typing import List

from .entities import Task


class TaskRepository(ABC):
    """Abstract persistence for the active and archive lists."""

    @abstractmethod
    def load_active(self) -> List[Task]:
        """Load the active list."""
        pass

    @abstractmethod
    def load_archive(self) -> List[Task]:
        """Load the archive list."""
        pass

    @abstractmethod
    def save(self, active: List[Task], archived: List[Task]) -> None:
        """Persist both lists."""
        pass


class RemoteTaskGateway(ABC):
    """Abstract remote collection of tasks."""

    @abstractmethod
    def ensure_collection(self) -> None:
        """Make sure the remote collection exists, creating it if needed."""
        pass

    @abstractmethod
    def fetch_all(self) -> List[Task]:
        """Fetch every task held by the remote collection."""
        pass

    @abstractmethod
    def put_task(self, task: Task) -> None:
        """Create or replace a task on the remote collection."""
        pass

    @abstractmethod
    def delete_task(self, task_id: str) -> None:
        """Remove a task from the remote collection."""
        pass
