"""Application services for the cbratasks core."""

from .store import TaskStore, SyncResult
from .locks import ReadWriteLock
from .query import sort_tasks, search, fuzzy_match, due_today

__all__ = [
    'TaskStore', 'SyncResult', 'ReadWriteLock',
    'sort_tasks', 'search', 'fuzzy_match', 'due_today'
]
