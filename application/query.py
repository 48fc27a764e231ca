"""Ordering and filtering of task lists.

Canonical order, used by every list the store hands out:
    1. incomplete before complete
    2. tasks with a due date before tasks without, earlier dates first
    3. first tag, lexicographically (no tag sorts first)
    4. created_at ascending
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Tuple

from domain import Task, start_of_day


def sort_key(task: Task) -> Tuple:
    due = task.due_date.timestamp() if task.due_date else 0.0
    first_tag = task.tags[0] if task.tags else ""
    return (
        task.completed,
        task.due_date is None,
        due,
        first_tag,
        task.created_at.timestamp(),
    )


def sort_tasks(tasks: Iterable[Task]) -> List[Task]:
    """Stable sort into canonical order."""
    return sorted(tasks, key=sort_key)


def fuzzy_match(text: str, pattern: str) -> bool:
    """Case-folded subsequence match of ``pattern`` in ``text``."""
    remaining = iter(text.casefold())
    return all(char in remaining for char in pattern.casefold())


def search(tasks: Iterable[Task], query: str) -> List[Task]:
    """Tasks whose title fuzzy-matches ``query``; everything for an empty query."""
    if not query:
        return sort_tasks(tasks)
    return sort_tasks(task for task in tasks if fuzzy_match(task.title, query))


def today_bounds(now: datetime) -> Tuple[datetime, datetime]:
    """[start of today, start of tomorrow) in local time."""
    today = now.astimezone().date()
    return start_of_day(today), start_of_day(today + timedelta(days=1))


def due_today(tasks: Iterable[Task], now: datetime) -> List[Task]:
    """Incomplete tasks due within the current local day."""
    start, end = today_bounds(now)
    return sort_tasks(
        task for task in tasks
        if not task.completed and task.due_date is not None and start <= task.due_date < end
    )
