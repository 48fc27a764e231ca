"""Domain layer for the cbratasks core."""

from .clock import Clock, SystemClock, FixedClock, end_of_day, start_of_day
from .entities import Task, ListName, normalize_tags, parse_task_input, ARCHIVE_AFTER
from .due_dates import parse_due_date, format_due_date, is_due_date
from .grades import round_grade, calculate_grade
from .interfaces import TaskRepository, RemoteTaskGateway

__all__ = [
    'Clock', 'SystemClock', 'FixedClock', 'end_of_day', 'start_of_day',
    'Task', 'ListName', 'normalize_tags', 'parse_task_input', 'ARCHIVE_AFTER',
    'parse_due_date', 'format_due_date', 'is_due_date',
    'round_grade', 'calculate_grade',
    'TaskRepository', 'RemoteTaskGateway'
]
