"""Infrastructure implementations for the cbratasks core."""

from .caldav_client import CalDAVClient, parse_multistatus
from .file_repository import JsonFileRepository
from .icalendar_codec import task_to_ical, ical_to_task, ical_to_tasks

__all__ = [
    'CalDAVClient', 'parse_multistatus',
    'JsonFileRepository',
    'task_to_ical', 'ical_to_task', 'ical_to_tasks'
]
