"""VTODO serialization for tasks, built on the icalendar library."""

import logging
import uuid
from datetime import datetime, date, timezone
from typing import List, Optional, Any

from icalendar import Calendar, Todo

from domain import Task, ListName, Clock, end_of_day, start_of_day
from monitoring import ParseError


PRODUCT_ID = '-//cbratasks//EN'

logger = logging.getLogger(__name__)


def _utc(value: datetime) -> datetime:
    return value.astimezone(timezone.utc)


def task_to_todo(task: Task, now: datetime) -> Todo:
    """Build the VTODO component for a task."""
    todo = Todo()
    todo.add('uid', task.id)
    todo.add('dtstamp', _utc(now))
    todo.add('created', _utc(task.created_at))
    todo.add('last-modified', _utc(task.updated_at))
    todo.add('summary', task.title)

    if task.note:
        todo.add('description', task.note)

    if task.due_date:
        todo.add('due', _utc(task.due_date))

    if task.completed:
        todo.add('status', 'COMPLETED')
        if task.completed_at:
            todo.add('completed', _utc(task.completed_at))
        todo.add('percent-complete', 100)
    else:
        todo.add('status', 'NEEDS-ACTION')
        todo.add('percent-complete', 0)

    if task.tags:
        todo.add('categories', list(task.tags))

    return todo


def task_to_ical(task: Task, now: datetime) -> str:
    """Render a task as a complete VCALENDAR document (CRLF line endings)."""
    cal = Calendar()
    cal.add('version', '2.0')
    cal.add('prodid', PRODUCT_ID)
    cal.add_component(task_to_todo(task, now))
    return cal.to_ical().decode('utf-8')


def _property(component, name: str) -> Any:
    prop = component.get(name)
    if isinstance(prop, list):
        prop = prop[0] if prop else None
    return prop


def _value(component, name: str) -> Any:
    prop = _property(component, name)
    if prop is None:
        return None
    try:
        return getattr(prop, 'dt', prop)
    except ValueError as e:
        # unparsable values surface as broken properties
        raise ParseError(f"Invalid {name.upper()} value: {e}", cause=e)


def _instant(component, name: str) -> Optional[datetime]:
    """Decode a date-time property into an aware datetime.

    Floating values are read as local time; date-only values as local midnight.
    """
    value = _value(component, name)
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.astimezone()
    if isinstance(value, date):
        return start_of_day(value)
    raise ParseError(f"Unsupported {name} value: {value!r}")


def _due(component) -> Optional[datetime]:
    """DUE: 8-digit dates mean end of that local day."""
    value = _value(component, 'due')
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.astimezone()
    if isinstance(value, date):
        return end_of_day(value)
    raise ParseError(f"Unsupported DUE value: {value!r}")


def _categories(component) -> List[str]:
    prop = component.get('categories')
    if prop is None:
        return []
    items = prop if isinstance(prop, list) else [prop]
    tags = []
    for item in items:
        cats = getattr(item, 'cats', None)
        if cats is None:
            cats = str(item).split(',')
        tags.extend(str(cat) for cat in cats)
    return tags


def todo_to_task(todo, clock: Clock) -> Task:
    """Convert a parsed VTODO component into a remote task."""
    summary = _property(todo, 'summary')
    if summary is None or not str(summary).strip():
        raise ParseError("VTODO has no SUMMARY")

    uid = _property(todo, 'uid')
    now = clock.now()
    created_at = _instant(todo, 'created') or now
    updated_at = _instant(todo, 'last-modified') or created_at

    status = str(_property(todo, 'status') or '').strip().upper()
    completed = status == 'COMPLETED'
    completed_at = None
    if completed:
        completed_at = _instant(todo, 'completed') or _instant(todo, 'last-modified') or now

    description = _property(todo, 'description')

    return Task(
        id=str(uid) if uid else str(uuid.uuid4()),
        title=str(summary),
        created_at=created_at,
        updated_at=updated_at,
        list_name=ListName.REMOTE,
        note=str(description) if description else None,
        tags=_categories(todo),
        due_date=_due(todo),
        completed=completed,
        completed_at=completed_at,
        archived=False,
    )


def _parse_components(text: str):
    data = (text or '').strip()
    if not data:
        raise ParseError("Empty iCalendar data")
    try:
        return Calendar.from_ical(data)
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise ParseError(f"Malformed iCalendar data: {e}", cause=e)


def ical_to_task(text: str, clock: Clock) -> Task:
    """Parse the first VTODO found in ``text``; raises ParseError."""
    component = _parse_components(text)
    todos = component.walk('VTODO')
    if not todos:
        raise ParseError("No VTODO component found")
    return todo_to_task(todos[0], clock)


def ical_to_tasks(text: str, clock: Clock) -> List[Task]:
    """Parse every VTODO in ``text``, skipping the ones that fail."""
    try:
        component = _parse_components(text)
    except ParseError as e:
        logger.debug(f"Skipping unparsable calendar data: {e.message}")
        return []

    tasks = []
    for todo in component.walk('VTODO'):
        try:
            tasks.append(todo_to_task(todo, clock))
        except ParseError as e:
            logger.debug(f"Skipping VTODO {todo.get('uid')}: {e.message}")
    return tasks
