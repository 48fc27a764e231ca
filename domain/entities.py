"""Domain entities for the cbratasks core."""

import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, date
from enum import Enum
from typing import Optional, Dict, List, Any, Iterable

from monitoring import ParseError
from .clock import Clock
from .due_dates import parse_due_date, is_due_date


ARCHIVE_AFTER = timedelta(hours=24)


class ListName(Enum):
    """Which list a task belongs to."""
    LOCAL = "local"
    REMOTE = "remote"

    @classmethod
    def parse(cls, value: Any) -> 'ListName':
        """Accept enum members, their values, and the legacy "radicale" name."""
        if isinstance(value, cls):
            return value
        text = str(value or '').strip().lower()
        if text == 'radicale':
            return cls.REMOTE
        try:
            return cls(text)
        except ValueError:
            raise ParseError(f"Unknown list name: {value!r}")


def normalize_tag(tag: str) -> str:
    return tag.strip().lower()


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """Lowercase, trim and de-duplicate tags, keeping first occurrence order."""
    result = []
    for tag in tags or []:
        tag = normalize_tag(str(tag))
        if tag and tag not in result:
            result.append(tag)
    return result


def _parse_timestamp(value: Any, field_name: str) -> Optional[datetime]:
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError as e:
            raise ParseError(f"Invalid timestamp for {field_name}: {value!r}", cause=e)
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_flag(value: Any, field_name: str) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ParseError(f"Invalid boolean for {field_name}: {value!r}")


def _parse_text(value: Any, field_name: str, optional: bool = False) -> Optional[str]:
    if value is None and optional:
        return None
    if not isinstance(value, str):
        raise ParseError(f"Expected a string for {field_name}, got {type(value).__name__}")
    return value


def _parse_tags(value: Any) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
        raise ParseError(f"Expected a list of strings for tags, got {value!r}")
    return value


@dataclass
class Task:
    """Domain entity representing a to-do item."""

    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    list_name: ListName = ListName.LOCAL
    note: Optional[str] = None
    tags: Optional[List[str]] = None
    due_date: Optional[datetime] = None
    completed: bool = False
    completed_at: Optional[datetime] = None
    archived: bool = False

    def __post_init__(self):
        """Normalize fields and enforce the entity invariants."""
        if not isinstance(self.title, str) or not self.title.strip():
            raise ParseError("Task title must not be empty", details={'task_id': self.id})
        if self.note is not None and not isinstance(self.note, str):
            raise ParseError("Task note must be a string", details={'task_id': self.id})
        self.list_name = ListName.parse(self.list_name)
        self.tags = normalize_tags(self.tags)
        if self.note is not None and not self.note.strip():
            self.note = None
        if self.updated_at < self.created_at:
            self.updated_at = self.created_at
        if self.completed and self.completed_at is None:
            self.completed_at = self.updated_at
        if not self.completed:
            self.completed_at = None

    @classmethod
    def new(cls, title: str, list_name: Any, clock: Clock, task_id: Optional[str] = None) -> 'Task':
        """Create a fresh task stamped with the clock's current time."""
        now = clock.now()
        return cls(
            id=task_id or str(uuid.uuid4()),
            title=title.strip() if title else title,
            created_at=now,
            updated_at=now,
            list_name=list_name,
        )

    @property
    def is_remote(self) -> bool:
        return self.list_name is ListName.REMOTE

    def _touch(self, now: datetime) -> None:
        """Move updated_at forward to now, never backward.

        Timestamps carry whole seconds, so two edits within the same second
        leave updated_at where the first one put it.
        """
        if now > self.updated_at:
            self.updated_at = now

    def complete(self, now: datetime) -> None:
        self.completed = True
        self.completed_at = now
        self._touch(now)

    def uncomplete(self, now: datetime) -> None:
        self.completed = False
        self.completed_at = None
        self._touch(now)

    def toggle_complete(self, now: datetime) -> None:
        if self.completed:
            self.uncomplete(now)
        else:
            self.complete(now)

    def set_title(self, title: str, now: datetime) -> None:
        if not title or not title.strip():
            raise ParseError("Task title must not be empty", details={'task_id': self.id})
        self.title = title.strip()
        self._touch(now)

    def set_note(self, note: Optional[str], now: datetime) -> None:
        self.note = note if note and note.strip() else None
        self._touch(now)

    def add_tag(self, tag: str, now: datetime) -> None:
        tag = normalize_tag(tag)
        if not tag or tag in self.tags:
            return
        self.tags.append(tag)
        self._touch(now)

    def remove_tag(self, tag: str, now: datetime) -> None:
        tag = normalize_tag(tag)
        if tag in self.tags:
            self.tags.remove(tag)
            self._touch(now)

    def set_due_date(self, due: datetime, now: datetime) -> None:
        if due.tzinfo is None:
            due = due.astimezone()
        self.due_date = due
        self._touch(now)

    def clear_due_date(self, now: datetime) -> None:
        self.due_date = None
        self._touch(now)

    @property
    def has_note(self) -> bool:
        return bool(self.note and self.note.strip())

    def should_archive(self, now: datetime) -> bool:
        """Completed for more than 24 hours."""
        if not self.completed or self.completed_at is None:
            return False
        return now - self.completed_at > ARCHIVE_AFTER

    def is_overdue(self, now: datetime) -> bool:
        if self.completed or self.due_date is None:
            return False
        return now > self.due_date

    def is_due_on(self, day: date) -> bool:
        if self.due_date is None:
            return False
        return self.due_date.astimezone().date() == day

    def due_string(self, now: datetime) -> str:
        """Human-readable due label: Today, Tomorrow, weekday, or '02 Jan'."""
        if self.due_date is None:
            return ""
        due = self.due_date.astimezone()
        today = now.astimezone().date()
        if due.date() == today:
            return "Today"
        if due.date() == today + timedelta(days=1):
            return "Tomorrow"
        days_until = (due - now).days
        if 0 < days_until < 7:
            return due.strftime("%a")
        return due.strftime("%d %b")

    def copy(self) -> 'Task':
        return replace(self, tags=list(self.tags))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the persisted JSON shape."""
        return {
            'id': self.id,
            'title': self.title,
            'note': self.note,
            'tags': list(self.tags),
            'due_date': _format_timestamp(self.due_date),
            'completed': self.completed,
            'completed_at': _format_timestamp(self.completed_at),
            'created_at': _format_timestamp(self.created_at),
            'updated_at': _format_timestamp(self.updated_at),
            'archived': self.archived,
            'list_name': self.list_name.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Task':
        """Build a task from persisted JSON. Unknown keys are ignored."""
        if not isinstance(data, dict):
            raise ParseError(f"Task entry must be an object, got {type(data).__name__}")
        task_id = data.get('id')
        if not task_id:
            raise ParseError("Task entry has no id")
        created_at = _parse_timestamp(data.get('created_at'), 'created_at')
        if created_at is None:
            raise ParseError("Task entry has no created_at", details={'task_id': task_id})
        updated_at = _parse_timestamp(data.get('updated_at'), 'updated_at') or created_at

        return cls(
            id=str(task_id),
            title=_parse_text(data.get('title'), 'title'),
            created_at=created_at,
            updated_at=updated_at,
            list_name=data.get('list_name') or ListName.LOCAL,
            note=_parse_text(data.get('note'), 'note', optional=True) or None,
            tags=_parse_tags(data.get('tags')),
            due_date=_parse_timestamp(data.get('due_date'), 'due_date'),
            completed=_parse_flag(data.get('completed'), 'completed'),
            completed_at=_parse_timestamp(data.get('completed_at'), 'completed_at'),
            archived=_parse_flag(data.get('archived'), 'archived'),
        )


def parse_task_input(text: str, list_name: Any, clock: Clock) -> Task:
    """Parse quick-add input such as ``"Buy milk +shopping +1d"``.

    ``+`` tokens that read as a due date set the due date (the last one wins);
    other ``+`` tokens become tags; everything else forms the title.
    """
    now = clock.now()
    title_parts = []
    tags = []
    due_text = None

    for part in (text or '').split():
        if part.startswith('+') and len(part) > 1:
            suffix = part[1:]
            if is_due_date(suffix, now):
                due_text = suffix
            else:
                tags.append(suffix)
        else:
            title_parts.append(part)

    task = Task.new(' '.join(title_parts), list_name, clock)
    for tag in tags:
        task.add_tag(tag, now)
    if due_text:
        task.set_due_date(parse_due_date(due_text, now), now)
    return task
