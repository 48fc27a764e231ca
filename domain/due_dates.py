"""Due-date grammar.

Accepted forms (case-insensitive, surrounding whitespace ignored):

    +Nd / Nd     N days from now
    +Nw / Nw     N weeks from now
    +Nm / Nm     N calendar months from now (day-of-month clamped)
    today        end of the current day
    tomorrow     end of the next day
    nextweek     end of the next Monday (a week ahead when today is Monday)
    DD-MM-YYYY   explicit civil date
    YYYY-MM-DD   ISO civil date

Every result is materialized at 23:59:59 local time.
"""

import re
from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta

from monitoring import ParseError
from .clock import end_of_day


RELATIVE_PATTERN = re.compile(r'^\+?(\d+)([dwm])$')
DMY_PATTERN = re.compile(r'^\d{2}-\d{2}-\d{4}$')
ISO_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def parse_due_date(text: str, now: datetime) -> datetime:
    """Parse a due-date expression relative to ``now``.

    Raises ParseError for anything outside the grammar.
    """
    value = (text or '').strip().lower()
    if not value:
        raise ParseError("Empty due date")

    match = RELATIVE_PATTERN.match(value)
    if match:
        amount = int(match.group(1))
        if amount < 1:
            raise ParseError(f"Invalid due date: {text!r} (amount must be at least 1)")
        unit = match.group(2)
        try:
            if unit == 'd':
                target = now + timedelta(days=amount)
            elif unit == 'w':
                target = now + timedelta(days=amount * 7)
            else:
                target = now + relativedelta(months=amount)
            return end_of_day(target.date())
        except (OverflowError, ValueError) as e:
            raise ParseError(f"Invalid due date: {text!r} (out of range)", cause=e)

    if value == 'today':
        return end_of_day(now.date())
    if value == 'tomorrow':
        return end_of_day(now.date() + timedelta(days=1))
    if value == 'nextweek':
        days_until_monday = (7 - now.weekday()) % 7 or 7
        return end_of_day(now.date() + timedelta(days=days_until_monday))

    for pattern, fmt in ((DMY_PATTERN, '%d-%m-%Y'), (ISO_PATTERN, '%Y-%m-%d')):
        if pattern.match(value):
            try:
                day = datetime.strptime(value, fmt).date()
            except ValueError as e:
                raise ParseError(f"Invalid due date: {text!r} ({e})", cause=e)
            return end_of_day(day)

    raise ParseError(
        f"Invalid due date format: {text!r} "
        "(expected +Nd, +Nw, +Nm, today, tomorrow, nextweek, DD-MM-YYYY or YYYY-MM-DD)"
    )


def is_due_date(text: str, now: datetime) -> bool:
    """True when ``text`` belongs to the due-date grammar."""
    try:
        parse_due_date(text, now)
    except ParseError:
        return False
    return True


def format_due_date(due: datetime) -> str:
    """Render a due date in the ISO civil form accepted by parse_due_date."""
    return due.astimezone().date().isoformat()
