"""
Small normalisation helpers shared by the stores, services and routes.
"""
import logging
from datetime import datetime, date, time
from decimal import Decimal, ROUND_HALF_UP

from feedback_portal.config import ALL
from feedback_portal.exceptions import ValidationError

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'


def normalize_gr_no(gr_no):
    """Normalize a GR number: strip whitespace and upper-case it."""
    if gr_no is None:
        return ''
    return str(gr_no).strip().upper()


def clean_text(value):
    """Collapse repeated spaces and strip, returning '' for None."""
    if value is None:
        return ''
    text = str(value).strip()
    while '  ' in text:
        text = text.replace('  ', ' ')
    return text


def is_unrestricted(value):
    """True when a filter value means 'do not filter' (empty or the All sentinel)."""
    return value is None or str(value).strip() in ('', ALL)


def to_bool(value, default=False):
    """Interpret form/JSON/Excel booleans ('true', 'yes', 1, True...)."""
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    return str(value).strip().lower() in ('1', 'true', 'yes', 'y', 'on')


def round2(value):
    """Round half-up to two decimals and return a float."""
    return float(Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


def _local(value):
    """Convert an aware datetime to naive local time, the form submitted_at is stored in."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def parse_day(value, field, end_of_day=False):
    """
    Parse a date filter ('YYYY-MM-DD' or an ISO timestamp).

    Plain dates expand to the start of the day, or to the last microsecond of
    the day when end_of_day is set, so both bounds are inclusive.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = _local(value)
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        text = str(value).strip()
        try:
            parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
        except ValueError:
            raise ValidationError(f"Invalid date for {field}: {text}", field=field)
        parsed = _local(parsed)
        if len(text) > 10:
            return parsed
    if end_of_day:
        return datetime.combine(parsed.date(), time.max)
    return datetime.combine(parsed.date(), time.min)


def format_timestamp(value):
    if value is None:
        return None
    return value.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value):
    """Read a timestamp column back into a datetime."""
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError:
        return datetime.fromisoformat(value)
