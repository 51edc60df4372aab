"""
Free-text WHOIS parsing helpers.

Registry text blobs are mined with line-anchored, case-insensitive
``Label: value`` patterns. A missing label yields None; dates are normalized
to ``YYYY-MM-DD`` so downstream code never depends on the provider.
"""

import re
from datetime import date, datetime, time, timezone
from functools import lru_cache
from typing import Any, Optional

from dateutil import parser as date_parser

# Two fill-in dates that differ in every date part; a value parsed the same
# against both names its own year, month and day
_FILL_A = datetime(1900, 1, 1)
_FILL_B = datetime(1904, 2, 2)


@lru_cache(maxsize=64)
def _label_pattern(label: str) -> re.Pattern:
    return re.compile(
        rf"^[ \t]*{re.escape(label)}[ \t]*(.*?)[ \t]*$",
        re.IGNORECASE | re.MULTILINE,
    )


def parse_field(text: str, label: str) -> Optional[str]:
    """
    Return the value of the first line starting with ``label``.

    Args:
        text: WHOIS text blob
        label: Field label including its colon, e.g. ``"Created On:"``

    Returns:
        The stripped value, or None when the label is absent or empty
    """
    if not text:
        return None
    for match in _label_pattern(label).finditer(text):
        value = match.group(1).strip()
        if value:
            return value
    return None


def parse_all(text: str, label: str) -> list[str]:
    """Return the values of every line starting with ``label``, in order."""
    if not text:
        return []
    return [
        match.group(1).strip()
        for match in _label_pattern(label).finditer(text)
        if match.group(1).strip()
    ]


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a registry date or timestamp into an aware UTC datetime.

    Naive values are taken as UTC, so a date-only value is midnight UTC.
    Partial dates (a bare year, a month without a day) are rejected
    rather than completed from today's date.

    Returns:
        The datetime, or None when the value cannot be parsed
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            parsed = date_parser.parse(text, default=_FILL_A)
            if date_parser.parse(text, default=_FILL_B).date() != parsed.date():
                return None
        except (ValueError, OverflowError):
            return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def normalize_date(value: Any) -> Optional[str]:
    """
    Normalize a registry date to ``YYYY-MM-DD``.

    Accepts ISO-8601 strings, free-text registry dates, ``date`` and
    ``datetime`` objects. Timezone-aware values are converted to UTC first.

    Returns:
        The formatted date, or None when the value cannot be parsed
    """
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.isoformat()
    parsed = parse_datetime(value)
    return parsed.date().isoformat() if parsed is not None else None


def parse_date_field(text: str, label: str) -> Optional[str]:
    """Shortcut for ``normalize_date(parse_field(text, label))``."""
    return normalize_date(parse_field(text, label))
