"""Heuristic publish-date parsing for scraped article items.

Sites publish dates as ISO attributes, RFC 2822 strings, English prose
or day-first numeric text (``12.03.2024 14:30``). ``parse_date`` turns
any of these into an aware UTC datetime, or returns None. Relative
phrases ("3 days ago", "3 gün önce") are rejected because there is no
reliable reference time to anchor them to.
"""

import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

from dateutil import parser as dateparser

logger = logging.getLogger(__name__)

MIN_YEAR = 1900
MAX_YEARS_AHEAD = 5

_RELATIVE_PATTERNS = [
    # Turkish
    r"\d+\s+(saniye|dakika|saat|gün|hafta|ay|yıl)\s+önce",
    r"dün",
    r"bugün",
    # English
    r"(\d+|an?|one)\s+(second|sec|minute|min|hour|hr|day|week|month|year)s?\s+ago",
    r"today",
    r"yesterday",
    r"just now",
]
_RELATIVE_RE = re.compile(
    r"^\s*(" + "|".join(_RELATIVE_PATTERNS) + r")\s*$", re.IGNORECASE
)

_DAY_FIRST_RE = re.compile(
    r"^(\d{1,2})[./-](\d{1,2})[./-](\d{4})"
    r"(?:\s+(\d{1,2}):(\d{1,2})(?::(\d{1,2}))?)?"
)
_HAS_WORD_RE = re.compile(r"[^\W\d_]{3,}")
_HAS_YEAR_RE = re.compile(r"\b\d{4}\b")
_YEAR_FIRST_RE = re.compile(r"^\d{4}[-/.]\d{1,2}[-/.]\d{1,2}")


def is_relative_date(text: str) -> bool:
    """Check whether text is a relative time phrase like "2 hours ago"."""
    return bool(_RELATIVE_RE.match(text or ""))


def _to_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.replace(microsecond=(dt.microsecond // 1000) * 1000)


def _parse_absolute(text: str) -> Optional[datetime]:
    """Generic parse of an absolute date string.

    Day-first numeric text is deliberately not handled here: a generic
    parser reads ``12.03.2024`` month-first.
    """
    try:
        return dateparser.isoparse(text)
    except (ValueError, OverflowError):
        pass

    try:
        return parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        pass

    # Year-first numeric text cannot be read month-first. Prose dates
    # ("March 12, 2024") need a month word and an explicit year, otherwise
    # dateutil silently fills the gaps from today's date.
    if _YEAR_FIRST_RE.match(text) or (_HAS_WORD_RE.search(text) and _HAS_YEAR_RE.search(text)):
        try:
            return dateparser.parse(text)
        except (ValueError, OverflowError):
            pass

    return None


def _parse_day_first(text: str) -> Optional[datetime]:
    match = _DAY_FIRST_RE.match(text)
    if not match:
        return None

    day, month, year = (int(g) for g in match.group(1, 2, 3))
    hours = int(match.group(4) or 0)
    minutes = int(match.group(5) or 0)
    seconds = int(match.group(6) or 0)

    # datetime() rejects rollover dates such as 31.02 instead of shifting them
    try:
        parsed = datetime(year, month, day, hours, minutes, seconds, tzinfo=timezone.utc)
    except ValueError:
        return None
    if (parsed.year, parsed.month, parsed.day) != (year, month, day):
        return None
    return parsed


def parse_date(raw_text: Optional[str]) -> Optional[datetime]:
    """Parse raw date text from a page into an aware UTC datetime.

    Args:
        raw_text: Text content or ``datetime`` attribute of a date element.

    Returns:
        UTC datetime with millisecond precision, or None when the text is
        empty, relative, unparseable or outside the accepted year range.
    """
    if not raw_text or not raw_text.strip():
        return None
    text = raw_text.strip()

    if is_relative_date(text):
        logger.debug("Skipping relative date expression: %r", text)
        return None

    try:
        parsed = _parse_absolute(text) or _parse_day_first(text)
        if parsed is None:
            logger.debug("Not an absolute date: %r", text)
            return None

        parsed = _to_utc(parsed)
        max_year = datetime.now(timezone.utc).year + MAX_YEARS_AHEAD
        if not MIN_YEAR <= parsed.year <= max_year:
            logger.debug("Date year %d out of range for %r", parsed.year, text)
            return None
        return parsed

    except Exception as e:
        logger.debug("Date parse error for %r: %s", text, e)
        return None


def format_timestamp(dt: datetime) -> str:
    """Render a datetime as ISO 8601 UTC with milliseconds, e.g. ``2024-03-12T14:30:00.000Z``."""
    dt = _to_utc(dt)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"
