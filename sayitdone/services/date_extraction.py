"""Turn a spoken task into a title and an optional due date.

Coverage is limited on purpose: relative phrases (today, tomorrow, next week),
weekday names, "June 15, 2025" and numeric mm/dd/yyyy or mm-dd-yyyy dates.
Matching runs in a fixed priority order and the first hit wins:

1. a date phrase following one of the keywords due/by/on/for/at;
2. a standalone relative phrase or weekday anywhere in the text, stripped
   from the title only when it sits at the very start or end;
3. post-processing: trim and capitalize the first character.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import NamedTuple, Optional

DATE_KEYWORDS = ("due", "by", "on", "for", "at")
RELATIVE_PHRASES = ("today", "tomorrow", "next week")
WEEKDAYS = {
    "sunday": 1,
    "monday": 2,
    "tuesday": 3,
    "wednesday": 4,
    "thursday": 5,
    "friday": 6,
    "saturday": 7,
}
MONTHS = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)

_MONTH_DAY_YEAR = re.compile(
    r"\b(" + "|".join(MONTHS) + r")\s+(\d{1,2})(?:,)?\s+(\d{4})\b",
    re.IGNORECASE,
)
_NUMERIC_DATE = re.compile(r"\b(\d{1,2})[/-](\d{1,2})[/-](\d{4})\b")


class ExtractedTask(NamedTuple):
    title: str
    due_date: Optional[datetime]


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def relative_dates(now: datetime) -> dict[str, datetime]:
    """Build the phrase table for ``now``; never reuse it across calls."""
    today = start_of_day(now)
    return {
        "today": today,
        "tomorrow": today + timedelta(days=1),
        "next week": today + timedelta(days=7),
    }


def weekday_ordinal(moment: datetime) -> int:
    """1=Sunday ... 7=Saturday."""
    return moment.isoweekday() % 7 + 1


def next_weekday(weekday: int, now: datetime | None = None) -> datetime:
    """Next occurrence of ``weekday`` strictly after today."""
    today = start_of_day(now or datetime.now())
    days_ahead = weekday - weekday_ordinal(today)
    if days_ahead <= 0:
        days_ahead += 7
    return today + timedelta(days=days_ahead)


def parse_explicit_date(text: str, now: datetime | None = None) -> Optional[datetime]:
    tzinfo = now.tzinfo if now else None
    match = _MONTH_DAY_YEAR.search(text)
    if match:
        month = MONTHS.index(match.group(1).lower()) + 1
        parsed = _build_date(int(match.group(3)), month, int(match.group(2)), tzinfo)
        if parsed:
            return parsed
    match = _NUMERIC_DATE.search(text)
    if match:
        month, day, year = (int(part) for part in match.groups())
        if 1 <= month <= 12 and 1 <= day <= 31:
            return _build_date(year, month, day, tzinfo)
    return None


def _build_date(year: int, month: int, day: int, tzinfo) -> Optional[datetime]:
    try:
        return datetime(year, month, day, tzinfo=tzinfo)
    except ValueError:
        return None


def _capitalize_first(title: str) -> str:
    return title[:1].upper() + title[1:]


def _match_after_keyword(text: str, lowered: str, now: datetime) -> Optional[ExtractedTask]:
    table = relative_dates(now)
    for keyword in DATE_KEYWORDS:
        found = re.search(rf"\b{keyword} ", lowered)
        if not found:
            continue
        after = lowered[found.end():]
        title = text

        for phrase in RELATIVE_PHRASES:
            if phrase in after:
                span = lowered.find(f"{keyword} {phrase}", found.start())
                if span >= 0:
                    title = text[:span]
                return ExtractedTask(title, table[phrase])

        for weekday, ordinal in WEEKDAYS.items():
            if weekday in after:
                span = lowered.find(f"{keyword} {weekday}", found.start())
                if span >= 0:
                    title = text[:span]
                return ExtractedTask(title, next_weekday(ordinal, now))

        explicit = parse_explicit_date(after, now)
        if explicit:
            return ExtractedTask(text[: found.start()], explicit)
    return None


def _strip_at_edges(text: str, start: int, end: int) -> str:
    if end == len(text):
        return text[:start]
    if start == 0:
        return text[end:]
    return text


def _match_standalone(text: str, lowered: str, now: datetime) -> Optional[ExtractedTask]:
    table = relative_dates(now)
    for phrase in RELATIVE_PHRASES:
        index = lowered.find(phrase)
        if index >= 0:
            return ExtractedTask(_strip_at_edges(text, index, index + len(phrase)), table[phrase])
    for weekday, ordinal in WEEKDAYS.items():
        index = lowered.find(weekday)
        if index >= 0:
            return ExtractedTask(
                _strip_at_edges(text, index, index + len(weekday)),
                next_weekday(ordinal, now),
            )
    return None


def extract(text: str, now: datetime | None = None) -> ExtractedTask:
    text = (text or "").strip()
    if not text:
        return ExtractedTask("", None)
    now = now or datetime.now()
    lowered = text.lower()
    match = _match_after_keyword(text, lowered, now) or _match_standalone(text, lowered, now)
    if match is None:
        match = ExtractedTask(text, None)
    return ExtractedTask(_capitalize_first(match.title.strip()), match.due_date)


__all__ = [
    "ExtractedTask",
    "extract",
    "next_weekday",
    "parse_explicit_date",
    "relative_dates",
    "start_of_day",
]
