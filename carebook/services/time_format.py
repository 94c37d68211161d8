"""Conversions between 12-hour display times, 24-hour storage times and ISO dates.

Display form: ``"2:30 PM"``. Storage form: ``"14:30"``. Dates: ``"2025-06-10"``.

``to_24_hour`` and ``to_12_hour`` never raise: malformed input is returned
unchanged so a bad value degrades a display instead of aborting a query.
"""
import logging
from datetime import date, datetime, time

logger = logging.getLogger(__name__)

STORAGE_TIME_FORMAT = "%H:%M"
CALENDAR_DATE_FORMAT = "%Y-%m-%d"


def to_24_hour(display: str) -> str:
    parts = display.split(" ")
    if len(parts) != 2:
        logger.debug("Unparseable display time: %r", display)
        return display
    clock, meridiem = parts
    clock_parts = clock.split(":")
    if len(clock_parts) != 2:
        logger.debug("Unparseable display time: %r", display)
        return display
    hour_str, minute = clock_parts
    try:
        hour = int(hour_str)
    except ValueError:
        logger.debug("Unparseable display time: %r", display)
        return display
    meridiem = meridiem.upper()
    if meridiem == "AM" and hour == 12:
        hour = 0
    elif meridiem == "PM" and hour != 12:
        hour += 12
    return f"{hour:02d}:{minute}"


def to_12_hour(storage: str) -> str:
    parts = storage.split(":")
    if len(parts) != 2:
        logger.debug("Unparseable storage time: %r", storage)
        return storage
    hour_str, minute = parts
    try:
        hour = int(hour_str)
    except ValueError:
        logger.debug("Unparseable storage time: %r", storage)
        return storage
    if hour == 0:
        return f"12:{minute} AM"
    if hour < 12:
        return f"{hour}:{minute} AM"
    if hour == 12:
        return f"12:{minute} PM"
    return f"{hour - 12}:{minute} PM"


def parse_storage_time(value: str) -> time | None:
    try:
        return datetime.strptime(value.strip(), STORAGE_TIME_FORMAT).time()
    except (ValueError, AttributeError):
        return None


def format_storage_time(value: time) -> str:
    return value.strftime(STORAGE_TIME_FORMAT)


def normalize_storage_time(value: str) -> str:
    """Canonical ``HH:MM`` for "9:00", "09:00" or "9:00 AM"; the input if unparseable."""
    candidate = value.strip()
    if " " in candidate:
        candidate = to_24_hour(candidate)
    parsed = parse_storage_time(candidate)
    return format_storage_time(parsed) if parsed is not None else value


def parse_calendar_date(value: str) -> date | None:
    try:
        return datetime.strptime(value.strip(), CALENDAR_DATE_FORMAT).date()
    except (ValueError, AttributeError):
        return None


def format_calendar_date(value: date) -> str:
    return value.strftime(CALENDAR_DATE_FORMAT)
