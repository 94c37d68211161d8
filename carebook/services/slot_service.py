from dataclasses import dataclass
from datetime import datetime, timedelta

from carebook.core.config import settings
from carebook.services.time_format import format_storage_time, to_12_hour


@dataclass(frozen=True)
class Slot:
    display_time: str  # "2:30 PM"
    storage_time: str  # "14:30"
    duration_minutes: int
    is_bookable: bool = True
    is_occupied: bool = False


def _template_storage_times() -> list[str]:
    """Slot start times from slot_start_hour through slot_end_hour inclusive."""
    times: list[str] = []
    anchor = datetime(2000, 1, 1)
    current = anchor.replace(hour=settings.slot_start_hour)
    end = anchor.replace(hour=settings.slot_end_hour)
    delta = timedelta(minutes=settings.slot_duration_minutes)
    while current <= end:
        times.append(format_storage_time(current.time()))
        current += delta
    return times


def generate_day_template() -> list[Slot]:
    """The provider- and date-agnostic slots of one day, ascending, all open.

    Returns a fresh list on every call.
    """
    slots = [
        Slot(
            display_time=to_12_hour(storage_time),
            storage_time=storage_time,
            duration_minutes=settings.slot_duration_minutes,
        )
        for storage_time in _template_storage_times()
    ]
    assert slots, "day template produced no slots; check slot_start_hour/slot_end_hour"
    return slots


def is_template_time(storage_time: str) -> bool:
    return storage_time in _template_storage_times()
