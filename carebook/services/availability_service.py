import logging
from dataclasses import dataclass, replace
from datetime import date, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from carebook.services.conflict_service import get_occupied_times
from carebook.services.slot_service import Slot, generate_day_template
from carebook.services.time_format import parse_storage_time
from carebook.services.unavailability_service import UnavailabilityCalendar, load_calendar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilityQuery:
    provider_id: str
    date: date
    now: datetime


def is_past_today(storage_time: str, day: date, now: datetime) -> bool:
    """True only for a slot earlier than ``now`` on ``now``'s own date.

    Slots on any other date, past or future, are never flagged here.
    """
    if day != now.date():
        return False
    slot_time = parse_storage_time(storage_time)
    if slot_time is None:
        return False
    return (slot_time.hour, slot_time.minute) < (now.hour, now.minute)


def apply_availability(
    template: list[Slot],
    occupied: set[str],
    calendar: UnavailabilityCalendar,
    query: AvailabilityQuery,
) -> list[Slot]:
    """Merge the day template with bookings, blackouts and the current moment.

    Pure: output depends only on the arguments, in template order.
    """
    fully_unavailable = calendar.is_date_fully_unavailable(query.date)
    slots: list[Slot] = []
    for slot in template:
        is_occupied = slot.storage_time in occupied
        is_bookable = not (
            fully_unavailable
            or is_occupied
            or is_past_today(slot.storage_time, query.date, query.now)
            or calendar.is_time_unavailable(query.date, slot.storage_time)
        )
        slots.append(replace(slot, is_occupied=is_occupied, is_bookable=is_bookable))
    return slots


@dataclass(frozen=True)
class DayAvailability:
    slots: list[Slot]
    fully_unavailable: bool


async def resolve_day(session: AsyncSession, query: AvailabilityQuery) -> DayAvailability:
    """Bookable view of one provider's day. Store failures degrade to optimistic results."""
    template = generate_day_template()
    occupied = await get_occupied_times(session, query.provider_id, query.date)
    calendar = await load_calendar(session, query.provider_id)
    slots = apply_availability(template, occupied, calendar, query)
    logger.debug(
        "Resolved %d slots for provider %s on %s, %d bookable",
        len(slots),
        query.provider_id,
        query.date,
        sum(1 for s in slots if s.is_bookable),
    )
    return DayAvailability(
        slots=slots,
        fully_unavailable=calendar.is_date_fully_unavailable(query.date),
    )


async def resolve_slots(session: AsyncSession, query: AvailabilityQuery) -> list[Slot]:
    return (await resolve_day(session, query)).slots
