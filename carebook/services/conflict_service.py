"""Already-occupied times and already-booked dates, derived from stored appointments.

Only active appointments (pending, approved, booked, confirmed) count; cancelled
and completed ones never occupy a slot.

The ``get_*`` readers feed the availability display and fail open (an unreachable
store means "no conflicts"). The ``fetch_*`` readers raise, for the booking path.
"""
import asyncio
import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carebook.core.config import settings
from carebook.models.appointment import ACTIVE_STATUSES, Appointment
from carebook.services.time_format import format_calendar_date, normalize_storage_time

logger = logging.getLogger(__name__)


async def fetch_occupied_times(session: AsyncSession, provider_id: str, day: date) -> set[str]:
    result = await session.execute(
        select(Appointment.time).where(
            Appointment.provider_id == provider_id,
            Appointment.date == format_calendar_date(day),
            Appointment.status.in_(sorted(ACTIVE_STATUSES)),
        )
    )
    return {normalize_storage_time(row[0]) for row in result.all() if row[0]}


async def fetch_booked_dates_for_patient(session: AsyncSession, patient_id: str) -> set[str]:
    result = await session.execute(
        select(Appointment.date).where(
            Appointment.patient_id == patient_id,
            Appointment.status.in_(sorted(ACTIVE_STATUSES)),
        )
    )
    return {row[0] for row in result.all() if row[0]}


async def get_occupied_times(session: AsyncSession, provider_id: str, day: date) -> set[str]:
    try:
        return await asyncio.wait_for(
            fetch_occupied_times(session, provider_id, day),
            timeout=settings.store_timeout_seconds,
        )
    except (SQLAlchemyError, asyncio.TimeoutError) as e:
        logger.warning(
            "Booked-times lookup failed for provider %s on %s, showing all slots free: %s",
            provider_id,
            day,
            e,
        )
        return set()


async def get_booked_dates_for_patient(session: AsyncSession, patient_id: str) -> set[str]:
    try:
        return await asyncio.wait_for(
            fetch_booked_dates_for_patient(session, patient_id),
            timeout=settings.store_timeout_seconds,
        )
    except (SQLAlchemyError, asyncio.TimeoutError) as e:
        logger.warning("Booked-dates lookup failed for patient %s: %s", patient_id, e)
        return set()
