"""Write-path validation for new bookings.

``try_reserve`` re-reads bookings and the provider calendar at call time (never
a cached availability view) and rejects any request it cannot prove is free.
Those reads are strict: a store error or timeout rejects the booking instead of
assuming "no conflicts" the way the availability display does.

The pre-check narrows but cannot close the check-then-write race between two
requests for the same slot. The guarantee comes from the partial unique index
``uq_appointments_active_slot`` on (provider_id, date, time) for active
statuses: the losing insert raises ``IntegrityError`` and is reported as
``SLOT_ALREADY_BOOKED``.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carebook.core.config import settings
from carebook.core.db import bounded, safe_rollback
from carebook.models.appointment import Appointment, AppointmentCreate, AppointmentStatus, AppointmentType
from carebook.services.availability_service import is_past_today
from carebook.services.conflict_service import fetch_booked_dates_for_patient, fetch_occupied_times
from carebook.services.slot_service import is_template_time
from carebook.services.time_format import format_calendar_date, normalize_storage_time, parse_calendar_date
from carebook.services.unavailability_service import UnavailabilityCalendar, fetch_unavailability

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = "General consultation"


class BookingError(str, Enum):
    INVALID_SLOT = "invalid_slot"
    SLOT_IN_PAST = "slot_in_past"
    SLOT_ALREADY_BOOKED = "slot_already_booked"
    PATIENT_ALREADY_BOOKED_THAT_DATE = "patient_already_booked_that_date"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    STORE_UNAVAILABLE = "store_unavailable"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class ReservationResult:
    appointment: Appointment | None = None
    error: BookingError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.appointment is not None


def compose_message(symptoms: str, notes: str) -> str:
    symptoms = (symptoms or "").strip()
    notes = (notes or "").strip()
    if symptoms and notes:
        return f"{symptoms}. {notes}"
    return symptoms or notes or DEFAULT_MESSAGE


async def _precheck(
    session: AsyncSession, patient_id: str, provider_id: str, day: date, storage_time: str
) -> BookingError | None:
    day_str = format_calendar_date(day)
    occupied = await bounded(fetch_occupied_times(session, provider_id, day))
    if storage_time in occupied:
        return BookingError.SLOT_ALREADY_BOOKED
    if settings.one_booking_per_patient_per_date:
        booked_dates = await bounded(fetch_booked_dates_for_patient(session, patient_id))
        if day_str in booked_dates:
            return BookingError.PATIENT_ALREADY_BOOKED_THAT_DATE
    record = await bounded(fetch_unavailability(session, provider_id))
    if UnavailabilityCalendar(record).is_time_unavailable(day, storage_time):
        return BookingError.PROVIDER_UNAVAILABLE
    return None


async def try_reserve(
    session: AsyncSession, patient_id: str, data: AppointmentCreate, now: datetime
) -> ReservationResult:
    """Validate and commit a new pending appointment, or report why it was refused."""
    day = parse_calendar_date(data.date)
    storage_time = normalize_storage_time(data.time)
    if day is None or not is_template_time(storage_time):
        return ReservationResult(error=BookingError.INVALID_SLOT)
    if day < now.date() or is_past_today(storage_time, day, now):
        return ReservationResult(error=BookingError.SLOT_IN_PAST)
    day_str = format_calendar_date(day)

    try:
        error = await _precheck(session, patient_id, data.provider_id, day, storage_time)
    except asyncio.TimeoutError:
        logger.warning("Booking pre-check timed out for provider %s on %s", data.provider_id, day_str)
        await safe_rollback(session)
        return ReservationResult(error=BookingError.TIMEOUT)
    except SQLAlchemyError as e:
        logger.warning("Booking pre-check failed for provider %s on %s: %s", data.provider_id, day_str, e)
        await safe_rollback(session)
        return ReservationResult(error=BookingError.STORE_UNAVAILABLE)
    if error is not None:
        logger.info(
            "Booking refused (%s): provider=%s date=%s time=%s patient=%s",
            error.value,
            data.provider_id,
            day_str,
            storage_time,
            patient_id,
        )
        return ReservationResult(error=error)

    stamp = int(now.timestamp())
    appointment = Appointment(
        provider_id=data.provider_id,
        patient_id=patient_id,
        date=day_str,
        time=storage_time,
        status=AppointmentStatus.PENDING.value,
        message=compose_message(data.symptoms, data.notes),
        appointment_type=AppointmentType.from_string(data.appointment_type).value,
        who_booked="client",
        booked_by_uid=patient_id,
        payment_option=data.payment_option,
        payment_proof_uri=data.payment_proof_uri,
        created_at=stamp,
        last_updated=stamp,
    )
    session.add(appointment)
    try:
        await bounded(session.commit())
    except IntegrityError:
        logger.info(
            "Booking lost the race for provider %s on %s at %s", data.provider_id, day_str, storage_time
        )
        await safe_rollback(session)
        return ReservationResult(error=BookingError.SLOT_ALREADY_BOOKED)
    except asyncio.TimeoutError:
        logger.warning("Booking commit timed out for provider %s on %s", data.provider_id, day_str)
        await safe_rollback(session)
        return ReservationResult(error=BookingError.TIMEOUT)
    except SQLAlchemyError as e:
        logger.exception("Booking commit failed: %s", e)
        await safe_rollback(session)
        return ReservationResult(error=BookingError.STORE_UNAVAILABLE)

    logger.info(
        "Appointment %s booked: provider=%s date=%s time=%s patient=%s",
        appointment.id,
        appointment.provider_id,
        appointment.date,
        appointment.time,
        patient_id,
    )
    return ReservationResult(appointment=appointment)
