import asyncio
import logging
from datetime import date, datetime
from enum import Enum

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carebook.models.appointment import (
    UPCOMING_STATUSES,
    Appointment,
    AppointmentPublic,
    AppointmentStatus,
    can_transition,
)
from carebook.core.db import bounded, safe_rollback
from carebook.services.provider_service import ProviderInfo, get_providers, placeholder_provider
from carebook.services.time_format import format_calendar_date, to_12_hour

logger = logging.getLogger(__name__)


class StatusUpdateResult(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    STORE_UNAVAILABLE = "store_unavailable"
    TIMEOUT = "timeout"


def to_public(a: Appointment, provider: ProviderInfo | None = None) -> AppointmentPublic:
    return AppointmentPublic(
        id=a.id,
        provider_id=a.provider_id,
        patient_id=a.patient_id,
        date=a.date,
        time=a.time,
        display_time=to_12_hour(a.time),
        status=a.status,
        message=a.message,
        appointment_type=a.appointment_type,
        payment_option=a.payment_option,
        created_at=a.created_at,
        last_updated=a.last_updated,
        provider_name=provider.display_name if provider else None,
        provider_specialization=provider.specialization if provider else None,
    )


async def enrich_appointments(
    session: AsyncSession, appointments: list[Appointment]
) -> list[AppointmentPublic]:
    """Attach provider display info; unknown providers get the placeholder."""
    providers = await get_providers(session, {a.provider_id for a in appointments if a.provider_id})
    fallback = placeholder_provider()
    return [to_public(a, providers.get(a.provider_id, fallback)) for a in appointments]


async def list_appointments_for_patient(session: AsyncSession, patient_id: str) -> list[Appointment]:
    """All of the patient's appointments, newest booking first. Raises on store errors or timeout."""
    result = await bounded(
        session.execute(
            select(Appointment)
            .where(Appointment.patient_id == patient_id)
            .order_by(Appointment.created_at.desc())
        )
    )
    return list(result.scalars().all())


async def list_upcoming_appointments(
    session: AsyncSession, patient_id: str, today: date
) -> list[Appointment]:
    result = await bounded(
        session.execute(
            select(Appointment)
            .where(
                Appointment.patient_id == patient_id,
                Appointment.status.in_(UPCOMING_STATUSES),
                Appointment.date >= format_calendar_date(today),
            )
            .order_by(Appointment.date, Appointment.time)
        )
    )
    return list(result.scalars().all())


async def get_appointment(session: AsyncSession, appointment_id: str) -> Appointment | None:
    result = await bounded(session.execute(select(Appointment).where(Appointment.id == appointment_id)))
    return result.scalar_one_or_none()


async def count_patients_for_provider(session: AsyncSession, provider_id: str) -> int:
    result = await bounded(
        session.execute(
            select(func.count(func.distinct(Appointment.patient_id))).where(
                Appointment.provider_id == provider_id
            )
        )
    )
    return int(result.scalar_one() or 0)


def _append_note(message: str, note: str) -> str:
    return f"{message}\n{note}" if message else note


async def update_appointment_status(
    session: AsyncSession,
    appointment_id: str,
    new_status: AppointmentStatus,
    now: datetime,
    note: str | None = None,
    patient_id: str | None = None,
) -> StatusUpdateResult:
    """Apply one state-machine transition and commit it.

    With ``patient_id`` set, another patient's appointment is reported as not
    found. Cancellation appends ``"Cancelled: <reason>"`` to the message;
    records are never deleted.
    """
    try:
        appointment = await get_appointment(session, appointment_id)
        if appointment is None or (patient_id is not None and appointment.patient_id != patient_id):
            return StatusUpdateResult.NOT_FOUND
        if not can_transition(appointment.status, new_status.value):
            logger.info(
                "Rejected status change %s -> %s for appointment %s",
                appointment.status,
                new_status.value,
                appointment_id,
            )
            return StatusUpdateResult.INVALID_TRANSITION
        if new_status is AppointmentStatus.CANCELLED:
            note = f"Cancelled: {note or 'No reason given'}"
        if note:
            appointment.message = _append_note(appointment.message, note)
        appointment.status = new_status.value
        appointment.last_updated = int(now.timestamp())
        session.add(appointment)
        await bounded(session.commit())
    except asyncio.TimeoutError:
        logger.warning("Status update timed out for appointment %s", appointment_id)
        await safe_rollback(session)
        return StatusUpdateResult.TIMEOUT
    except SQLAlchemyError as e:
        logger.exception("Status update failed for appointment %s: %s", appointment_id, e)
        await safe_rollback(session)
        return StatusUpdateResult.STORE_UNAVAILABLE
    logger.info("Appointment %s is now %s", appointment_id, new_status.value)
    return StatusUpdateResult.OK


async def cancel_appointment(
    session: AsyncSession, appointment_id: str, patient_id: str, reason: str, now: datetime
) -> StatusUpdateResult:
    """Patient-initiated cancellation; other patients' appointments look not found."""
    return await update_appointment_status(
        session, appointment_id, AppointmentStatus.CANCELLED, now, note=reason, patient_id=patient_id
    )
