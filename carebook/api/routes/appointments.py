import asyncio
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carebook.api.deps import Clock, get_clock, get_current_patient_id, get_session
from carebook.api.schemas.appointment import BookedDatesResponse, CancelAppointmentRequest
from carebook.models.appointment import AppointmentCreate, AppointmentPublic
from carebook.services.appointment_service import (
    StatusUpdateResult,
    cancel_appointment,
    enrich_appointments,
    list_appointments_for_patient,
    list_upcoming_appointments,
    to_public,
)
from carebook.services.booking_service import BookingError, try_reserve
from carebook.services.conflict_service import get_booked_dates_for_patient
from carebook.services.notification_service import dispatch_booking_notification
from carebook.services.provider_service import get_provider, placeholder_provider
from carebook.services.time_format import to_12_hour

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/appointments", tags=["appointments"])

_BOOKING_ERRORS: dict[BookingError, tuple[int, str]] = {
    BookingError.INVALID_SLOT: (
        status.HTTP_400_BAD_REQUEST,
        "Requested date or time is not a bookable slot.",
    ),
    BookingError.SLOT_IN_PAST: (
        status.HTTP_409_CONFLICT,
        "This time has already passed.",
    ),
    BookingError.SLOT_ALREADY_BOOKED: (
        status.HTTP_409_CONFLICT,
        "This time is already booked.",
    ),
    BookingError.PATIENT_ALREADY_BOOKED_THAT_DATE: (
        status.HTTP_409_CONFLICT,
        "You already have an appointment on this date.",
    ),
    BookingError.PROVIDER_UNAVAILABLE: (
        status.HTTP_409_CONFLICT,
        "The provider is unavailable at this time.",
    ),
    BookingError.STORE_UNAVAILABLE: (
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Booking could not be saved. Please try again.",
    ),
    BookingError.TIMEOUT: (
        status.HTTP_504_GATEWAY_TIMEOUT,
        "Booking timed out and was not saved. Please try again.",
    ),
}


@router.post("", response_model=AppointmentPublic, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    data: AppointmentCreate,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    patient_id: str = Depends(get_current_patient_id),
    clock: Clock = Depends(get_clock),
) -> AppointmentPublic:
    result = await try_reserve(session, patient_id, data, now=clock())
    if not result.ok:
        status_code, detail = _BOOKING_ERRORS[result.error]
        raise HTTPException(status_code=status_code, detail={"code": result.error.value, "message": detail})
    appointment = result.appointment
    provider = await get_provider(session, appointment.provider_id) or placeholder_provider()
    # Fire-and-forget: the booking is already committed
    background_tasks.add_task(
        dispatch_booking_notification,
        patient_id=patient_id,
        appointment_id=appointment.id,
        provider_name=provider.display_name,
        date_str=appointment.date,
        display_time=to_12_hour(appointment.time),
    )
    return to_public(appointment, provider)


@router.get("", response_model=list[AppointmentPublic])
async def list_my_appointments(
    session: AsyncSession = Depends(get_session),
    patient_id: str = Depends(get_current_patient_id),
) -> list[AppointmentPublic]:
    try:
        appointments = await list_appointments_for_patient(session, patient_id)
    except asyncio.TimeoutError as e:
        logger.warning("List appointments timed out for patient %s", patient_id)
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail="Appointments timed out") from e
    except SQLAlchemyError as e:
        logger.exception("List appointments failed: %s", e)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Appointments unavailable") from e
    return await enrich_appointments(session, appointments)


@router.get("/upcoming", response_model=list[AppointmentPublic])
async def list_my_upcoming_appointments(
    session: AsyncSession = Depends(get_session),
    patient_id: str = Depends(get_current_patient_id),
    clock: Clock = Depends(get_clock),
) -> list[AppointmentPublic]:
    try:
        appointments = await list_upcoming_appointments(session, patient_id, clock().date())
    except asyncio.TimeoutError as e:
        logger.warning("List upcoming appointments timed out for patient %s", patient_id)
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail="Appointments timed out") from e
    except SQLAlchemyError as e:
        logger.exception("List upcoming appointments failed: %s", e)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Appointments unavailable") from e
    return await enrich_appointments(session, appointments)


@router.get("/booked-dates", response_model=BookedDatesResponse)
async def my_booked_dates(
    session: AsyncSession = Depends(get_session),
    patient_id: str = Depends(get_current_patient_id),
) -> BookedDatesResponse:
    """Dates the patient already holds an active booking on (for greying out the date picker)."""
    dates = await get_booked_dates_for_patient(session, patient_id)
    return BookedDatesResponse(dates=sorted(dates))


@router.post("/{appointment_id}/cancel", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_my_appointment(
    appointment_id: str,
    body: CancelAppointmentRequest,
    session: AsyncSession = Depends(get_session),
    patient_id: str = Depends(get_current_patient_id),
    clock: Clock = Depends(get_clock),
) -> None:
    outcome = await cancel_appointment(session, appointment_id, patient_id, body.reason, now=clock())
    if outcome is StatusUpdateResult.NOT_FOUND:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Appointment not found or not yours",
        )
    if outcome is StatusUpdateResult.INVALID_TRANSITION:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Appointment can no longer be cancelled",
        )
    if outcome is StatusUpdateResult.TIMEOUT:
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail="Cancellation timed out")
    if outcome is StatusUpdateResult.STORE_UNAVAILABLE:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Cancellation failed")
