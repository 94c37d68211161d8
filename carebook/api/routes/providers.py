import asyncio
import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carebook.api.deps import Clock, get_clock, get_session
from carebook.api.schemas.appointment import AvailableSlotsResponse, PatientCountResponse, SlotInfo
from carebook.models.provider import ProviderPublic
from carebook.services.appointment_service import count_patients_for_provider
from carebook.services.availability_service import AvailabilityQuery, resolve_day
from carebook.services.provider_service import get_provider, placeholder_provider
from carebook.services.time_format import format_calendar_date

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/providers", tags=["providers"])


@router.get("/{provider_id}/slots", response_model=AvailableSlotsResponse)
async def available_slots(
    provider_id: str,
    date_param: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> AvailableSlotsResponse:
    """All slots of the day for this provider, in time order, each flagged bookable or not."""
    day = await resolve_day(
        session, AvailabilityQuery(provider_id=provider_id, date=date_param, now=clock())
    )
    return AvailableSlotsResponse(
        provider_id=provider_id,
        date=format_calendar_date(date_param),
        fully_unavailable=day.fully_unavailable,
        slots=[
            SlotInfo(
                display_time=s.display_time,
                storage_time=s.storage_time,
                duration_minutes=s.duration_minutes,
                is_bookable=s.is_bookable,
                is_occupied=s.is_occupied,
            )
            for s in day.slots
        ],
    )


@router.get("/{provider_id}", response_model=ProviderPublic)
async def provider_details(
    provider_id: str,
    session: AsyncSession = Depends(get_session),
) -> ProviderPublic:
    info = await get_provider(session, provider_id) or placeholder_provider()
    return ProviderPublic(
        id=provider_id,
        display_name=info.display_name,
        specialization=info.specialization,
    )


@router.get("/{provider_id}/patients/count", response_model=PatientCountResponse)
async def provider_patient_count(
    provider_id: str,
    session: AsyncSession = Depends(get_session),
) -> PatientCountResponse:
    try:
        count = await count_patients_for_provider(session, provider_id)
    except asyncio.TimeoutError as e:
        logger.warning("Patient count timed out for provider %s", provider_id)
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail="Patient count timed out") from e
    except SQLAlchemyError as e:
        logger.warning("Patient count failed for provider %s: %s", provider_id, e)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Patient count unavailable") from e
    return PatientCountResponse(provider_id=provider_id, patient_count=count)
