import logging
import time

from carebook.core.config import settings
from carebook.core.db import async_session_maker
from carebook.models.notification import Notification, NotificationType

logger = logging.getLogger(__name__)


def build_new_booking_message(provider_name: str, date_str: str, display_time: str) -> str:
    return (
        f"Your appointment with {provider_name} on {date_str} at {display_time} "
        "has been submitted and is pending approval."
    )


async def dispatch_booking_notification(
    patient_id: str,
    appointment_id: str,
    provider_name: str,
    date_str: str,
    display_time: str,
) -> None:
    """Record a "new booking" notification for the patient (call from background task).

    Runs after the booking committed; any failure is logged and never propagates.
    """
    if not settings.notifications_enabled:
        logger.debug("Notifications disabled, skipping booking notification")
        return
    try:
        async with async_session_maker() as session:
            try:
                session.add(
                    Notification(
                        patient_id=patient_id,
                        title="New Appointment Booked",
                        message=build_new_booking_message(provider_name, date_str, display_time),
                        type=NotificationType.NEW_BOOKING.value,
                        appointment_id=appointment_id,
                        created_at=int(time.time()),
                    )
                )
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        logger.info("Booking notification created for appointment %s", appointment_id)
    except Exception as e:
        logger.exception("Failed to create booking notification for %s: %s", appointment_id, e)
