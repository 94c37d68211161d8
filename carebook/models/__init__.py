from carebook.models.appointment import (
    ACTIVE_STATUSES,
    Appointment,
    AppointmentCreate,
    AppointmentPublic,
    AppointmentStatus,
    AppointmentType,
)
from carebook.models.notification import Notification, NotificationType
from carebook.models.provider import Provider, ProviderPublic
from carebook.models.unavailability import ProviderUnavailableDate

__all__ = [
    "ACTIVE_STATUSES",
    "Appointment",
    "AppointmentCreate",
    "AppointmentPublic",
    "AppointmentStatus",
    "AppointmentType",
    "Notification",
    "NotificationType",
    "Provider",
    "ProviderPublic",
    "ProviderUnavailableDate",
]
