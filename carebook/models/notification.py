from enum import Enum
from uuid import uuid4

from sqlmodel import Field, SQLModel


class NotificationType(str, Enum):
    NEW_BOOKING = "new_booking"
    CANCELLATION = "cancellation"
    GENERAL = "general"


class Notification(SQLModel, table=True):
    __tablename__ = "notifications"
    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    patient_id: str = Field(index=True)
    title: str
    message: str
    type: str = NotificationType.GENERAL.value
    appointment_id: str | None = Field(default=None, index=True)
    created_at: int
    is_read: bool = False
