import time
from enum import Enum
from uuid import uuid4

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    APPROVED = "approved"
    # Legacy status written by older clients; treated like confirmed
    BOOKED = "booked"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


ACTIVE_STATUSES: frozenset[str] = frozenset(
    s.value
    for s in (
        AppointmentStatus.PENDING,
        AppointmentStatus.APPROVED,
        AppointmentStatus.BOOKED,
        AppointmentStatus.CONFIRMED,
    )
)

UPCOMING_STATUSES: tuple[str, ...] = (
    AppointmentStatus.PENDING.value,
    AppointmentStatus.CONFIRMED.value,
    AppointmentStatus.APPROVED.value,
)

_TRANSITIONS: dict[str, frozenset[str]] = {
    AppointmentStatus.PENDING.value: frozenset({"confirmed", "approved", "cancelled"}),
    AppointmentStatus.CONFIRMED.value: frozenset({"completed", "cancelled"}),
    AppointmentStatus.APPROVED.value: frozenset({"completed", "cancelled"}),
    AppointmentStatus.BOOKED.value: frozenset({"completed", "cancelled"}),
    AppointmentStatus.CANCELLED.value: frozenset(),
    AppointmentStatus.COMPLETED.value: frozenset(),
}


def can_transition(current: str, new: str) -> bool:
    return new in _TRANSITIONS.get(current, frozenset())


class AppointmentType(str, Enum):
    CONSULTATION = "consultation"
    TREATMENT = "treatment"
    FOLLOW_UP = "follow_up"
    THERAPY = "therapy"
    ADJUSTMENT = "adjustment"
    ASSESSMENT = "assessment"

    @classmethod
    def from_string(cls, value: str | None) -> "AppointmentType":
        normalized = (value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return cls.CONSULTATION


def _epoch_seconds() -> int:
    return int(time.time())


def _new_id() -> str:
    return str(uuid4())


# Store-level double-booking guard: only one active row per provider/date/time.
_ACTIVE_SLOT_WHERE = text(
    "status IN (" + ", ".join(f"'{s}'" for s in sorted(ACTIVE_STATUSES)) + ")"
)


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    __table_args__ = (
        Index(
            "uq_appointments_active_slot",
            "provider_id",
            "date",
            "time",
            unique=True,
            postgresql_where=_ACTIVE_SLOT_WHERE,
            sqlite_where=_ACTIVE_SLOT_WHERE,
        ),
    )

    id: str = Field(default_factory=_new_id, primary_key=True)
    provider_id: str = Field(index=True)
    patient_id: str = Field(index=True)
    date: str = Field(index=True)  # YYYY-MM-DD
    time: str  # HH:MM, 24-hour
    status: str = Field(default=AppointmentStatus.PENDING.value, index=True)
    message: str = ""
    appointment_type: str = AppointmentType.CONSULTATION.value
    who_booked: str = "client"
    booked_by_uid: str = ""
    payment_option: str = ""
    payment_proof_uri: str = ""
    created_at: int = Field(default_factory=_epoch_seconds)
    last_updated: int = Field(default_factory=_epoch_seconds)


class AppointmentCreate(SQLModel):
    provider_id: str
    date: str  # YYYY-MM-DD
    time: str  # "10:00 AM" or "10:00"
    appointment_type: str | None = None
    symptoms: str = ""
    notes: str = ""
    payment_option: str = ""
    payment_proof_uri: str = ""


class AppointmentPublic(SQLModel):
    id: str
    provider_id: str
    patient_id: str
    date: str
    time: str
    display_time: str
    status: str
    message: str
    appointment_type: str
    payment_option: str = ""
    created_at: int
    last_updated: int
    provider_name: str | None = None
    provider_specialization: str | None = None
