from pydantic import BaseModel, Field


class SlotInfo(BaseModel):
    display_time: str  # "2:30 PM"
    storage_time: str  # "14:30"
    duration_minutes: int
    is_bookable: bool
    is_occupied: bool


class AvailableSlotsResponse(BaseModel):
    provider_id: str
    date: str  # YYYY-MM-DD
    fully_unavailable: bool
    slots: list[SlotInfo]


class CancelAppointmentRequest(BaseModel):
    reason: str = Field(default="", max_length=500)


class BookedDatesResponse(BaseModel):
    dates: list[str]


class PatientCountResponse(BaseModel):
    provider_id: str
    patient_count: int
