from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel


class ProviderUnavailableDate(SQLModel, table=True):
    """One blackout entry of a provider's calendar. Authored by provider tooling."""

    __tablename__ = "provider_unavailability"
    __table_args__ = (UniqueConstraint("provider_id", "date", name="uq_provider_unavailability_date"),)

    id: int | None = Field(default=None, primary_key=True)
    provider_id: str = Field(index=True)
    date: str  # YYYY-MM-DD
    full_day: bool = False
    times: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
