import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carebook.core.config import settings
from carebook.models.unavailability import ProviderUnavailableDate
from carebook.services.time_format import format_calendar_date, normalize_storage_time, to_24_hour

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnavailableDate:
    date: str
    full_day: bool = False
    times: frozenset[str] = frozenset()


@dataclass(frozen=True)
class UnavailabilityRecord:
    provider_id: str
    dates: Mapping[str, UnavailableDate] = field(default_factory=dict)


class UnavailabilityCalendar:
    """Answers blackout questions for one provider.

    Built from ``None`` (no record for the provider) it has no exclusions.
    A full-day entry wins over any per-time entries for the same date.
    """

    def __init__(self, record: UnavailabilityRecord | None = None) -> None:
        self.record = record

    def _entry(self, day: date) -> UnavailableDate | None:
        if self.record is None:
            return None
        return self.record.dates.get(format_calendar_date(day))

    def is_date_fully_unavailable(self, day: date) -> bool:
        entry = self._entry(day)
        return bool(entry and entry.full_day)

    def unavailable_times(self, day: date) -> frozenset[str]:
        entry = self._entry(day)
        if entry is None or entry.full_day:
            return frozenset()
        return entry.times

    def is_time_unavailable(self, day: date, storage_time: str) -> bool:
        if self.is_date_fully_unavailable(day):
            return True
        return normalize_storage_time(storage_time) in self.unavailable_times(day)

    def is_available_for_query(self, day: date, display_time: str) -> bool:
        return not self.is_time_unavailable(day, to_24_hour(display_time))


def build_record(provider_id: str, rows: list[ProviderUnavailableDate]) -> UnavailabilityRecord:
    """Merge stored rows into one record; duplicate dates OR full_day and union times."""
    dates: dict[str, UnavailableDate] = {}
    for row in rows:
        times = frozenset(normalize_storage_time(t) for t in (row.times or []) if isinstance(t, str))
        existing = dates.get(row.date)
        if existing is not None:
            dates[row.date] = UnavailableDate(
                date=row.date,
                full_day=existing.full_day or row.full_day,
                times=existing.times | times,
            )
        else:
            dates[row.date] = UnavailableDate(date=row.date, full_day=row.full_day, times=times)
    return UnavailabilityRecord(provider_id=provider_id, dates=dates)


async def fetch_unavailability(
    session: AsyncSession, provider_id: str
) -> UnavailabilityRecord | None:
    """Provider's blackout record, or None if the provider never declared one. Raises on store errors."""
    result = await session.execute(
        select(ProviderUnavailableDate).where(ProviderUnavailableDate.provider_id == provider_id)
    )
    rows = list(result.scalars().all())
    if not rows:
        return None
    return build_record(provider_id, rows)


async def load_calendar(session: AsyncSession, provider_id: str) -> UnavailabilityCalendar:
    """Calendar for availability display. Fails open: store errors mean no exclusions."""
    try:
        record = await asyncio.wait_for(
            fetch_unavailability(session, provider_id),
            timeout=settings.store_timeout_seconds,
        )
    except (SQLAlchemyError, asyncio.TimeoutError) as e:
        logger.warning(
            "Unavailability lookup failed for provider %s, assuming no exclusions: %s",
            provider_id,
            e,
        )
        return UnavailabilityCalendar()
    if record is None:
        logger.debug("No unavailability record for provider %s", provider_id)
    return UnavailabilityCalendar(record)
