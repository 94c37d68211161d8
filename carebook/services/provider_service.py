import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carebook.core.config import settings
from carebook.core.db import bounded
from carebook.models.provider import Provider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderInfo:
    display_name: str
    specialization: str


def build_display_name(provider: Provider) -> str:
    parts = [provider.first_name, provider.middle_name, provider.last_name, provider.suffix]
    full = " ".join(p.strip() for p in parts if p and p.strip())
    if full:
        return full
    return (provider.name or "").strip() or settings.default_provider_name


def placeholder_provider() -> ProviderInfo:
    return ProviderInfo(
        display_name=settings.default_provider_name,
        specialization=settings.default_specialization,
    )


def _to_info(provider: Provider) -> ProviderInfo:
    return ProviderInfo(
        display_name=build_display_name(provider),
        specialization=provider.specialization or settings.default_specialization,
    )


async def get_provider(session: AsyncSession, provider_id: str) -> ProviderInfo | None:
    """Display info for a provider; None if unknown, unreachable or too slow."""
    try:
        result = await bounded(session.execute(select(Provider).where(Provider.id == provider_id)))
        provider = result.scalar_one_or_none()
    except (SQLAlchemyError, asyncio.TimeoutError) as e:
        logger.warning("Provider lookup failed for %s: %r", provider_id, e)
        return None
    if provider is None:
        logger.debug("Provider %s not found", provider_id)
        return None
    return _to_info(provider)


async def get_providers(session: AsyncSession, provider_ids: set[str]) -> dict[str, ProviderInfo]:
    """Bulk lookup for enrichment; missing or failed ids are simply absent."""
    if not provider_ids:
        return {}
    try:
        result = await bounded(
            session.execute(select(Provider).where(Provider.id.in_(sorted(provider_ids))))
        )
        providers = list(result.scalars().all())
    except (SQLAlchemyError, asyncio.TimeoutError) as e:
        logger.warning("Provider bulk lookup failed: %r", e)
        return {}
    return {p.id: _to_info(p) for p in providers}
