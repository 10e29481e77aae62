"""
Provider policy access.

Workflows read policies through get_provider_policy(); only the provider
settings endpoint writes them.
"""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import ProviderPolicy
from shared.auth_context import AuthContext
from shared.errors import AuthorizationError, ValidationError

logger = logging.getLogger(__name__)

# Fields a provider may change through the settings endpoint
EDITABLE_POLICY_FIELDS = (
    "min_advance_hours",
    "max_advance_days",
    "allow_cross_day_exchanges",
    "require_provider_approval",
    "reminder_enabled",
    "reminder_day_before",
    "reminder_hours_before",
)


async def get_provider_policy(session: AsyncSession, provider_id: str) -> ProviderPolicy:
    """
    Load the policy for provider_id.

    Returns an unsaved ProviderPolicy with platform defaults when the provider
    has not stored one.
    """
    result = await session.execute(
        select(ProviderPolicy).where(ProviderPolicy.provider_id == provider_id)
    )
    policy = result.scalar_one_or_none()
    if policy is None:
        logger.debug(
            f"No stored policy for provider {provider_id}, using defaults",
            extra={"provider_id": provider_id},
        )
        return ProviderPolicy.defaults_for(provider_id)
    return policy


def _require_provider(actor: AuthContext) -> str:
    if not actor.is_provider:
        raise AuthorizationError("Only providers can manage settings")
    return actor.provider_id


async def get_settings_for_provider(session: AsyncSession, actor: AuthContext) -> ProviderPolicy:
    provider_id = _require_provider(actor)
    return await get_provider_policy(session, provider_id)


async def update_provider_policy(
    session: AsyncSession,
    actor: AuthContext,
    changes: dict[str, Any],
) -> ProviderPolicy:
    """
    Apply allowed field changes to the actor's own policy, creating it on first write.

    Unknown fields are ignored; None values leave the field untouched.
    """
    provider_id = _require_provider(actor)

    applied = {
        field: changes[field]
        for field in EDITABLE_POLICY_FIELDS
        if changes.get(field) is not None
    }
    if applied.get("reminder_hours_before", 1) <= 0:
        raise ValidationError("reminder_hours_before must be positive")
    if applied.get("min_advance_hours", 0) < 0 or applied.get("max_advance_days", 0) < 0:
        raise ValidationError("Advance windows cannot be negative")

    result = await session.execute(
        select(ProviderPolicy).where(ProviderPolicy.provider_id == provider_id)
    )
    policy = result.scalar_one_or_none()
    if policy is None:
        policy = ProviderPolicy.defaults_for(provider_id)
        session.add(policy)

    for field, value in applied.items():
        setattr(policy, field, value)

    await session.commit()
    await session.refresh(policy)

    logger.info(
        f"Provider policy updated: {sorted(applied)}",
        extra={"provider_id": provider_id, "actor_id": actor.user_id},
    )
    return policy
