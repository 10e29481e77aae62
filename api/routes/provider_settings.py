"""
Provider Settings API Endpoints

- GET /provider/settings - Current exchange/reminder policy (defaults when never saved)
- PUT /provider/settings - Update the policy
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_auth_context
from api.models.scheduling import ProviderSettingsResponse, ProviderSettingsUpdate
from database.connection import get_db
from scheduling.services import get_settings_for_provider, update_provider_policy
from shared.auth_context import AuthContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/provider/settings", tags=["provider"])


@router.get("", response_model=ProviderSettingsResponse)
async def get_provider_settings(
    actor: Annotated[AuthContext, Depends(get_auth_context)],
    session: Annotated[AsyncSession, Depends(get_db)],
):
    return await get_settings_for_provider(session, actor)


@router.put("", response_model=ProviderSettingsResponse)
async def put_provider_settings(
    body: ProviderSettingsUpdate,
    actor: Annotated[AuthContext, Depends(get_auth_context)],
    session: Annotated[AsyncSession, Depends(get_db)],
):
    changes = body.model_dump(exclude_none=True)
    return await update_provider_policy(session, actor, changes)
