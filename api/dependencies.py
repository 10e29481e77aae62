"""
Request-scoped dependencies shared by all routers.

- get_auth_context: resolves the bearer token into an AuthContext
- get_clock / get_notification_sender: injectable collaborators, overridden in tests
"""

import hmac
import logging
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from scheduling.services.notification_sender import LoggingNotificationSender, NotificationSender
from shared.auth_context import AuthContext
from shared.clock import Clock, SystemClock
from shared.config import get_settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def verify_token(token: str) -> dict:
    """
    Verify JWT token and return its claims.

    Raises:
        HTTPException 401: Signature, expiry or claim shape is invalid
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
        )

    if not payload.get("sub") or not payload.get("role"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token is missing subject or role",
        )
    return payload


async def get_auth_context(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> AuthContext:
    """Dependency resolving the authenticated actor."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_token(credentials.credentials)
    try:
        return AuthContext.from_claims(payload)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown role: {payload.get('role')}",
        )


async def verify_cron_secret(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> None:
    """Dependency guarding scheduler-only endpoints."""
    settings = get_settings()
    if not credentials or not hmac.compare_digest(credentials.credentials, settings.CRON_SECRET):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


def get_clock() -> Clock:
    return SystemClock()


def get_notification_sender() -> NotificationSender:
    return LoggingNotificationSender()
