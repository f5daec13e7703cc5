"""
Request dependencies: current user, role checks and the shared seat ledger.
"""

from typing import Optional

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.core.exceptions import AuthenticationError, PermissionDeniedError
from booking_api.core.security import decode_access_token
from booking_api.db.session import get_db
from booking_api.models.user import User
from booking_api.services.seat_ledger import SeatLedger

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Access token is required")

    user_id = decode_access_token(credentials.credentials)
    user = await db.get(User, user_id)
    if user is None:
        raise AuthenticationError("User no longer exists")
    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    structlog.contextvars.bind_contextvars(user_id=user.id)
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise PermissionDeniedError()
    return user


def get_ledger(request: Request) -> SeatLedger:
    """The process-wide SeatLedger, created in the application lifespan."""
    return request.app.state.ledger
