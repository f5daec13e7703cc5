"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from booking_api.api.routes import auth, events, bookings, users
from booking_api.schemas.common import ErrorResponse

# Documented failure envelope, rendered by api/errors.py
_error_responses = {
    code: {"model": ErrorResponse}
    for code in (400, 401, 403, 404, 409)
}

api_router = APIRouter(prefix="/api/v1", responses=_error_responses)
api_router.include_router(auth.router)
api_router.include_router(events.router)
api_router.include_router(bookings.router)
api_router.include_router(users.router)
