from booking_api.schemas.common import ApiResponse, ErrorResponse, PageParams, Pagination
from booking_api.schemas.user import UserCreate, UserLogin, UserResponse, AuthPayload
from booking_api.schemas.event import EventCreate, EventUpdate, EventResponse, EventListPayload
from booking_api.schemas.booking import BookingCreate, BookingCancel, BookingResponse, BookingListPayload

__all__ = [
    "ApiResponse", "ErrorResponse", "PageParams", "Pagination",
    "UserCreate", "UserLogin", "UserResponse", "AuthPayload",
    "EventCreate", "EventUpdate", "EventResponse", "EventListPayload",
    "BookingCreate", "BookingCancel", "BookingResponse", "BookingListPayload",
]
