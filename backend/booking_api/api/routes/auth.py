"""
Authentication endpoints: register, login and the caller's own profile.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.api.deps import get_current_user
from booking_api.db.session import get_db
from booking_api.models.user import User
from booking_api.schemas.common import ApiResponse
from booking_api.schemas.user import (
    AuthPayload,
    PasswordChange,
    ProfileUpdate,
    UserCreate,
    UserLogin,
    UserResponse,
)
from booking_api.services import auth_service

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=ApiResponse[AuthPayload], status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """Register a new user account and log it in."""
    user = await auth_service.register_user(db, user_data)
    payload = AuthPayload(
        user=UserResponse.model_validate(user),
        access_token=auth_service.issue_token(user),
    )
    return ApiResponse(message="User registered successfully", data=payload)


@router.post("/login", response_model=ApiResponse[AuthPayload])
async def login(login_data: UserLogin, db: AsyncSession = Depends(get_db)):
    """Authenticate and receive a JWT access token."""
    user = await auth_service.authenticate_user(db, login_data)
    payload = AuthPayload(
        user=UserResponse.model_validate(user),
        access_token=auth_service.issue_token(user),
    )
    return ApiResponse(message="Login successful", data=payload)


@router.get("/profile", response_model=ApiResponse[UserResponse])
async def get_profile(user: User = Depends(get_current_user)):
    return ApiResponse(message="Profile retrieved successfully", data=UserResponse.model_validate(user))


@router.put("/profile", response_model=ApiResponse[UserResponse])
async def update_profile(
    changes: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await auth_service.update_profile(db, user, changes)
    return ApiResponse(message="Profile updated successfully", data=UserResponse.model_validate(user))


@router.put("/change-password", response_model=ApiResponse)
async def change_password(
    change: PasswordChange,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await auth_service.change_password(db, user, change)
    return ApiResponse(message="Password changed successfully")
