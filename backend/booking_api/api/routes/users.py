"""
User administration endpoints. Admin only.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.api.deps import require_admin
from booking_api.db.session import get_db
from booking_api.models.user import User, UserRole
from booking_api.schemas.common import ApiResponse, PageParams, Pagination
from booking_api.schemas.user import RoleUpdate, UserListPayload, UserResponse
from booking_api.services import user_service

router = APIRouter(prefix="/users", tags=["Users"], dependencies=[Depends(require_admin)])


@router.get("/", response_model=ApiResponse[UserListPayload])
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    role: Optional[UserRole] = Query(None),
    is_active: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    params = PageParams(page=page, limit=limit)
    users, total = await user_service.list_users(db, params, role, is_active)
    payload = UserListPayload(
        users=[UserResponse.model_validate(u) for u in users],
        pagination=Pagination.build(params, total),
    )
    return ApiResponse(message="Users retrieved successfully", data=payload)


@router.get("/{user_id}", response_model=ApiResponse[UserResponse])
async def get_user(user_id: int, db: AsyncSession = Depends(get_db)):
    user = await user_service.get_user(db, user_id)
    return ApiResponse(message="User retrieved successfully", data=UserResponse.model_validate(user))


@router.put("/{user_id}/role", response_model=ApiResponse[UserResponse])
async def update_user_role(user_id: int, body: RoleUpdate, db: AsyncSession = Depends(get_db)):
    user = await user_service.update_role(db, user_id, body.role)
    return ApiResponse(message="User role updated successfully", data=UserResponse.model_validate(user))


@router.put("/{user_id}/toggle-status", response_model=ApiResponse[UserResponse])
async def toggle_user_status(user_id: int, db: AsyncSession = Depends(get_db)):
    user = await user_service.toggle_status(db, user_id)
    state = "activated" if user.is_active else "deactivated"
    return ApiResponse(message=f"User {state} successfully", data=UserResponse.model_validate(user))


@router.delete("/{user_id}", response_model=ApiResponse)
async def delete_user(user_id: int, db: AsyncSession = Depends(get_db)):
    await user_service.delete_user(db, user_id)
    return ApiResponse(message="User deleted successfully")
