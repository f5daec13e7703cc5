"""
Authentication service handling registration, login and profile changes.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.core.exceptions import AuthenticationError, ConflictError, ValidationError
from booking_api.core.logging import get_logger
from booking_api.core.security import create_access_token, hash_password, verify_password
from booking_api.db.base import utc_now
from booking_api.models.user import User
from booking_api.schemas.user import PasswordChange, ProfileUpdate, UserCreate, UserLogin

logger = get_logger(__name__)


def issue_token(user: User) -> str:
    return create_access_token(data={"sub": str(user.id), "email": user.email})


async def register_user(db: AsyncSession, user_data: UserCreate) -> User:
    """
    Register a new user with hashed password.
    Raises ConflictError if the email is already registered.
    """
    email = user_data.email.lower()
    result = await db.execute(select(User.id).where(User.email == email))
    if result.first() is not None:
        logger.warning("registration_failed", reason="email_exists", email=email)
        raise ConflictError("User with this email already exists")

    user = User(
        first_name=user_data.first_name,
        last_name=user_data.last_name,
        email=email,
        hashed_password=hash_password(user_data.password),
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)

    logger.info("user_registered", user_id=user.id, email=user.email)
    return user


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> User:
    """
    Check credentials and stamp last_login.
    Raises AuthenticationError for unknown email, wrong password or a
    deactivated account.
    """
    result = await db.execute(select(User).where(User.email == login_data.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed", email=login_data.email)
        raise AuthenticationError("Invalid email or password")

    if not user.is_active:
        logger.warning("login_failed", reason="deactivated", user_id=user.id)
        raise AuthenticationError("Account is deactivated")

    user.last_login = utc_now()
    await db.flush()

    logger.info("user_logged_in", user_id=user.id)
    return user


async def update_profile(db: AsyncSession, user: User, changes: ProfileUpdate) -> User:
    for field, value in changes.model_dump(exclude_none=True).items():
        setattr(user, field, value)
    await db.flush()
    await db.refresh(user)
    return user


async def change_password(db: AsyncSession, user: User, change: PasswordChange) -> None:
    if not verify_password(change.current_password, user.hashed_password):
        raise ValidationError("Current password is incorrect")

    user.hashed_password = hash_password(change.new_password)
    await db.flush()
    logger.info("password_changed", user_id=user.id)
