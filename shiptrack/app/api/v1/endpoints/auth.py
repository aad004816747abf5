"""
Authentication API endpoints.

Provides register, login, profile and logout endpoints.
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from shiptrack.app.db.session import get_db
from shiptrack.app.models.user import User
from shiptrack.app.schemas.auth import (
    UserRegister, UserLogin, TokenResponse, UserResponse,
    ProfileUpdate, PasswordChange, MessageResponse
)
from shiptrack.app.core.dependencies import get_current_user, get_bearer_token
from shiptrack.app.services.identity import IdentityService, issue_token

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _client_ip(request: Request):
    return request.client.host if request.client else None


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Register a new customer account.

    Accounts created here always get the USER role; agents and admins are
    provisioned by seeding.
    """
    user = await IdentityService.register(db, user_data, ip_address=_client_ip(request))
    return TokenResponse(access_token=issue_token(user), user=UserResponse.model_validate(user))


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Login user and return JWT token.

    Five consecutive failures lock the account for two hours (423).
    """
    user = await IdentityService.find_by_credentials(
        db, credentials.email, credentials.password, ip_address=_client_ip(request)
    )
    return TokenResponse(access_token=issue_token(user), user=UserResponse.model_validate(user))


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current authenticated user information."""
    return UserResponse.model_validate(current_user)


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    profile: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    user = await IdentityService.update_profile(db, current_user, profile)
    return UserResponse.model_validate(user)


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    payload: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await IdentityService.change_password(db, current_user, payload.current_password, payload.new_password)
    return MessageResponse(message="Password changed successfully")


@router.post("/logout", response_model=MessageResponse)
async def logout(
    current_user: User = Depends(get_current_user),
    token: str = Depends(get_bearer_token),
    db: AsyncSession = Depends(get_db)
):
    """Revoke the presented token."""
    await IdentityService.logout(db, current_user, token)
    return MessageResponse(message="Logged out successfully")
