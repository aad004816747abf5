"""
Authentication Pydantic schemas.

Defines request and response schemas for authentication and profile endpoints.
"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from datetime import datetime
from typing import Optional
from shiptrack.app.models.enums import UserRole, Language, Theme

PHONE_PATTERN = r"^[0-9]{10}$"
PINCODE_PATTERN = r"^[0-9]{6}$"


class AddressSchema(BaseModel):
    """Optional postal address on an account."""
    street: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    pincode: Optional[str] = Field(None, pattern=PINCODE_PATTERN, description="6-digit pincode")
    country: Optional[str] = Field("India", max_length=100)

    class Config:
        from_attributes = True


class NotificationPreferences(BaseModel):
    email: Optional[bool] = None
    sms: Optional[bool] = None
    push: Optional[bool] = None


class PreferencesUpdate(BaseModel):
    """Partial preferences; omitted keys keep their stored value."""
    notifications: Optional[NotificationPreferences] = None
    language: Optional[Language] = None
    theme: Optional[Theme] = None


class UserRegister(BaseModel):
    """
    Schema for user registration.

    Used by POST /auth/register endpoint. Every self-registered account gets
    the USER role.
    """
    full_name: str = Field(..., min_length=2, max_length=100, description="Full name")
    email: EmailStr = Field(..., description="User email address")
    phone: str = Field(..., pattern=PHONE_PATTERN, description="10-digit phone number")
    password: str = Field(..., min_length=8, max_length=64, description="Password (min 8 characters)")
    address: Optional[AddressSchema] = None

    @field_validator("full_name")
    @classmethod
    def strip_full_name(cls, value: str) -> str:
        return value.strip()

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()


class UserLogin(BaseModel):
    """
    Schema for user login.

    Used by POST /auth/login endpoint.
    """
    email: EmailStr = Field(..., description="Account email")
    password: str = Field(..., min_length=1, max_length=64, description="Password")


class UserResponse(BaseModel):
    """
    Schema for user information response.

    Used by GET /auth/me and embedded in token responses.
    """
    id: int
    full_name: str
    email: str
    phone: str
    role: UserRole
    is_active: bool
    is_email_verified: bool
    is_phone_verified: bool
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    country: Optional[str] = None
    preferences: dict
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    """
    Schema for JWT token response.

    Returned by successful login/register operations.
    """
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    user: UserResponse


class ProfileUpdate(BaseModel):
    """Schema for PUT /auth/profile; only supplied fields change."""
    full_name: Optional[str] = Field(None, min_length=2, max_length=100)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    address: Optional[AddressSchema] = None
    preferences: Optional[PreferencesUpdate] = None


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=64)
    new_password: str = Field(..., min_length=8, max_length=64)


class MessageResponse(BaseModel):
    message: str
