import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from core.auth.config import get_auth_settings


def validate_password_strength(value: str) -> str:
    settings = get_auth_settings()
    if len(value) < settings.PASSWORD_MIN_LENGTH:
        raise ValueError(f'Password must be at least {settings.PASSWORD_MIN_LENGTH} characters long')
    if settings.PASSWORD_REQUIRE_UPPERCASE and not any(c.isupper() for c in value):
        raise ValueError('Password must contain at least one uppercase letter')
    if settings.PASSWORD_REQUIRE_DIGITS and not any(c.isdigit() for c in value):
        raise ValueError('Password must contain at least one digit')
    return value


# Request Schemas
class UserRegisterSchema(BaseModel):
    """Schema for user registration."""
    name: str = Field(..., min_length=1, max_length=255, description="Display name")
    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., max_length=128, description="Password")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Name is required')
        return v

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.lower()

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        return validate_password_strength(v)


class UserLoginSchema(BaseModel):
    """Schema for user login."""
    email: str = Field(..., min_length=1, description="Email address")
    password: str = Field(..., min_length=1, description="Password")


# Response Schemas
class UserResponseSchema(BaseModel):
    """Schema for user response (without sensitive data)."""
    id: uuid.UUID
    name: str
    email: str
    role: str
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {
        "from_attributes": True
    }


class TokenResponseSchema(BaseModel):
    """Schema for authentication token response."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    user: UserResponseSchema


class TokenDataSchema(BaseModel):
    """Schema for JWT token data."""
    sub: str  # user_id
    email: str
    role: str
    exp: int
    iat: int
    jti: str


class MessageResponseSchema(BaseModel):
    message: str
