from fastapi import APIRouter, Depends, status

from core.auth.dependencies import get_auth_service, get_bearer_token, get_current_active_user
from core.auth.models import User
from core.auth.schemas import (
    MessageResponseSchema,
    TokenResponseSchema,
    UserLoginSchema,
    UserRegisterSchema,
    UserResponseSchema,
)
from core.auth.services import AuthService

router = APIRouter()


@router.post("/register", response_model=UserResponseSchema, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegisterSchema,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Create a user account

    - **email**: stored lower-cased, must be unused
    - **password**: at least 8 characters with an uppercase letter and a digit
    """
    return await auth_service.register_user(user_data)


@router.post("/login", response_model=TokenResponseSchema)
async def login(
    credentials: UserLoginSchema,
    auth_service: AuthService = Depends(get_auth_service)
):
    return await auth_service.login(credentials.email, credentials.password)


@router.post("/logout", response_model=MessageResponseSchema)
async def logout(
    token: str = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Revoke the session behind the bearer token"""
    await auth_service.logout(token)
    return MessageResponseSchema(message="Successfully logged out")


@router.get("/me", response_model=UserResponseSchema)
async def get_me(current_user: User = Depends(get_current_active_user)):
    return current_user
