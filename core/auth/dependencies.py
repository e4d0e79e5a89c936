from typing import List, Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from apps.invest.db import get_invest_session
from apps.invest.errors import ApiError
from core.auth.models import User, UserRole
from core.auth.services import AuthService


# Missing credentials are reported as {"error": "Unauthorized"} by get_bearer_token
bearer_scheme = HTTPBearer(auto_error=False)


async def get_auth_service(session: AsyncSession = Depends(get_invest_session)) -> AuthService:
    """Dependency to get auth service"""
    return AuthService(session)


async def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> str:
    if not credentials or not credentials.credentials:
        raise ApiError.unauthorized()
    return credentials.credentials


async def get_current_user(
    token: str = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service)
) -> User:
    """User behind a valid, unrevoked session token."""
    user = await auth_service.verify_token(token)
    if not user:
        raise ApiError.unauthorized()
    return user


async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_active:
        raise ApiError.forbidden("Account is disabled")
    return current_user


def require_role(allowed_roles: List[str]):
    """
    Build a dependency that lets through active users holding one of
    ``allowed_roles`` and answers 403 for everyone else.
    """
    async def check_role(current_user: User = Depends(get_current_active_user)) -> User:
        if current_user.role not in allowed_roles:
            raise ApiError.forbidden()
        return current_user

    return check_role


require_admin = require_role([UserRole.ADMIN])
