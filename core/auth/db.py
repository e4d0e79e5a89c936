import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from apps.invest.db import AsyncSessionLocal
from core.auth.config import get_auth_settings
from core.auth.models import User, UserRole
from core.auth.schemas import UserRegisterSchema
from core.auth.services import AuthService

logger = logging.getLogger(__name__)


async def create_default_admin(
    session: AsyncSession,
    name: Optional[str] = None,
    email: Optional[str] = None,
    password: Optional[str] = None
) -> User:
    """Create the admin user if it doesn't exist."""
    auth_settings = get_auth_settings()
    name = name or auth_settings.DEFAULT_ADMIN_NAME
    email = email or auth_settings.DEFAULT_ADMIN_EMAIL
    password = password or auth_settings.DEFAULT_ADMIN_PASSWORD

    auth_service = AuthService(session)
    existing_admin = await auth_service.get_user_by_email(email)
    if existing_admin:
        return existing_admin

    user_data = UserRegisterSchema(name=name, email=email, password=password)
    admin_user = await auth_service.register_user(user_data, role=UserRole.ADMIN)
    logger.info(f"Created admin user: {admin_user.email}")
    return admin_user


async def setup_initial_data() -> Optional[User]:
    """Setup initial auth data (the default admin user)."""
    if not get_auth_settings().CREATE_DEFAULT_ADMIN:
        return None

    async with AsyncSessionLocal() as session:
        return await create_default_admin(session)
