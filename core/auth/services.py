import logging
import uuid
from datetime import timedelta
from typing import Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_

from apps.invest.errors import ApiError
from common.utils.dates import utcnow
from core.auth.models import User, UserSession, UserRole
from core.auth.schemas import TokenResponseSchema, UserRegisterSchema, UserResponseSchema
from core.auth.utils import PasswordUtils, JWTUtils

logger = logging.getLogger(__name__)


class AuthService:
    """Service class for authentication operations."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def register_user(self, user_data: UserRegisterSchema, role: str = UserRole.USER) -> User:
        """Register a new user."""
        existing_user = await self.get_user_by_email(user_data.email)
        if existing_user:
            raise ApiError.bad_request("Email already in use")

        user = User(
            name=user_data.name,
            email=user_data.email.lower(),
            password_hash=PasswordUtils.hash_password(user_data.password),
            role=role,
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """Authenticate a user by email and password."""
        stmt = select(User).where(
            and_(
                User.email == email.strip().lower(),
                User.is_active == True  # noqa: E712
            )
        )
        result = await self.db.execute(stmt)
        user = result.scalar_one_or_none()

        if not user or not PasswordUtils.verify_password(password, user.password_hash):
            return None

        # Update last login
        user.last_login = utcnow()
        await self.db.commit()
        await self.db.refresh(user)

        return user

    async def create_access_token(self, user: User) -> Tuple[str, str, int]:
        """Create an access token for a user and record its session."""
        token, jti, expires_in = JWTUtils.create_access_token(user)

        session = UserSession(
            user_id=user.id,
            token_jti=jti,
            expires_at=utcnow() + timedelta(seconds=expires_in)
        )

        self.db.add(session)
        await self.db.commit()

        return token, jti, expires_in

    async def login(self, email: str, password: str) -> TokenResponseSchema:
        """Exchange credentials for a bearer token tied to a new session row."""
        user = await self.authenticate_user(email, password)
        if not user:
            raise ApiError.unauthorized("Invalid email or password")

        access_token, _, expires_in = await self.create_access_token(user)
        logger.info(f"User {user.id} logged in")
        return TokenResponseSchema(
            access_token=access_token,
            expires_in=expires_in,
            user=UserResponseSchema.model_validate(user),
        )

    async def logout(self, token: str) -> None:
        token_data = JWTUtils.verify_token(token)
        if not token_data or not await self.revoke_token(token_data.jti):
            raise ApiError.unauthorized()
        logger.info(f"User {token_data.sub} logged out")

    async def verify_token(self, token: str) -> Optional[User]:
        """Verify a JWT token and return the user."""
        token_data = JWTUtils.verify_token(token)
        if not token_data or JWTUtils.is_token_expired(token_data):
            return None

        # Check if session exists and is not revoked
        stmt = select(UserSession).where(
            and_(
                UserSession.token_jti == token_data.jti,
                UserSession.is_revoked == False,  # noqa: E712
                UserSession.expires_at > utcnow()
            )
        )
        result = await self.db.execute(stmt)
        if not result.scalar_one_or_none():
            return None

        return await self.get_user_by_id(uuid.UUID(token_data.sub))

    async def revoke_token(self, jti: str) -> bool:
        """Revoke a token by marking its session as revoked."""
        result = await self.db.execute(select(UserSession).where(UserSession.token_jti == jti))
        session = result.scalar_one_or_none()

        if session:
            session.is_revoked = True
            await self.db.commit()
            return True

        return False

    async def get_user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()
