import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext

from core.auth.schemas import TokenDataSchema
from core.auth.models import User
from core.auth.config import get_auth_settings

logger = logging.getLogger(__name__)


def _build_password_context() -> CryptContext:
    """Bcrypt when the installed backend works, PBKDF2 otherwise."""
    try:
        context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=12,
            bcrypt__ident="2b"
        )
        context.hash("test")
        return context
    except Exception as e:
        logger.warning(f"Bcrypt initialization failed, falling back to PBKDF2: {e}")
        return CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


pwd_context = _build_password_context()

# Get auth settings
auth_settings = get_auth_settings()


def _truncate(password: str) -> str:
    # Bcrypt has a 72-byte limit
    encoded = password.encode('utf-8')
    if len(encoded) > 72:
        return encoded[:72].decode('utf-8', errors='ignore')
    return password


class PasswordUtils:
    """Utilities for password hashing and verification."""

    @staticmethod
    def hash_password(password: str) -> str:
        return pwd_context.hash(_truncate(password))

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        try:
            return pwd_context.verify(_truncate(plain_password), hashed_password)
        except ValueError:
            # Hash produced by a scheme this context does not know
            return False


class JWTUtils:
    """Utilities for JWT token creation and validation."""

    @staticmethod
    def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> tuple[str, str, int]:
        """
        Create a JWT access token for a user.

        Returns:
            tuple: (token, jti, expires_in_seconds)
        """
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(minutes=auth_settings.JWT_EXPIRE_MINUTES))
        jti = str(uuid.uuid4())  # Unique token identifier

        to_encode = {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role,
            "exp": expire,
            "iat": now,
            "jti": jti
        }

        encoded_jwt = jwt.encode(to_encode, auth_settings.JWT_SECRET_KEY, algorithm=auth_settings.JWT_ALGORITHM)
        expires_in = int((expire - now).total_seconds())

        return encoded_jwt, jti, expires_in

    @staticmethod
    def verify_token(token: str) -> Optional[TokenDataSchema]:
        """
        Verify and decode a JWT token.

        Returns:
            TokenDataSchema if valid, None if invalid
        """
        try:
            payload = jwt.decode(token, auth_settings.JWT_SECRET_KEY, algorithms=[auth_settings.JWT_ALGORITHM])
        except JWTError:
            return None

        required = ("sub", "email", "role", "exp", "iat", "jti")
        if not all(payload.get(key) for key in required):
            return None

        return TokenDataSchema(**{key: payload[key] for key in required})

    @staticmethod
    def is_token_expired(token_data: TokenDataSchema) -> bool:
        return datetime.now(timezone.utc).timestamp() > token_data.exp
