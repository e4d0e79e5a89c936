import uuid
from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, ForeignKey, Index, Uuid, DateTime
import sqlalchemy.dialects.postgresql as pg

from common.utils.dates import utcnow


class User(SQLModel, table=True):
    """User model with role-based access."""
    __tablename__ = "users"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        sa_column=Column(Uuid, primary_key=True, nullable=False)
    )
    name: str = Field(sa_column=Column(pg.VARCHAR(255), nullable=False))
    email: str = Field(sa_column=Column(pg.VARCHAR(255), unique=True, nullable=False))
    password_hash: str = Field(sa_column=Column(pg.VARCHAR(255), nullable=False))
    role: str = Field(default="user", sa_column=Column(pg.VARCHAR(50), nullable=False, default="user"))
    is_active: bool = Field(default=True, sa_column=Column(pg.BOOLEAN, nullable=False, default=True))
    last_login: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow)
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    )

    def __repr__(self):
        return f"<User {self.name} ({self.email})>"

    __table_args__ = (
        Index('idx_users_role', 'role'),
    )


class UserSession(SQLModel, table=True):
    """User session model for JWT token management and blacklisting."""
    __tablename__ = "user_sessions"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        sa_column=Column(Uuid, primary_key=True, nullable=False)
    )
    user_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    )
    token_jti: str = Field(sa_column=Column(pg.VARCHAR(255), unique=True, nullable=False))  # JWT ID
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    is_revoked: bool = Field(default=False, sa_column=Column(pg.BOOLEAN, nullable=False, default=False))

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow)
    )

    def __repr__(self):
        return f"<UserSession {self.token_jti} (user: {self.user_id})>"

    __table_args__ = (
        Index('idx_user_sessions_user_id', 'user_id'),
        Index('idx_user_sessions_expires_at', 'expires_at'),
    )


# Define user roles as constants
class UserRole:
    ADMIN = "admin"
    USER = "user"
