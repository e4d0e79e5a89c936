import uuid
from datetime import datetime
from typing import Optional, List
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, ForeignKey, Index, Uuid, DateTime
import sqlalchemy.dialects.postgresql as pg

from apps.invest.models.types import JSONType
from common.utils.dates import utcnow


class DocumentStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def all_statuses(cls) -> List[str]:
        return [cls.PENDING, cls.PROCESSING, cls.COMPLETED, cls.FAILED]


class Document(SQLModel, table=True):
    __tablename__ = "documents"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        sa_column=Column(Uuid, primary_key=True, nullable=False)
    )

    name: str = Field(sa_column=Column(pg.VARCHAR(255), nullable=False))
    description: Optional[str] = Field(default=None, sa_column=Column(pg.TEXT, nullable=True))

    # Current file
    file_url: str = Field(sa_column=Column(pg.TEXT, nullable=False))
    storage_key: Optional[str] = Field(default=None, sa_column=Column(pg.TEXT, nullable=True))
    file_name: Optional[str] = Field(default=None, sa_column=Column(pg.VARCHAR(255), nullable=True))
    mime_type: Optional[str] = Field(default=None, sa_column=Column(pg.VARCHAR(255), nullable=True))
    file_type: str = Field(sa_column=Column(pg.VARCHAR(50), nullable=False))  # pdf, image, spreadsheet, document, other
    file_size: int = Field(sa_column=Column(pg.BIGINT, nullable=False))  # Size in bytes
    original_file_name: Optional[str] = Field(default=None, sa_column=Column(pg.VARCHAR(255), nullable=True))

    status: str = Field(
        default=DocumentStatus.PENDING,
        sa_column=Column(pg.VARCHAR(50), nullable=False, default=DocumentStatus.PENDING)
    )
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSONType, nullable=False, default=list))
    property_name: Optional[str] = Field(default=None, sa_column=Column("property", pg.VARCHAR(255), nullable=True))
    category: Optional[str] = Field(default=None, sa_column=Column(pg.VARCHAR(255), nullable=True))

    user_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    )

    # Current-version pointer
    current_version_id: Optional[uuid.UUID] = Field(default=None, sa_column=Column(Uuid, nullable=True))
    current_version_number: Optional[int] = Field(default=None, sa_column=Column(pg.INTEGER, nullable=True))

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow)
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    )

    __table_args__ = (
        Index("idx_documents_user_id", "user_id"),
        Index("idx_documents_status", "status"),
    )

    def __repr__(self):
        return f"<Document {self.name} ({self.file_type})>"

    @property
    def size_mb(self) -> float:
        """Return document size in megabytes"""
        return round(self.file_size / (1024 * 1024), 2)
