import uuid
from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, ForeignKey, Index, Uuid, DateTime
import sqlalchemy.dialects.postgresql as pg

from common.utils.dates import utcnow


class ActivityAction:
    UPLOADED = "uploaded"
    CREATED = "created"
    UPDATED = "updated"
    PROCESSING_QUEUED = "processing_queued"
    PROCESSED = "processed"
    PROCESSING_FAILED = "processing_failed"
    EXTRACTION_UPDATED = "extraction_updated"
    MAPPING_CREATED = "mapping_created"
    MAPPING_UPDATED = "mapping_updated"
    VERSION_CREATED = "version_created"
    VERSION_RESTORED = "version_restored"
    VERSION_DELETED = "version_deleted"
    CURRENT_VERSION_CHANGED = "current_version_changed"


class DocumentActivity(SQLModel, table=True):
    __tablename__ = "document_activities"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        sa_column=Column(Uuid, primary_key=True, nullable=False)
    )
    document_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    )
    user_id: Optional[uuid.UUID] = Field(
        default=None,
        sa_column=Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    )
    action: str = Field(sa_column=Column(pg.VARCHAR(100), nullable=False))
    details: Optional[str] = Field(default=None, sa_column=Column(pg.TEXT, nullable=True))

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow)
    )

    __table_args__ = (
        Index("idx_document_activities_document_id", "document_id"),
    )

    def __repr__(self):
        return f"<DocumentActivity {self.action} ({self.document_id})>"
