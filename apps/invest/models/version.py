import uuid
from datetime import datetime
from typing import Optional, List
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, ForeignKey, Index, UniqueConstraint, Uuid, DateTime
import sqlalchemy.dialects.postgresql as pg

from apps.invest.models.types import JSONType
from common.utils.dates import utcnow


class VersionType:
    INITIAL = "initial"
    UPLOAD = "upload"
    SNAPSHOT = "snapshot"
    EXTRACTION = "extraction"
    RESTORE = "restore"

    @classmethod
    def all_types(cls) -> List[str]:
        return [cls.INITIAL, cls.UPLOAD, cls.SNAPSHOT, cls.EXTRACTION, cls.RESTORE]


class DocumentVersion(SQLModel, table=True):
    """One immutable entry in a document's history."""
    __tablename__ = "document_versions"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        sa_column=Column(Uuid, primary_key=True, nullable=False)
    )
    document_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    )

    version_number: int = Field(sa_column=Column(pg.INTEGER, nullable=False))
    version_type: str = Field(
        default=VersionType.UPLOAD,
        sa_column=Column(pg.VARCHAR(50), nullable=False, default=VersionType.UPLOAD)
    )
    label: Optional[str] = Field(default=None, sa_column=Column(pg.VARCHAR(100), nullable=True))

    # File snapshot
    file_name: Optional[str] = Field(default=None, sa_column=Column(pg.VARCHAR(255), nullable=True))
    file_size: int = Field(default=0, sa_column=Column(pg.BIGINT, nullable=False, default=0))
    mime_type: Optional[str] = Field(default=None, sa_column=Column(pg.VARCHAR(255), nullable=True))
    file_url: Optional[str] = Field(default=None, sa_column=Column(pg.TEXT, nullable=True))
    storage_key: Optional[str] = Field(default=None, sa_column=Column(pg.TEXT, nullable=True))
    file_metadata: dict = Field(
        default_factory=dict,
        sa_column=Column("metadata", JSONType, nullable=False, default=dict)
    )

    comment: Optional[str] = Field(default=None, sa_column=Column(pg.TEXT, nullable=True))
    changes: Optional[str] = Field(default=None, sa_column=Column(pg.TEXT, nullable=True))
    # Extraction id for extraction snapshots
    content_id: Optional[uuid.UUID] = Field(default=None, sa_column=Column(Uuid, nullable=True))

    created_by: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow)
    )

    __table_args__ = (
        UniqueConstraint("document_id", "version_number", name="uq_document_versions_number"),
        UniqueConstraint("document_id", "label", name="uq_document_versions_label"),
        Index("idx_document_versions_document_id", "document_id"),
    )

    def __repr__(self):
        return f"<DocumentVersion {self.document_id} v{self.version_number}>"
