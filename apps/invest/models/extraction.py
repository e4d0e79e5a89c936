import uuid
from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, ForeignKey, Index, Uuid, DateTime
import sqlalchemy.dialects.postgresql as pg

from common.utils.dates import utcnow


class ExtractionStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ExtractedData(SQLModel, table=True):
    __tablename__ = "extracted_data"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        sa_column=Column(Uuid, primary_key=True, nullable=False)
    )
    document_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("documents.id", ondelete="CASCADE"), unique=True, nullable=False)
    )
    status: str = Field(
        default=ExtractionStatus.PENDING,
        sa_column=Column(pg.VARCHAR(50), nullable=False, default=ExtractionStatus.PENDING)
    )
    confidence: float = Field(default=0.0, sa_column=Column(pg.FLOAT, nullable=False, default=0.0))
    error: Optional[str] = Field(default=None, sa_column=Column(pg.TEXT, nullable=True))

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow)
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    )

    def __repr__(self):
        return f"<ExtractedData {self.document_id} ({self.status})>"


class ExtractedField(SQLModel, table=True):
    __tablename__ = "extracted_fields"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        sa_column=Column(Uuid, primary_key=True, nullable=False)
    )
    extracted_data_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("extracted_data.id", ondelete="CASCADE"), nullable=False)
    )
    name: str = Field(sa_column=Column(pg.VARCHAR(255), nullable=False))
    value: str = Field(default="", sa_column=Column(pg.TEXT, nullable=False, default=""))
    confidence: float = Field(default=0.0, sa_column=Column(pg.FLOAT, nullable=False, default=0.0))
    is_valid: bool = Field(default=True, sa_column=Column(pg.BOOLEAN, nullable=False, default=True))

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow)
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    )

    __table_args__ = (
        Index("idx_extracted_fields_data_id", "extracted_data_id"),
    )

    def __repr__(self):
        return f"<ExtractedField {self.name}={self.value!r}>"
