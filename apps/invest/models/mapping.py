import uuid
from datetime import datetime
from typing import Optional, List
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, ForeignKey, Index, UniqueConstraint, Uuid, DateTime
import sqlalchemy.dialects.postgresql as pg

from apps.invest.models.types import JSONType
from common.utils.dates import utcnow


class FieldType:
    TEXT = "text"
    DATE = "date"
    NUMBER = "number"
    ENUM = "enum"

    @classmethod
    def all_types(cls) -> List[str]:
        return [cls.TEXT, cls.DATE, cls.NUMBER, cls.ENUM]


class TargetSystem(SQLModel, table=True):
    """An external system that mapped document data is prepared for."""
    __tablename__ = "target_systems"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        sa_column=Column(Uuid, primary_key=True, nullable=False)
    )
    name: str = Field(sa_column=Column(pg.VARCHAR(255), unique=True, nullable=False))
    description: Optional[str] = Field(default=None, sa_column=Column(pg.TEXT, nullable=True))

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow)
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    )

    def __repr__(self):
        return f"<TargetSystem {self.name}>"


class TargetField(SQLModel, table=True):
    __tablename__ = "target_fields"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        sa_column=Column(Uuid, primary_key=True, nullable=False)
    )
    target_system_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("target_systems.id", ondelete="CASCADE"), nullable=False)
    )
    name: str = Field(sa_column=Column(pg.VARCHAR(255), nullable=False))
    description: Optional[str] = Field(default=None, sa_column=Column(pg.TEXT, nullable=True))
    required: bool = Field(default=False, sa_column=Column(pg.BOOLEAN, nullable=False, default=False))
    type: str = Field(
        default=FieldType.TEXT,
        sa_column=Column(pg.VARCHAR(50), nullable=False, default=FieldType.TEXT)
    )
    options: List[str] = Field(default_factory=list, sa_column=Column(JSONType, nullable=False, default=list))
    position: int = Field(default=0, sa_column=Column(pg.INTEGER, nullable=False, default=0))

    __table_args__ = (
        Index("idx_target_fields_system_id", "target_system_id"),
    )

    def __repr__(self):
        return f"<TargetField {self.name} ({self.type})>"


class DocumentMapping(SQLModel, table=True):
    __tablename__ = "document_mappings"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        sa_column=Column(Uuid, primary_key=True, nullable=False)
    )
    document_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    )
    target_system_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("target_systems.id", ondelete="CASCADE"), nullable=False)
    )
    name: str = Field(sa_column=Column(pg.VARCHAR(255), nullable=False))
    user_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    )

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow)
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    )

    __table_args__ = (
        UniqueConstraint("document_id", "target_system_id", name="uq_document_mappings_system"),
    )

    def __repr__(self):
        return f"<DocumentMapping {self.name}>"


class MappingField(SQLModel, table=True):
    __tablename__ = "mapping_fields"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        sa_column=Column(Uuid, primary_key=True, nullable=False)
    )
    mapping_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("document_mappings.id", ondelete="CASCADE"), nullable=False)
    )
    target_field_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("target_fields.id", ondelete="CASCADE"), nullable=False)
    )
    extracted_field_id: Optional[uuid.UUID] = Field(
        default=None,
        sa_column=Column(Uuid, ForeignKey("extracted_fields.id", ondelete="SET NULL"), nullable=True)
    )

    __table_args__ = (
        Index("idx_mapping_fields_mapping_id", "mapping_id"),
    )


class MappingTemplate(SQLModel, table=True):
    """Reusable mapping. Templates without an owner are system templates."""
    __tablename__ = "mapping_templates"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        sa_column=Column(Uuid, primary_key=True, nullable=False)
    )
    name: str = Field(sa_column=Column(pg.VARCHAR(255), nullable=False))
    description: Optional[str] = Field(default=None, sa_column=Column(pg.TEXT, nullable=True))
    target_system_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("target_systems.id", ondelete="CASCADE"), nullable=False)
    )
    user_id: Optional[uuid.UUID] = Field(
        default=None,
        sa_column=Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    )

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow)
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    )

    def __repr__(self):
        return f"<MappingTemplate {self.name}>"

    @property
    def is_system(self) -> bool:
        return self.user_id is None


class TemplateField(SQLModel, table=True):
    __tablename__ = "template_fields"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        sa_column=Column(Uuid, primary_key=True, nullable=False)
    )
    template_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("mapping_templates.id", ondelete="CASCADE"), nullable=False)
    )
    target_field_id: uuid.UUID = Field(
        sa_column=Column(Uuid, ForeignKey("target_fields.id", ondelete="CASCADE"), nullable=False)
    )
    extracted_field_name: str = Field(sa_column=Column(pg.VARCHAR(255), nullable=False))
