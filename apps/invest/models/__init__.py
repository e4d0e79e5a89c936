# Import all models so SQLAlchemy can discover them
from .document import Document, DocumentStatus
from .version import DocumentVersion, VersionType
from .extraction import ExtractedData, ExtractedField, ExtractionStatus
from .mapping import (
    TargetSystem,
    TargetField,
    FieldType,
    DocumentMapping,
    MappingField,
    MappingTemplate,
    TemplateField,
)
from .activity import DocumentActivity, ActivityAction

__all__ = [
    "Document", "DocumentStatus",
    "DocumentVersion", "VersionType",
    "ExtractedData", "ExtractedField", "ExtractionStatus",
    "TargetSystem", "TargetField", "FieldType",
    "DocumentMapping", "MappingField", "MappingTemplate", "TemplateField",
    "DocumentActivity", "ActivityAction",
]
