from typing import Optional, List, Literal
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, Field, AliasChoices, HttpUrl

from apps.invest.schemas.extraction import ExtractedDataRead
from apps.invest.schemas.mapping import MappingRead

DocumentStatusLiteral = Literal["pending", "processing", "completed", "failed"]


class DocumentCreate(BaseModel):
    """Register a document whose file is already hosted elsewhere."""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    file_url: HttpUrl
    file_type: str = Field(..., min_length=1, max_length=255)
    file_size: int = Field(..., gt=0)
    original_file_name: Optional[str] = Field(None, max_length=255)
    property: Optional[str] = Field(None, max_length=255)
    category: Optional[str] = Field(None, max_length=255)
    tags: List[str] = Field(default_factory=list)


class DocumentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[DocumentStatusLiteral] = None
    tags: Optional[List[str]] = None


class DocumentRead(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    file_url: str
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    file_type: str
    file_size: int
    original_file_name: Optional[str] = None
    status: str
    tags: List[str] = []
    property: Optional[str] = Field(default=None, validation_alias=AliasChoices("property", "property_name"))
    category: Optional[str] = None
    user_id: UUID
    current_version_id: Optional[UUID] = None
    current_version_number: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = {
        "from_attributes": True
    }


class ExtractionSummary(BaseModel):
    id: UUID
    status: str
    confidence: float

    model_config = {
        "from_attributes": True
    }


class MappingSummary(BaseModel):
    id: UUID
    target_system_id: UUID
    updated_at: datetime

    model_config = {
        "from_attributes": True
    }


class VersionSummary(BaseModel):
    id: UUID
    version_number: int
    version_type: str
    label: Optional[str] = None
    file_name: Optional[str] = None
    file_size: int
    comment: Optional[str] = None
    created_by: UUID
    created_at: datetime

    model_config = {
        "from_attributes": True
    }


class DocumentListItem(DocumentRead):
    extracted_data: Optional[ExtractionSummary] = None
    mappings: List[MappingSummary] = []
    versions: List[VersionSummary] = []


class DocumentDetail(DocumentRead):
    extracted_data: Optional[ExtractedDataRead] = None
    mappings: List[MappingRead] = []
    versions: List[VersionSummary] = []


class Pagination(BaseModel):
    page: int
    limit: int
    total_documents: int
    total_pages: int


class DocumentListResponse(BaseModel):
    documents: List[DocumentListItem]
    pagination: Pagination


class ProcessRequest(BaseModel):
    document_id: UUID
    force: bool = False


class ProcessResponse(BaseModel):
    success: bool
    message: str
    document_id: UUID


class DocumentResponse(BaseModel):
    document: DocumentRead


class DocumentDetailResponse(BaseModel):
    document: DocumentDetail


class UploadResponse(BaseModel):
    id: UUID
    name: str
    file_url: str
    status: str

    model_config = {
        "from_attributes": True
    }


class SuccessResponse(BaseModel):
    success: bool = True
