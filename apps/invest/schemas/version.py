from typing import Optional, List, Literal, Any
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, Field, AliasChoices


class VersionRead(BaseModel):
    id: UUID
    document_id: UUID
    version_number: int
    version_type: str
    label: Optional[str] = None
    file_name: Optional[str] = None
    file_size: int
    mime_type: Optional[str] = None
    file_url: Optional[str] = None
    # ORM attribute is file_metadata; "metadata" is reserved on mapped classes
    metadata: dict = Field(default_factory=dict, validation_alias=AliasChoices("file_metadata", "metadata"))
    comment: Optional[str] = None
    changes: Optional[str] = None
    content_id: Optional[UUID] = None
    created_by: UUID
    created_by_name: Optional[str] = None
    created_at: datetime
    is_current: bool = False

    model_config = {
        "from_attributes": True
    }


class VersionListResponse(BaseModel):
    versions: List[VersionRead]
    current_version_id: Optional[UUID] = None
    current_version_number: Optional[int] = None


class SetCurrentVersionRequest(BaseModel):
    version_number: int = Field(..., ge=1)


class CompareSide(BaseModel):
    id: UUID
    version_number: int
    label: Optional[str] = None
    created_at: datetime
    created_by_name: Optional[str] = None
    file_name: Optional[str] = None
    file_size: int
    mime_type: Optional[str] = None


class VersionDifference(BaseModel):
    type: Literal["changed", "added", "removed"]
    path: str
    value_a: Any = None
    value_b: Any = None


class CompareResponse(BaseModel):
    version_a: CompareSide
    version_b: CompareSide
    differences: List[VersionDifference]


class VersionResponse(BaseModel):
    version: VersionRead


class RestoreResponse(BaseModel):
    success: bool = True
    version: VersionRead
