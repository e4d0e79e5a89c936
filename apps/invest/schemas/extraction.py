from typing import Optional, List, Literal
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, Field


class ExtractedFieldRead(BaseModel):
    id: UUID
    name: str
    value: str
    confidence: float
    is_valid: bool

    model_config = {
        "from_attributes": True
    }


class ExtractedDataRead(BaseModel):
    id: UUID
    document_id: UUID
    status: str
    confidence: float
    error: Optional[str] = None
    fields: List[ExtractedFieldRead] = []
    created_at: datetime
    updated_at: datetime

    model_config = {
        "from_attributes": True
    }


class ExtractedDataResponse(BaseModel):
    extracted_data: Optional[ExtractedDataRead] = None
    message: Optional[str] = None


class ExtractedFieldUpdate(BaseModel):
    id: Optional[UUID] = None
    name: str = Field(..., min_length=1, max_length=255)
    value: str
    confidence: float = Field(..., ge=0, le=1)
    is_valid: Optional[bool] = None


class ExtractedDataUpdate(BaseModel):
    fields: List[ExtractedFieldUpdate]
    status: Optional[Literal["pending", "processing", "completed", "failed"]] = None
    confidence: Optional[float] = Field(None, ge=0, le=1)
    error: Optional[str] = None


class ExtractedDataUpdateResponse(BaseModel):
    success: bool = True
    extracted_data: ExtractedDataRead
