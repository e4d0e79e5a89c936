from typing import Optional, List, Literal
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, Field, model_validator


class TargetFieldRead(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    required: bool
    type: str
    options: List[str] = []

    model_config = {
        "from_attributes": True
    }


class TargetSystemRead(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    fields: List[TargetFieldRead] = []

    model_config = {
        "from_attributes": True
    }


class TargetFieldCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    required: bool = False
    type: Literal["text", "date", "number", "enum"] = "text"
    options: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_options(self):
        if self.type == "enum" and not self.options:
            raise ValueError("Enum fields need at least one option")
        return self


class TargetSystemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    fields: List[TargetFieldCreate] = Field(..., min_length=1)


class MappingFieldInput(BaseModel):
    target_field_id: UUID
    extracted_field_id: Optional[UUID] = None


class MappingRequest(BaseModel):
    target_system_id: UUID
    fields: List[MappingFieldInput]
    name: Optional[str] = Field(None, max_length=255)
    save_as_template: bool = False
    template_name: Optional[str] = Field(None, max_length=255)
    template_description: Optional[str] = None


class MappingFieldRead(BaseModel):
    id: UUID
    target_field_id: UUID
    extracted_field_id: Optional[UUID] = None

    model_config = {
        "from_attributes": True
    }


class MappingRead(BaseModel):
    id: UUID
    document_id: UUID
    target_system_id: UUID
    name: str
    user_id: UUID
    fields: List[MappingFieldRead] = []
    created_at: datetime
    updated_at: datetime

    model_config = {
        "from_attributes": True
    }


class TemplateFieldRead(BaseModel):
    id: UUID
    target_field_id: UUID
    extracted_field_name: str

    model_config = {
        "from_attributes": True
    }


class MappingTemplateRead(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    target_system_id: UUID
    user_id: Optional[UUID] = None
    is_system: bool
    fields: List[TemplateFieldRead] = []
    created_at: datetime

    model_config = {
        "from_attributes": True
    }


class MappingsResponse(BaseModel):
    mappings: List[MappingRead]
    target_systems: List[TargetSystemRead]
    mapping_templates: List[MappingTemplateRead]


class MappingResponse(BaseModel):
    success: bool = True
    mapping: MappingRead


class TargetSystemListResponse(BaseModel):
    target_systems: List[TargetSystemRead]


class MappingTemplateListResponse(BaseModel):
    mapping_templates: List[MappingTemplateRead]
