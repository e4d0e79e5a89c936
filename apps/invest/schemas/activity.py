from typing import Optional, List
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel


class ActivityRead(BaseModel):
    id: UUID
    document_id: UUID
    user_id: Optional[UUID] = None
    action: str
    details: Optional[str] = None
    created_at: datetime

    model_config = {
        "from_attributes": True
    }


class ActivityListResponse(BaseModel):
    activities: List[ActivityRead]
