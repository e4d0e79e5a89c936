from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from apps.invest.models.activity import DocumentActivity


class ActivityService:
    def __init__(self, session: AsyncSession):
        self.session = session

    def record(
        self,
        document_id: UUID,
        user_id: Optional[UUID],
        action: str,
        details: Optional[str] = None
    ) -> DocumentActivity:
        """Stage an activity entry; it is saved with the caller's commit."""
        activity = DocumentActivity(
            document_id=document_id,
            user_id=user_id,
            action=action,
            details=details,
        )
        self.session.add(activity)
        return activity

    async def list_for_document(self, document_id: UUID, limit: int = 50) -> List[DocumentActivity]:
        result = await self.session.execute(
            select(DocumentActivity)
            .where(DocumentActivity.document_id == document_id)
            .order_by(DocumentActivity.created_at.desc())
            .limit(limit)
        )
        return result.scalars().all()
