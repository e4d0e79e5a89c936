import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from apps.invest.extraction.fields import ParsedField
from apps.invest.models.activity import ActivityAction
from apps.invest.models.document import Document, DocumentStatus
from apps.invest.models.extraction import ExtractedData, ExtractedField, ExtractionStatus
from apps.invest.models.mapping import MappingField
from apps.invest.schemas.extraction import ExtractedDataRead, ExtractedDataUpdate, ExtractedFieldRead
from apps.invest.services.activity_service import ActivityService
from core.auth.models import User

logger = logging.getLogger(__name__)


class ExtractionService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.activity = ActivityService(session)

    async def get_for_document(self, document_id: UUID) -> Optional[ExtractedData]:
        result = await self.session.execute(
            select(ExtractedData).where(ExtractedData.document_id == document_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, document_id: UUID) -> ExtractedData:
        data = await self.get_for_document(document_id)
        if data is None:
            data = ExtractedData(document_id=document_id, status=ExtractionStatus.PENDING)
            self.session.add(data)
            await self.session.flush()
        return data

    async def get_fields(self, extracted_data_id: UUID) -> List[ExtractedField]:
        result = await self.session.execute(
            select(ExtractedField)
            .where(ExtractedField.extracted_data_id == extracted_data_id)
            .order_by(ExtractedField.created_at, ExtractedField.name)
        )
        return result.scalars().all()

    async def read(self, document_id: UUID) -> Optional[ExtractedDataRead]:
        """Extraction with its fields, or None when the document was never processed."""
        data = await self.get_for_document(document_id)
        if data is None:
            return None
        fields = await self.get_fields(data.id)
        return ExtractedDataRead(
            id=data.id,
            document_id=data.document_id,
            status=data.status,
            confidence=data.confidence,
            error=data.error,
            fields=[ExtractedFieldRead.model_validate(field) for field in fields],
            created_at=data.created_at,
            updated_at=data.updated_at,
        )

    async def _delete_fields(self, field_ids: List[UUID]):
        if not field_ids:
            return
        await self.session.execute(
            update(MappingField)
            .where(MappingField.extracted_field_id.in_(field_ids))
            .values(extracted_field_id=None)
        )
        await self.session.execute(delete(ExtractedField).where(ExtractedField.id.in_(field_ids)))

    async def replace_fields(self, data: ExtractedData, fields: List[ParsedField]):
        """Swap the stored fields of an extraction for freshly parsed ones."""
        existing = await self.get_fields(data.id)
        await self._delete_fields([field.id for field in existing])
        for field in fields:
            self.session.add(ExtractedField(
                extracted_data_id=data.id,
                name=field.name,
                value=field.value,
                confidence=field.confidence,
                is_valid=True,
            ))

    async def update(self, document: Document, user: User, payload: ExtractedDataUpdate) -> ExtractedDataRead:
        """
        Apply a reviewer's edits to a document's extracted fields.

        Fields are matched by id, then by name; unmatched payload fields are
        created and stored fields missing from the payload are deleted.
        """
        data = await self.get_or_create(document.id)
        existing = await self.get_fields(data.id)
        by_id = {field.id: field for field in existing}
        by_name = {field.name: field for field in existing}

        kept = set()
        for item in payload.fields:
            field = by_id.get(item.id) if item.id else None
            if field is None:
                field = by_name.get(item.name)
            if field is not None and field.id in kept:
                field = None

            if field is None:
                field = ExtractedField(extracted_data_id=data.id, name=item.name, value=item.value)
                self.session.add(field)
            field.name = item.name
            field.value = item.value
            field.confidence = item.confidence
            if item.is_valid is not None:
                field.is_valid = item.is_valid
            await self.session.flush()
            kept.add(field.id)

        await self._delete_fields([field.id for field in existing if field.id not in kept])

        if payload.status is not None:
            data.status = payload.status
        if payload.confidence is not None:
            data.confidence = payload.confidence
        if "error" in payload.model_fields_set:
            data.error = payload.error

        if payload.status in (ExtractionStatus.COMPLETED, ExtractionStatus.FAILED):
            document.status = DocumentStatus.COMPLETED

        self.activity.record(
            document.id, user.id, ActivityAction.EXTRACTION_UPDATED,
            f"{len(kept)} extracted fields saved"
        )
        await self.session.commit()
        await self.session.refresh(data)
        logger.info(f"Updated extracted data for document {document.id}", extra={"document_id": str(document.id)})
        return await self.read(document.id)
