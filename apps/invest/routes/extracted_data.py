from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from apps.invest.db import get_invest_session
from apps.invest.schemas.extraction import (
    ExtractedDataResponse,
    ExtractedDataUpdate,
    ExtractedDataUpdateResponse,
)
from apps.invest.services.document_service import get_owned_document
from apps.invest.services.extraction_service import ExtractionService
from core.auth.dependencies import get_current_active_user
from core.auth.models import User

router = APIRouter()


async def get_extraction_service(session: AsyncSession = Depends(get_invest_session)) -> ExtractionService:
    """Dependency to get extraction service"""
    return ExtractionService(session)


@router.get("/documents/{document_id}/extracted-data", response_model=ExtractedDataResponse)
async def get_extracted_data(
    document_id: UUID,
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_invest_session),
    extraction_service: ExtractionService = Depends(get_extraction_service)
):
    await get_owned_document(session, document_id, current_user.id)
    extracted_data = await extraction_service.read(document_id)
    if extracted_data is None:
        return ExtractedDataResponse(extracted_data=None, message="No extracted data found for this document")
    return ExtractedDataResponse(extracted_data=extracted_data)


@router.put("/documents/{document_id}/extracted-data", response_model=ExtractedDataUpdateResponse)
async def update_extracted_data(
    document_id: UUID,
    payload: ExtractedDataUpdate,
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_invest_session),
    extraction_service: ExtractionService = Depends(get_extraction_service)
):
    """
    Save reviewed extracted fields

    - **fields**: matched by id, then by name; stored fields not listed are removed
    - **status**: completed or failed also marks the document completed
    """
    document = await get_owned_document(session, document_id, current_user.id)
    extracted_data = await extraction_service.update(document, current_user, payload)
    return ExtractedDataUpdateResponse(extracted_data=extracted_data)
