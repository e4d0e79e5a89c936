from typing import Literal, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from apps.invest.db import get_invest_session
from apps.invest.queue import DocumentQueue, get_document_queue
from apps.invest.schemas.activity import ActivityListResponse, ActivityRead
from apps.invest.schemas.document import (
    DocumentCreate,
    DocumentDetailResponse,
    DocumentListResponse,
    DocumentRead,
    DocumentResponse,
    DocumentStatusLiteral,
    DocumentUpdate,
    ProcessRequest,
    ProcessResponse,
    UploadResponse,
)
from apps.invest.services.activity_service import ActivityService
from apps.invest.services.document_service import DocumentService, get_owned_document, read_upload
from apps.invest.services.processing_service import ProcessingService
from apps.invest.storage import LocalObjectStorage, get_storage
from core.auth.dependencies import get_current_active_user
from core.auth.models import User

router = APIRouter()


async def get_document_service(
    session: AsyncSession = Depends(get_invest_session),
    storage: LocalObjectStorage = Depends(get_storage),
    queue: DocumentQueue = Depends(get_document_queue)
) -> DocumentService:
    """Dependency to get document service"""
    return DocumentService(session, storage, queue)


async def get_processing_service(
    session: AsyncSession = Depends(get_invest_session),
    storage: LocalObjectStorage = Depends(get_storage),
    queue: DocumentQueue = Depends(get_document_queue)
) -> ProcessingService:
    """Dependency to get processing service"""
    return ProcessingService(session, storage, queue)


def _split_tags(tags: Optional[str]) -> list:
    if not tags:
        return []
    return [tag.strip() for tag in tags.split(",") if tag.strip()]


@router.get("/documents", response_model=DocumentListResponse)
async def list_documents(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort: Literal["created_at", "updated_at", "name"] = "created_at",
    order: Literal["asc", "desc"] = "desc",
    search: Optional[str] = None,
    status: Optional[DocumentStatusLiteral] = None,
    property: Optional[str] = None,
    category: Optional[str] = None,
    current_user: User = Depends(get_current_active_user),
    document_service: DocumentService = Depends(get_document_service)
):
    """
    List the current user's documents

    - **search**: matches name or description (case-insensitive) or an exact tag
    - **status**, **property**, **category**: exact filters
    """
    return await document_service.list_documents(
        current_user.id,
        page=page,
        limit=limit,
        sort=sort,
        order=order,
        search=search,
        status=status,
        property_name=property,
        category=category,
    )


@router.post("/documents", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def create_document(
    payload: DocumentCreate,
    current_user: User = Depends(get_current_active_user),
    document_service: DocumentService = Depends(get_document_service)
):
    """Register a document whose file is already hosted at file_url"""
    document = await document_service.create_document(current_user, payload)
    return DocumentResponse(document=DocumentRead.model_validate(document))


@router.post("/documents/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    property: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    current_user: User = Depends(get_current_active_user),
    document_service: DocumentService = Depends(get_document_service)
):
    """
    Upload a file and queue it for processing

    - **file**: PDF, Word, Excel, CSV, JPEG or PNG, up to 10MB
    - **tags**: comma-separated
    """
    data = await read_upload(file)
    document = await document_service.upload(
        current_user,
        data,
        file.filename or "upload",
        content_type=file.content_type,
        name=name,
        description=description,
        property_name=property,
        category=category,
        tags=_split_tags(tags),
    )
    return UploadResponse.model_validate(document)


@router.post("/documents/process", response_model=ProcessResponse)
async def process_document(
    payload: ProcessRequest,
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_invest_session),
    processing_service: ProcessingService = Depends(get_processing_service)
):
    """Queue a document for extraction; force reprocesses a document already in progress"""
    document = await get_owned_document(session, payload.document_id, current_user.id)
    return await processing_service.request_processing(document, current_user, force=payload.force)


@router.get("/documents/{document_id}", response_model=DocumentDetailResponse)
async def get_document(
    document_id: UUID,
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_invest_session),
    document_service: DocumentService = Depends(get_document_service)
):
    document = await get_owned_document(session, document_id, current_user.id)
    return DocumentDetailResponse(document=await document_service.get_detail(document))


@router.put("/documents/{document_id}", response_model=DocumentResponse)
async def update_document(
    document_id: UUID,
    payload: DocumentUpdate,
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_invest_session),
    document_service: DocumentService = Depends(get_document_service)
):
    document = await get_owned_document(session, document_id, current_user.id)
    document = await document_service.update_document(document, current_user, payload)
    return DocumentResponse(document=DocumentRead.model_validate(document))


@router.delete("/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: UUID,
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_invest_session),
    document_service: DocumentService = Depends(get_document_service)
):
    """Delete a document with its versions, extracted data and mappings"""
    document = await get_owned_document(session, document_id, current_user.id)
    await document_service.delete_document(document)


@router.get("/documents/{document_id}/activity", response_model=ActivityListResponse)
async def list_activity(
    document_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_invest_session)
):
    await get_owned_document(session, document_id, current_user.id)
    activities = await ActivityService(session).list_for_document(document_id, limit=limit)
    return ActivityListResponse(activities=[ActivityRead.model_validate(a) for a in activities])
