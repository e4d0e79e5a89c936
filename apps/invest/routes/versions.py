from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from apps.invest.db import get_invest_session
from apps.invest.schemas.document import SuccessResponse
from apps.invest.schemas.version import (
    CompareResponse,
    RestoreResponse,
    SetCurrentVersionRequest,
    VersionListResponse,
    VersionRead,
    VersionResponse,
)
from apps.invest.services.document_service import get_owned_document, read_upload
from apps.invest.services.version_service import VersionService
from apps.invest.storage import LocalObjectStorage, get_storage
from common.utils.files import content_disposition
from core.auth.dependencies import get_current_active_user
from core.auth.models import User

router = APIRouter()


async def get_version_service(
    session: AsyncSession = Depends(get_invest_session),
    storage: LocalObjectStorage = Depends(get_storage)
) -> VersionService:
    """Dependency to get version service"""
    return VersionService(session, storage)


@router.get("/documents/{document_id}/versions", response_model=VersionListResponse)
async def list_versions(
    document_id: UUID,
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_invest_session),
    version_service: VersionService = Depends(get_version_service)
):
    """Version history, newest first"""
    document = await get_owned_document(session, document_id, current_user.id)
    versions = await version_service.list_versions(document)
    return VersionListResponse(
        versions=[VersionRead.model_validate(v) for v in versions],
        current_version_id=document.current_version_id,
        current_version_number=document.current_version_number,
    )


@router.post("/documents/{document_id}/versions", response_model=VersionResponse, status_code=status.HTTP_201_CREATED)
async def create_version(
    document_id: UUID,
    file: Optional[UploadFile] = File(None),
    comment: Optional[str] = Form(None),
    label: Optional[str] = Form(None),
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_invest_session),
    version_service: VersionService = Depends(get_version_service)
):
    """
    Create a version

    - **file**: new file contents; without it the current file is snapshotted
    - **label**: unique per document
    """
    document = await get_owned_document(session, document_id, current_user.id)
    data = await read_upload(file) if file is not None else None
    version = await version_service.create_version(
        document,
        current_user,
        data=data,
        filename=file.filename if file is not None else None,
        content_type=file.content_type if file is not None else None,
        comment=comment,
        label=label,
    )
    return VersionResponse(version=VersionRead.model_validate(version))


@router.get("/documents/{document_id}/versions/export")
async def export_versions(
    document_id: UUID,
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_invest_session),
    version_service: VersionService = Depends(get_version_service)
):
    """Version history as a CSV download"""
    document = await get_owned_document(session, document_id, current_user.id)
    content, filename = await version_service.export_csv(document)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": content_disposition(filename)},
    )


@router.patch("/documents/{document_id}/versions/current", response_model=SuccessResponse)
async def set_current_version(
    document_id: UUID,
    payload: SetCurrentVersionRequest,
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_invest_session),
    version_service: VersionService = Depends(get_version_service)
):
    document = await get_owned_document(session, document_id, current_user.id)
    await version_service.set_current(document, current_user, payload.version_number)
    return SuccessResponse()


@router.delete("/documents/{document_id}/versions/{version_id}", response_model=SuccessResponse)
async def delete_version(
    document_id: UUID,
    version_id: UUID,
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_invest_session),
    version_service: VersionService = Depends(get_version_service)
):
    """Delete a version other than the current one"""
    document = await get_owned_document(session, document_id, current_user.id)
    await version_service.delete_version(document, current_user, version_id)
    return SuccessResponse()


@router.post("/documents/{document_id}/versions/{version_id}/restore", response_model=RestoreResponse)
async def restore_version(
    document_id: UUID,
    version_id: UUID,
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_invest_session),
    version_service: VersionService = Depends(get_version_service)
):
    """Restore an earlier version as a new current version"""
    document = await get_owned_document(session, document_id, current_user.id)
    version = await version_service.restore_version(document, current_user, version_id)
    return RestoreResponse(version=VersionRead.model_validate(version))


@router.get("/documents/{document_id}/versions/{version_id}/download")
async def download_version(
    document_id: UUID,
    version_id: UUID,
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_invest_session),
    version_service: VersionService = Depends(get_version_service)
):
    document = await get_owned_document(session, document_id, current_user.id)
    data, filename, mime_type = await version_service.download(document, version_id)
    return Response(
        content=data,
        media_type=mime_type,
        headers={"Content-Disposition": content_disposition(filename)},
    )


@router.get("/documents/{document_id}/compare", response_model=CompareResponse)
async def compare_versions(
    document_id: UUID,
    version_a: Optional[int] = None,
    version_b: Optional[int] = None,
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_invest_session),
    version_service: VersionService = Depends(get_version_service)
):
    """
    Compare two versions by number

    - **version_a**, **version_b**: version numbers, both required
    """
    document = await get_owned_document(session, document_id, current_user.id)
    return await version_service.compare(document, version_a, version_b)
