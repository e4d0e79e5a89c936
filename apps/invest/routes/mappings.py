from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from apps.invest.db import get_invest_session
from apps.invest.schemas.mapping import (
    MappingRequest,
    MappingResponse,
    MappingsResponse,
    MappingTemplateListResponse,
    TargetSystemCreate,
    TargetSystemListResponse,
    TargetSystemRead,
)
from apps.invest.services.document_service import get_owned_document
from apps.invest.services.mapping_service import MappingService
from core.auth.dependencies import get_current_active_user, require_admin
from core.auth.models import User

router = APIRouter()


async def get_mapping_service(session: AsyncSession = Depends(get_invest_session)) -> MappingService:
    """Dependency to get mapping service"""
    return MappingService(session)


@router.get("/documents/{document_id}/mappings", response_model=MappingsResponse)
async def get_mappings(
    document_id: UUID,
    system_id: Optional[UUID] = None,
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_invest_session),
    mapping_service: MappingService = Depends(get_mapping_service)
):
    """Mappings of a document with the available target systems and templates"""
    document = await get_owned_document(session, document_id, current_user.id)
    return await mapping_service.get_overview(document, current_user, system_id)


@router.post("/documents/{document_id}/mappings", response_model=MappingResponse, status_code=status.HTTP_201_CREATED)
async def create_mapping(
    document_id: UUID,
    payload: MappingRequest,
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_invest_session),
    mapping_service: MappingService = Depends(get_mapping_service)
):
    """
    Map extracted fields onto a target system

    - **fields**: target field ids with the extracted field mapped to each (or null)
    - **save_as_template**: with **template_name**, also saves a personal template
    """
    document = await get_owned_document(session, document_id, current_user.id)
    mapping = await mapping_service.create_mapping(document, current_user, payload)
    return MappingResponse(mapping=mapping)


@router.put("/documents/{document_id}/mappings", response_model=MappingResponse)
async def update_mapping(
    document_id: UUID,
    payload: MappingRequest,
    current_user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_invest_session),
    mapping_service: MappingService = Depends(get_mapping_service)
):
    document = await get_owned_document(session, document_id, current_user.id)
    mapping = await mapping_service.update_mapping(document, current_user, payload)
    return MappingResponse(mapping=mapping)


@router.get("/target-systems", response_model=TargetSystemListResponse)
async def list_target_systems(
    current_user: User = Depends(get_current_active_user),
    mapping_service: MappingService = Depends(get_mapping_service)
):
    return TargetSystemListResponse(target_systems=await mapping_service.list_target_systems())


@router.post("/target-systems", response_model=TargetSystemRead, status_code=status.HTTP_201_CREATED)
async def create_target_system(
    payload: TargetSystemCreate,
    current_user: User = Depends(require_admin),
    mapping_service: MappingService = Depends(get_mapping_service)
):
    """Register a target system with its fields (admin only)"""
    return await mapping_service.create_target_system(payload)


@router.get("/mapping-templates", response_model=MappingTemplateListResponse)
async def list_mapping_templates(
    system_id: Optional[UUID] = None,
    current_user: User = Depends(get_current_active_user),
    mapping_service: MappingService = Depends(get_mapping_service)
):
    """System templates plus the current user's own"""
    templates = await mapping_service.list_templates(current_user.id, system_id)
    return MappingTemplateListResponse(mapping_templates=templates)


@router.delete("/mapping-templates/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_mapping_template(
    template_id: UUID,
    current_user: User = Depends(get_current_active_user),
    mapping_service: MappingService = Depends(get_mapping_service)
):
    await mapping_service.delete_template(current_user, template_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
