import logging
from collections import defaultdict
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from apps.invest.errors import ApiError
from apps.invest.models.activity import ActivityAction
from apps.invest.models.document import Document
from apps.invest.models.extraction import ExtractedData, ExtractedField
from apps.invest.models.mapping import (
    DocumentMapping,
    MappingField,
    MappingTemplate,
    TargetField,
    TargetSystem,
    TemplateField,
)
from apps.invest.schemas.mapping import (
    MappingFieldRead,
    MappingRead,
    MappingRequest,
    MappingTemplateRead,
    TargetFieldRead,
    TargetSystemCreate,
    TargetSystemRead,
    TemplateFieldRead,
)
from apps.invest.services.activity_service import ActivityService
from common.utils.dates import utcnow
from core.auth.models import User

logger = logging.getLogger(__name__)

UNKNOWN_FIELD_NAME = "Unknown Field"


class MappingService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.activity = ActivityService(session)

    async def read_mappings(self, document_id: UUID, system_id: Optional[UUID] = None) -> List[MappingRead]:
        query = select(DocumentMapping).where(DocumentMapping.document_id == document_id)
        if system_id:
            query = query.where(DocumentMapping.target_system_id == system_id)
        result = await self.session.execute(query.order_by(DocumentMapping.created_at))
        mappings = result.scalars().all()
        if not mappings:
            return []

        field_result = await self.session.execute(
            select(MappingField).where(MappingField.mapping_id.in_([m.id for m in mappings]))
        )
        fields = defaultdict(list)
        for field in field_result.scalars().all():
            fields[field.mapping_id].append(MappingFieldRead.model_validate(field))

        return [self._mapping_read(mapping, fields[mapping.id]) for mapping in mappings]

    @staticmethod
    def _mapping_read(mapping: DocumentMapping, fields: List[MappingFieldRead]) -> MappingRead:
        return MappingRead(
            id=mapping.id,
            document_id=mapping.document_id,
            target_system_id=mapping.target_system_id,
            name=mapping.name,
            user_id=mapping.user_id,
            fields=fields,
            created_at=mapping.created_at,
            updated_at=mapping.updated_at,
        )

    async def list_target_systems(self, system_id: Optional[UUID] = None) -> List[TargetSystemRead]:
        """Target systems with their fields in declaration order."""
        query = select(TargetSystem).order_by(TargetSystem.name)
        if system_id:
            query = query.where(TargetSystem.id == system_id)
        result = await self.session.execute(query)
        systems = result.scalars().all()
        if not systems:
            return []

        field_result = await self.session.execute(
            select(TargetField)
            .where(TargetField.target_system_id.in_([s.id for s in systems]))
            .order_by(TargetField.position)
        )
        fields = defaultdict(list)
        for field in field_result.scalars().all():
            fields[field.target_system_id].append(TargetFieldRead.model_validate(field))

        return [
            TargetSystemRead(id=system.id, name=system.name, description=system.description, fields=fields[system.id])
            for system in systems
        ]

    async def list_templates(self, user_id: UUID, system_id: Optional[UUID] = None) -> List[MappingTemplateRead]:
        """System templates plus the user's own."""
        query = select(MappingTemplate).where(
            or_(MappingTemplate.user_id.is_(None), MappingTemplate.user_id == user_id)
        )
        if system_id:
            query = query.where(MappingTemplate.target_system_id == system_id)
        result = await self.session.execute(query.order_by(MappingTemplate.name))
        templates = result.scalars().all()
        if not templates:
            return []

        field_result = await self.session.execute(
            select(TemplateField).where(TemplateField.template_id.in_([t.id for t in templates]))
        )
        fields = defaultdict(list)
        for field in field_result.scalars().all():
            fields[field.template_id].append(TemplateFieldRead.model_validate(field))

        return [
            MappingTemplateRead(
                id=template.id,
                name=template.name,
                description=template.description,
                target_system_id=template.target_system_id,
                user_id=template.user_id,
                is_system=template.is_system,
                fields=fields[template.id],
                created_at=template.created_at,
            )
            for template in templates
        ]

    async def get_overview(self, document: Document, user: User, system_id: Optional[UUID] = None) -> dict:
        return {
            "mappings": await self.read_mappings(document.id, system_id),
            "target_systems": await self.list_target_systems(system_id),
            "mapping_templates": await self.list_templates(user.id, system_id),
        }

    async def _get_target_system(self, system_id: UUID) -> TargetSystem:
        result = await self.session.execute(select(TargetSystem).where(TargetSystem.id == system_id))
        system = result.scalar_one_or_none()
        if not system:
            raise ApiError.not_found("Target system not found")
        return system

    async def _get_mapping(self, document_id: UUID, system_id: UUID) -> Optional[DocumentMapping]:
        result = await self.session.execute(
            select(DocumentMapping).where(
                DocumentMapping.document_id == document_id,
                DocumentMapping.target_system_id == system_id,
            )
        )
        return result.scalar_one_or_none()

    async def _validate_fields(self, document: Document, system: TargetSystem, payload: MappingRequest):
        target_ids = {field.target_field_id for field in payload.fields}
        if target_ids:
            result = await self.session.execute(
                select(TargetField.id).where(
                    TargetField.id.in_(target_ids),
                    TargetField.target_system_id == system.id,
                )
            )
            if len(set(result.scalars().all())) != len(target_ids):
                raise ApiError.bad_request("Invalid target fields for this target system")

        extracted_ids = {field.extracted_field_id for field in payload.fields if field.extracted_field_id}
        if extracted_ids:
            result = await self.session.execute(
                select(ExtractedField.id)
                .join(ExtractedData, ExtractedData.id == ExtractedField.extracted_data_id)
                .where(
                    ExtractedField.id.in_(extracted_ids),
                    ExtractedData.document_id == document.id,
                )
            )
            if len(set(result.scalars().all())) != len(extracted_ids):
                raise ApiError.bad_request("Invalid extracted fields for this document")

    def _add_fields(self, mapping: DocumentMapping, payload: MappingRequest):
        for field in payload.fields:
            self.session.add(MappingField(
                mapping_id=mapping.id,
                target_field_id=field.target_field_id,
                extracted_field_id=field.extracted_field_id,
            ))

    async def _save_template(self, user: User, payload: MappingRequest):
        extracted_ids = [field.extracted_field_id for field in payload.fields if field.extracted_field_id]
        names = {}
        if extracted_ids:
            result = await self.session.execute(
                select(ExtractedField.id, ExtractedField.name).where(ExtractedField.id.in_(extracted_ids))
            )
            names = dict(result.all())

        template = MappingTemplate(
            name=payload.template_name,
            description=payload.template_description,
            target_system_id=payload.target_system_id,
            user_id=user.id,
        )
        self.session.add(template)
        await self.session.flush()
        for field in payload.fields:
            self.session.add(TemplateField(
                template_id=template.id,
                target_field_id=field.target_field_id,
                extracted_field_name=names.get(field.extracted_field_id, UNKNOWN_FIELD_NAME),
            ))
        logger.info(f"Saved mapping template '{template.name}' for user {user.id}")

    async def create_mapping(self, document: Document, user: User, payload: MappingRequest) -> MappingRead:
        system = await self._get_target_system(payload.target_system_id)
        await self._validate_fields(document, system, payload)
        if await self._get_mapping(document.id, system.id):
            raise ApiError.bad_request("Mapping already exists for this target system")

        mapping = DocumentMapping(
            document_id=document.id,
            target_system_id=system.id,
            name=payload.name or f"Mapping to {system.name}",
            user_id=user.id,
        )
        self.session.add(mapping)
        await self.session.flush()
        self._add_fields(mapping, payload)

        if payload.save_as_template and payload.template_name:
            await self._save_template(user, payload)

        self.activity.record(document.id, user.id, ActivityAction.MAPPING_CREATED, f"Mapped to {system.name}")
        await self.session.commit()
        logger.info(f"Created mapping {mapping.id} for document {document.id}", extra={"document_id": str(document.id)})
        return (await self.read_mappings(document.id, system.id))[0]

    async def update_mapping(self, document: Document, user: User, payload: MappingRequest) -> MappingRead:
        system = await self._get_target_system(payload.target_system_id)
        mapping = await self._get_mapping(document.id, system.id)
        if not mapping:
            raise ApiError.not_found("Mapping not found")
        await self._validate_fields(document, system, payload)

        await self.session.execute(delete(MappingField).where(MappingField.mapping_id == mapping.id))
        self._add_fields(mapping, payload)
        if payload.name:
            mapping.name = payload.name
        # Field rows changed even when the mapping row did not
        mapping.updated_at = utcnow()

        if payload.save_as_template and payload.template_name:
            await self._save_template(user, payload)

        self.activity.record(document.id, user.id, ActivityAction.MAPPING_UPDATED, f"Updated mapping to {system.name}")
        await self.session.commit()
        return (await self.read_mappings(document.id, system.id))[0]

    async def create_target_system(self, payload: TargetSystemCreate) -> TargetSystemRead:
        result = await self.session.execute(select(TargetSystem.id).where(TargetSystem.name == payload.name))
        if result.first() is not None:
            raise ApiError.bad_request("Target system already exists")

        system = TargetSystem(name=payload.name, description=payload.description)
        self.session.add(system)
        await self.session.flush()
        for position, field in enumerate(payload.fields):
            self.session.add(TargetField(
                target_system_id=system.id,
                name=field.name,
                description=field.description,
                required=field.required,
                type=field.type,
                options=field.options,
                position=position,
            ))
        await self.session.commit()
        logger.info(f"Created target system '{system.name}'")
        return (await self.list_target_systems(system.id))[0]

    async def delete_template(self, user: User, template_id: UUID) -> None:
        result = await self.session.execute(select(MappingTemplate).where(MappingTemplate.id == template_id))
        template = result.scalar_one_or_none()
        if not template:
            raise ApiError.not_found("Template not found")
        if template.is_system or template.user_id != user.id:
            raise ApiError.forbidden("Access denied")

        await self.session.execute(delete(TemplateField).where(TemplateField.template_id == template.id))
        await self.session.delete(template)
        await self.session.commit()
