import json
import logging
import math
from collections import defaultdict
from typing import List, Optional
from uuid import UUID

from fastapi import UploadFile
from sqlalchemy import String, cast, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from apps.invest.config import get_invest_settings
from apps.invest.errors import ApiError
from apps.invest.models.activity import ActivityAction, DocumentActivity
from apps.invest.models.document import Document, DocumentStatus
from apps.invest.models.extraction import ExtractedData, ExtractedField
from apps.invest.models.mapping import DocumentMapping, MappingField
from apps.invest.models.version import DocumentVersion, VersionType
from apps.invest.queue import DocumentQueue
from apps.invest.schemas.document import (
    DocumentCreate,
    DocumentDetail,
    DocumentListItem,
    DocumentListResponse,
    DocumentRead,
    DocumentUpdate,
    ExtractionSummary,
    MappingSummary,
    Pagination,
    VersionSummary,
)
from apps.invest.services.activity_service import ActivityService
from apps.invest.services.extraction_service import ExtractionService
from apps.invest.services.mapping_service import MappingService
from apps.invest.services.version_service import VersionService
from apps.invest.storage import LocalObjectStorage, StorageError
from common.utils.files import (
    categorize_file,
    format_bytes,
    get_extension,
    get_file_metadata,
    get_mime_type,
    validate_file,
)
from core.auth.models import User

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "created_at": Document.created_at,
    "updated_at": Document.updated_at,
    "name": Document.name,
}
RECENT_VERSIONS = 5


async def get_owned_document(session: AsyncSession, document_id: UUID, user_id: UUID) -> Document:
    """Load a document, 404 when missing and 403 when it belongs to someone else."""
    result = await session.execute(select(Document).where(Document.id == document_id))
    document = result.scalar_one_or_none()
    if not document:
        raise ApiError.not_found("Document not found")
    if document.user_id != user_id:
        raise ApiError.forbidden("Access denied")
    return document


async def read_upload(file: UploadFile) -> bytes:
    """Read an uploaded file, stopping one byte past the size limit."""
    max_size = get_invest_settings().MAX_UPLOAD_SIZE
    data = await file.read(max_size + 1)
    if len(data) > max_size:
        raise ApiError.bad_request(f"File size exceeds the maximum limit of {format_bytes(max_size)}")
    return data


class DocumentService:
    def __init__(self, session: AsyncSession, storage: LocalObjectStorage, queue: DocumentQueue):
        self.session = session
        self.storage = storage
        self.queue = queue
        self.activity = ActivityService(session)
        self.versions = VersionService(session, storage)

    async def list_documents(
        self,
        user_id: UUID,
        page: int = 1,
        limit: int = 10,
        sort: str = "created_at",
        order: str = "desc",
        search: Optional[str] = None,
        status: Optional[str] = None,
        property_name: Optional[str] = None,
        category: Optional[str] = None
    ) -> DocumentListResponse:
        filters = [Document.user_id == user_id]
        if status:
            filters.append(Document.status == status)
        if property_name:
            filters.append(Document.property_name == property_name)
        if category:
            filters.append(Document.category == category)
        if search:
            term = search.lower()
            filters.append(or_(
                func.lower(Document.name).contains(term, autoescape=True),
                func.lower(Document.description).contains(term, autoescape=True),
                # Tags serialise raw on JSONB and ASCII-escaped through json.dumps
                cast(Document.tags, String).contains(f'"{search}"', autoescape=True),
                cast(Document.tags, String).contains(json.dumps(search), autoescape=True),
            ))

        total_result = await self.session.execute(select(func.count(Document.id)).where(*filters))
        total = total_result.scalar() or 0

        sort_column = SORT_COLUMNS.get(sort, Document.created_at)
        sort_column = sort_column.asc() if order == "asc" else sort_column.desc()
        result = await self.session.execute(
            select(Document)
            .where(*filters)
            .order_by(sort_column)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        documents = result.scalars().all()

        items = await self._list_items(documents)
        return DocumentListResponse(
            documents=items,
            pagination=Pagination(
                page=page,
                limit=limit,
                total_documents=total,
                total_pages=math.ceil(total / limit),
            ),
        )

    async def _list_items(self, documents: List[Document]) -> List[DocumentListItem]:
        if not documents:
            return []
        ids = [document.id for document in documents]

        extraction_result = await self.session.execute(
            select(ExtractedData).where(ExtractedData.document_id.in_(ids))
        )
        extractions = {data.document_id: data for data in extraction_result.scalars().all()}

        mapping_result = await self.session.execute(
            select(DocumentMapping).where(DocumentMapping.document_id.in_(ids))
        )
        mappings = defaultdict(list)
        for mapping in mapping_result.scalars().all():
            mappings[mapping.document_id].append(MappingSummary.model_validate(mapping))

        versions = await self._recent_versions(ids)

        items = []
        for document in documents:
            extraction = extractions.get(document.id)
            items.append(DocumentListItem(
                **DocumentRead.model_validate(document).model_dump(),
                extracted_data=ExtractionSummary.model_validate(extraction) if extraction else None,
                mappings=mappings[document.id],
                versions=versions[document.id],
            ))
        return items

    async def _recent_versions(self, document_ids: List[UUID]) -> dict:
        result = await self.session.execute(
            select(DocumentVersion)
            .where(DocumentVersion.document_id.in_(document_ids))
            .order_by(DocumentVersion.document_id, DocumentVersion.version_number.desc())
        )
        versions = defaultdict(list)
        for version in result.scalars().all():
            if len(versions[version.document_id]) < RECENT_VERSIONS:
                versions[version.document_id].append(VersionSummary.model_validate(version))
        return versions

    async def create_document(self, user: User, payload: DocumentCreate) -> Document:
        """Register a document for a file hosted at ``file_url``."""
        file_url = str(payload.file_url)
        file_name = payload.original_file_name or file_url.rstrip("/").rsplit("/", 1)[-1]
        # file_type may be given as a MIME type or as a category
        mime_type = payload.file_type if "/" in payload.file_type else None
        file_type = categorize_file(mime_type, file_name) if mime_type else payload.file_type

        document = Document(
            name=payload.name,
            description=payload.description,
            file_url=file_url,
            file_name=file_name,
            mime_type=mime_type,
            file_type=file_type,
            file_size=payload.file_size,
            original_file_name=payload.original_file_name,
            status=DocumentStatus.PENDING,
            tags=payload.tags,
            property_name=payload.property,
            category=payload.category,
            user_id=user.id,
        )
        self.session.add(document)
        await self.session.flush()

        await self.versions.add_version(
            document,
            user.id,
            VersionType.INITIAL,
            file_name=file_name,
            file_size=payload.file_size,
            mime_type=mime_type,
            file_url=file_url,
            storage_key=None,
        )
        # Keep the declared category when the URL tells us nothing better
        document.file_type = file_type
        self.activity.record(document.id, user.id, ActivityAction.CREATED, f"Document '{document.name}' created")
        await self.session.commit()
        await self.session.refresh(document)
        logger.info(f"Created document {document.id}", extra={"document_id": str(document.id)})

        try:
            await self._queue(document, user.id)
        except Exception as e:
            logger.error(
                f"Failed to queue document {document.id} for processing: {e}",
                extra={"document_id": str(document.id)},
            )
        return document

    async def upload(
        self,
        user: User,
        data: bytes,
        filename: str,
        content_type: Optional[str] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
        property_name: Optional[str] = None,
        category: Optional[str] = None,
        tags: Optional[List[str]] = None
    ) -> Document:
        """Store an uploaded file, create its document and first version, and queue processing."""
        settings = get_invest_settings()
        is_valid, errors = validate_file(filename, len(data), content_type, settings.MAX_UPLOAD_SIZE)
        if not is_valid:
            raise ApiError.bad_request("; ".join(errors))

        mime_type = get_mime_type(content_type, filename)
        key = self.storage.build_key(user.id, get_extension(filename))
        try:
            file_url = self.storage.put(key, data)
        except (OSError, StorageError) as e:
            logger.error(f"Failed to store upload {filename}: {e}")
            raise ApiError.internal("Failed to store file")

        document = Document(
            name=name or filename,
            description=description,
            file_url=file_url,
            storage_key=key,
            file_name=filename,
            mime_type=mime_type,
            file_type=categorize_file(mime_type, filename),
            file_size=len(data),
            original_file_name=filename,
            status=DocumentStatus.PENDING,
            tags=tags or [],
            property_name=property_name,
            category=category,
            user_id=user.id,
        )
        self.session.add(document)
        await self.session.flush()

        await self.versions.add_version(
            document,
            user.id,
            VersionType.INITIAL,
            file_name=filename,
            file_size=len(data),
            mime_type=mime_type,
            file_url=file_url,
            storage_key=key,
            metadata=get_file_metadata(data, mime_type),
        )
        self.activity.record(document.id, user.id, ActivityAction.UPLOADED, f"Uploaded {filename}")
        await self.session.commit()
        await self.session.refresh(document)
        logger.info(f"Uploaded document {document.id} ({filename})", extra={"document_id": str(document.id)})

        try:
            await self._queue(document, user.id)
        except Exception as e:
            logger.error(
                f"Failed to queue document {document.id} for processing: {e}",
                extra={"document_id": str(document.id)},
            )
            document.status = DocumentStatus.FAILED
            await self.session.commit()
            raise ApiError.internal("Failed to queue document for processing")
        return document

    async def _queue(self, document: Document, user_id: UUID):
        job = await self.queue.enqueue(document.id)
        self.activity.record(document.id, user_id, ActivityAction.PROCESSING_QUEUED, f"Job {job.id} queued")
        await self.session.commit()

    async def get_detail(self, document: Document) -> DocumentDetail:
        extracted_data = await ExtractionService(self.session).read(document.id)
        mappings = await MappingService(self.session).read_mappings(document.id)
        versions = await self._recent_versions([document.id])
        return DocumentDetail(
            **DocumentRead.model_validate(document).model_dump(),
            extracted_data=extracted_data,
            mappings=mappings,
            versions=versions[document.id],
        )

    async def update_document(self, document: Document, user: User, payload: DocumentUpdate) -> Document:
        update_data = payload.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            if value is None and field in ("name", "status", "tags"):
                continue
            setattr(document, field, value)

        if update_data:
            self.activity.record(
                document.id, user.id, ActivityAction.UPDATED,
                "Updated " + ", ".join(sorted(update_data))
            )
        await self.session.commit()
        await self.session.refresh(document)
        return document

    async def delete_document(self, document: Document) -> None:
        """Delete a document with its history, extraction and mappings, then its stored files."""
        document_id = document.id
        key_result = await self.session.execute(
            select(DocumentVersion.storage_key).where(DocumentVersion.document_id == document_id)
        )
        storage_keys = {key for key in key_result.scalars().all() if key}
        if document.storage_key:
            storage_keys.add(document.storage_key)

        mapping_ids = select(DocumentMapping.id).where(DocumentMapping.document_id == document_id)
        extraction_ids = select(ExtractedData.id).where(ExtractedData.document_id == document_id)
        await self.session.execute(delete(MappingField).where(MappingField.mapping_id.in_(mapping_ids)))
        await self.session.execute(delete(DocumentMapping).where(DocumentMapping.document_id == document_id))
        await self.session.execute(delete(ExtractedField).where(ExtractedField.extracted_data_id.in_(extraction_ids)))
        await self.session.execute(delete(ExtractedData).where(ExtractedData.document_id == document_id))
        await self.session.execute(delete(DocumentVersion).where(DocumentVersion.document_id == document_id))
        await self.session.execute(delete(DocumentActivity).where(DocumentActivity.document_id == document_id))
        await self.session.delete(document)
        await self.session.commit()
        logger.info(f"Deleted document {document_id}", extra={"document_id": str(document_id)})

        for key in storage_keys:
            try:
                self.storage.delete(key)
            except (OSError, StorageError) as e:
                logger.error(f"Failed to delete stored object {key}: {e}")
