import asyncio
import logging
from typing import Optional
from uuid import UUID

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from apps.invest.config import get_invest_settings
from apps.invest.errors import ApiError
from apps.invest.extraction import ParseError, parse_document
from apps.invest.models.activity import ActivityAction
from apps.invest.models.document import Document, DocumentStatus
from apps.invest.models.extraction import ExtractionStatus
from apps.invest.models.version import VersionType
from apps.invest.queue import DocumentQueue, JobPriority
from apps.invest.services.activity_service import ActivityService
from apps.invest.services.extraction_service import ExtractionService
from apps.invest.services.version_service import VersionService
from apps.invest.storage import LocalObjectStorage, ObjectNotFound
from core.auth.models import User

logger = logging.getLogger(__name__)


class ProcessingService:
    """Queues documents for extraction and runs queued extraction jobs."""

    def __init__(
        self,
        session: AsyncSession,
        storage: LocalObjectStorage,
        queue: Optional[DocumentQueue] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.session = session
        self.storage = storage
        self.queue = queue
        self.http_transport = http_transport
        self.activity = ActivityService(session)
        self.extractions = ExtractionService(session)

    async def request_processing(self, document: Document, user: User, force: bool = False) -> dict:
        if document.status == DocumentStatus.PROCESSING and not force:
            raise ApiError.bad_request("Document is already being processed")

        extraction = await self.extractions.get_for_document(document.id)
        if force and extraction is not None:
            # Keep a pointer to the extraction being replaced
            await VersionService(self.session, self.storage).add_version(
                document,
                user.id,
                VersionType.EXTRACTION,
                file_name=document.file_name,
                file_size=document.file_size,
                mime_type=document.mime_type,
                file_url=document.file_url,
                storage_key=document.storage_key,
                comment="Extraction before reprocessing",
                changes=f"Extraction snapshot ({extraction.status}, confidence {extraction.confidence:.2f})",
                content_id=extraction.id,
                make_current=False,
            )

        extraction = await self.extractions.get_or_create(document.id)
        extraction.status = ExtractionStatus.PROCESSING
        extraction.error = None
        document.status = DocumentStatus.PROCESSING
        await self.session.commit()

        priority = JobPriority.HIGH if force else JobPriority.NORMAL
        try:
            job = await self.queue.enqueue(document.id, priority=priority)
        except Exception as e:
            logger.error(
                f"Failed to queue document {document.id} for processing: {e}",
                extra={"document_id": str(document.id)},
            )
            await self.mark_failed(document.id, "Failed to queue document for processing")
            raise ApiError.internal("Failed to queue document for processing")

        self.activity.record(
            document.id, user.id, ActivityAction.PROCESSING_QUEUED,
            f"Job {job.id} queued ({priority} priority)"
        )
        await self.session.commit()
        return {
            "success": True,
            "message": "Document processing started",
            "document_id": document.id,
        }

    async def _load(self, document_id: UUID) -> Optional[Document]:
        result = await self.session.execute(select(Document).where(Document.id == document_id))
        return result.scalar_one_or_none()

    async def _read_file(self, document: Document) -> bytes:
        """Bytes of the document's current file, from storage or from its URL."""
        if document.storage_key:
            try:
                return self.storage.get(document.storage_key)
            except ObjectNotFound as e:
                raise ParseError(str(e)) from e

        if not document.file_url:
            raise ParseError("Document has no file to process")

        settings = get_invest_settings()
        try:
            async with httpx.AsyncClient(
                transport=self.http_transport,
                timeout=settings.FILE_DOWNLOAD_TIMEOUT,
                follow_redirects=True,
            ) as client:
                response = await client.get(document.file_url)
        except httpx.HTTPError as e:
            raise ParseError(f"Failed to download file: {e}") from e

        if not response.is_success:
            raise ParseError(f"Failed to download file: HTTP {response.status_code}")
        return response.content

    async def run_job(self, document_id: UUID) -> bool:
        """
        Extract the fields of a document's current file and store them.

        Returns False when the document no longer exists. Parse, storage and
        download failures propagate so the caller can retry the job.
        """
        document = await self._load(document_id)
        if document is None:
            logger.warning(f"Document {document_id} no longer exists, skipping job", extra={"document_id": str(document_id)})
            return False

        extraction = await self.extractions.get_or_create(document.id)
        extraction.status = ExtractionStatus.PROCESSING
        document.status = DocumentStatus.PROCESSING
        await self.session.commit()

        data = await self._read_file(document)

        result = await asyncio.to_thread(
            parse_document,
            data,
            document.file_name or document.name,
            document.file_type,
            document.mime_type,
        )

        await self.extractions.replace_fields(extraction, result.fields)
        extraction.status = ExtractionStatus.COMPLETED
        extraction.confidence = result.confidence
        extraction.error = None
        document.status = DocumentStatus.COMPLETED
        self.activity.record(
            document.id, None, ActivityAction.PROCESSED,
            f"Extracted {len(result.fields)} fields (confidence {result.confidence:.2f})"
        )
        await self.session.commit()
        logger.info(
            f"Processed document {document.id}: {len(result.fields)} fields",
            extra={"document_id": str(document.id)},
        )
        return True

    async def mark_failed(self, document_id: UUID, error: str):
        document = await self._load(document_id)
        if document is None:
            return

        extraction = await self.extractions.get_or_create(document.id)
        extraction.status = ExtractionStatus.FAILED
        extraction.error = error
        document.status = DocumentStatus.FAILED
        self.activity.record(document.id, None, ActivityAction.PROCESSING_FAILED, error)
        await self.session.commit()
        logger.error(f"Processing of document {document.id} failed: {error}", extra={"document_id": str(document.id)})
