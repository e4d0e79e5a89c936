import uuid
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from sqlalchemy import select

from apps.invest.extraction import ParseError
from apps.invest.models.activity import ActivityAction, DocumentActivity
from apps.invest.models.document import Document, DocumentStatus
from apps.invest.models.extraction import ExtractedData, ExtractedField, ExtractionStatus
from apps.invest.queue import QueueJob
from apps.invest.services.processing_service import ProcessingService
from apps.invest.worker import process_job


async def _document(session, document_id: str) -> Document:
    result = await session.execute(select(Document).where(Document.id == uuid.UUID(document_id)))
    return result.scalar_one()


async def _extraction(session, document_id: str) -> ExtractedData:
    result = await session.execute(select(ExtractedData).where(ExtractedData.document_id == uuid.UUID(document_id)))
    return result.scalar_one()


async def test_run_job_stores_fields(db_session, storage, uploaded_document):
    service = ProcessingService(db_session, storage)
    assert await service.run_job(uuid.UUID(uploaded_document["id"])) is True

    document = await _document(db_session, uploaded_document["id"])
    extraction = await _extraction(db_session, uploaded_document["id"])
    assert document.status == DocumentStatus.COMPLETED
    assert extraction.status == ExtractionStatus.COMPLETED
    assert 0 < extraction.confidence <= 1

    result = await db_session.execute(select(ExtractedField).where(ExtractedField.extracted_data_id == extraction.id))
    fields = {field.name: field.value for field in result.scalars().all()}
    assert fields["Invoice Number"] == "INV-001"
    assert fields["Date"] == "2024-01-15"
    assert fields["Total Amount"] == "1250.50"
    assert fields["Document Type"] == "Invoice"


async def test_run_job_replaces_previous_fields(db_session, storage, uploaded_document):
    service = ProcessingService(db_session, storage)
    await service.run_job(uuid.UUID(uploaded_document["id"]))
    await service.run_job(uuid.UUID(uploaded_document["id"]))

    extraction = await _extraction(db_session, uploaded_document["id"])
    result = await db_session.execute(
        select(ExtractedField).where(
            ExtractedField.extracted_data_id == extraction.id,
            ExtractedField.name == "Invoice Number",
        )
    )
    assert len(result.scalars().all()) == 1


async def test_run_job_missing_document(db_session, storage):
    assert await ProcessingService(db_session, storage).run_job(uuid.uuid4()) is False


async def test_mark_failed(db_session, storage, uploaded_document):
    await ProcessingService(db_session, storage).mark_failed(uuid.UUID(uploaded_document["id"]), "OCR request failed")

    document = await _document(db_session, uploaded_document["id"])
    extraction = await _extraction(db_session, uploaded_document["id"])
    assert document.status == DocumentStatus.FAILED
    assert extraction.status == ExtractionStatus.FAILED
    assert extraction.error == "OCR request failed"


@pytest.fixture
def job(uploaded_document):
    return QueueJob(id="job-1", document_id=uploaded_document["id"], timestamp=0.0)


async def test_process_job_success(session_factory, storage, job):
    queue = AsyncMock()
    assert await process_job(queue, job, storage, session_factory) is True
    queue.retry_or_fail.assert_not_awaited()


@patch("apps.invest.services.processing_service.parse_document")
async def test_process_job_retries_on_failure(mock_parse, session_factory, storage, job):
    mock_parse.side_effect = RuntimeError("parser crashed")
    queue = AsyncMock()
    queue.retry_or_fail.return_value = True

    assert await process_job(queue, job, storage, session_factory) is False
    queue.retry_or_fail.assert_awaited_once_with(job, "parser crashed")

    async with session_factory() as session:
        document = await _document(session, job.document_id)
        # A retry is scheduled, so the document is not marked failed
        assert document.status == DocumentStatus.PROCESSING


@patch("apps.invest.services.processing_service.parse_document")
async def test_process_job_marks_failed_when_exhausted(mock_parse, session_factory, storage, job):
    mock_parse.side_effect = RuntimeError("parser crashed")
    queue = AsyncMock()
    queue.retry_or_fail.return_value = False

    await process_job(queue, job, storage, session_factory)

    async with session_factory() as session:
        document = await _document(session, job.document_id)
        extraction = await _extraction(session, job.document_id)
        assert document.status == DocumentStatus.FAILED
        assert extraction.error == "parser crashed"

        result = await session.execute(
            select(DocumentActivity).where(DocumentActivity.action == ActivityAction.PROCESSING_FAILED)
        )
        assert len(result.scalars().all()) == 1


REMOTE_URL = "https://files.example.com/remote.csv"
REMOTE_CSV = b"Invoice Number,Date,Total Amount\nINV-900,02/01/2024,75.00\n"


@pytest.fixture
async def remote_document(client, auth_headers):
    """A document registered by URL, with no stored copy of its file."""
    response = await client.post(
        "/api/v1/invest/documents",
        headers=auth_headers,
        json={
            "name": "Remote invoice",
            "file_url": REMOTE_URL,
            "file_type": "text/csv",
            "file_size": len(REMOTE_CSV),
        },
    )
    assert response.status_code == 201, response.text
    return response.json()["document"]


def _transport(status_code: int, content: bytes = b"", requests: list = None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return httpx.Response(status_code, content=content)
    return httpx.MockTransport(handler)


async def test_run_job_downloads_file_url(db_session, storage, remote_document):
    requests = []
    service = ProcessingService(db_session, storage, http_transport=_transport(200, REMOTE_CSV, requests))
    assert await service.run_job(uuid.UUID(remote_document["id"])) is True
    assert [str(r.url) for r in requests] == [REMOTE_URL]

    document = await _document(db_session, remote_document["id"])
    assert document.status == DocumentStatus.COMPLETED

    extraction = await _extraction(db_session, remote_document["id"])
    result = await db_session.execute(select(ExtractedField).where(ExtractedField.extracted_data_id == extraction.id))
    fields = {field.name: field.value for field in result.scalars().all()}
    assert fields["Invoice Number"] == "INV-900"


async def test_run_job_download_error_status(db_session, storage, remote_document):
    service = ProcessingService(db_session, storage, http_transport=_transport(404))
    with pytest.raises(ParseError, match="HTTP 404"):
        await service.run_job(uuid.UUID(remote_document["id"]))


async def test_process_job_fetches_remote_file(session_factory, storage, remote_document):
    job = QueueJob(id="job-2", document_id=remote_document["id"], timestamp=0.0)
    queue = AsyncMock()

    assert await process_job(queue, job, storage, session_factory, http_transport=_transport(200, REMOTE_CSV)) is True
    queue.retry_or_fail.assert_not_awaited()

    async with session_factory() as session:
        document = await _document(session, remote_document["id"])
        assert document.status == DocumentStatus.COMPLETED


async def test_process_job_retries_failed_download(session_factory, storage, remote_document):
    job = QueueJob(id="job-3", document_id=remote_document["id"], timestamp=0.0)
    queue = AsyncMock()
    queue.retry_or_fail.return_value = True

    assert await process_job(queue, job, storage, session_factory, http_transport=_transport(503)) is False
    queue.retry_or_fail.assert_awaited_once_with(job, "Failed to download file: HTTP 503")
