"""
Document processing worker.

Consumes the processing queue one job at a time:

    python -m apps.invest.worker
"""
import asyncio
import logging
import signal
from typing import Optional
from uuid import UUID

import httpx

from apps.invest.config import get_invest_settings
from apps.invest.db import AsyncSessionLocal, init_invest_db
from apps.invest.queue import DocumentQueue, QueueJob, get_document_queue
from apps.invest.redis_client import close_redis_connection, init_redis_connection
from apps.invest.services.processing_service import ProcessingService
from apps.invest.storage import LocalObjectStorage, get_storage
from common.utils.observability import setup_logging

logger = logging.getLogger(__name__)


async def process_job(
    queue: DocumentQueue,
    job: QueueJob,
    storage: LocalObjectStorage,
    session_factory=AsyncSessionLocal,
    http_transport: Optional[httpx.AsyncBaseTransport] = None
):
    """Run one job; failures are rescheduled until the queue gives up on them."""
    document_id = UUID(job.document_id)
    log_extra = {"job_id": job.id, "document_id": job.document_id, "attempt": job.attempts + 1}
    logger.info(f"Processing job {job.id}", extra=log_extra)

    async with session_factory() as session:
        service = ProcessingService(session, storage, http_transport=http_transport)
        try:
            await service.run_job(document_id)
        except Exception as e:
            await session.rollback()
            logger.exception(f"Job {job.id} failed: {e}", extra=log_extra)
            if not await queue.retry_or_fail(job, str(e)):
                await service.mark_failed(document_id, str(e))
            return False
    return True


async def run_worker(stop: asyncio.Event = None):
    settings = get_invest_settings()
    stop = stop or asyncio.Event()

    await init_invest_db()
    if not await init_redis_connection():
        raise RuntimeError("Redis is not reachable, worker cannot start")

    queue = get_document_queue()
    storage = get_storage()
    logger.info(f"Worker listening on {queue.key}")
    try:
        while not stop.is_set():
            job = await queue.dequeue(timeout=settings.QUEUE_POLL_TIMEOUT)
            if job is not None:
                await process_job(queue, job, storage)
    finally:
        await close_redis_connection()
        logger.info("Worker stopped")


def main():
    settings = get_invest_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    async def _run():
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)
        await run_worker(stop)

    asyncio.run(_run())


if __name__ == "__main__":
    main()
