"""
Redis-backed job queue for document processing.

Ready jobs live in a Redis list. Normal jobs are pushed on the left and
high-priority jobs on the right, and consumers pop from the right, so
high-priority jobs run first. Retries wait in a sorted set scored by the
time they become ready again. Jobs that run out of attempts are kept in a
``:failed`` list for inspection.
"""
import logging
import time
import uuid
from typing import List, Optional

import redis.asyncio as redis
from pydantic import BaseModel

from apps.invest.config import get_invest_settings
from apps.invest.redis_client import get_redis_client

logger = logging.getLogger(__name__)


class JobPriority:
    NORMAL = "normal"
    HIGH = "high"


class QueueJob(BaseModel):
    id: str
    document_id: str
    priority: str = JobPriority.NORMAL
    timestamp: float
    attempts: int = 0
    last_error: Optional[str] = None


class DocumentQueue:
    def __init__(
        self,
        client: redis.Redis,
        name: str,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0
    ):
        self.client = client
        self.name = name
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.key = f"invest:queue:{name}"
        self.delayed_key = f"{self.key}:delayed"
        self.failed_key = f"{self.key}:failed"

    def __repr__(self):
        return f"<DocumentQueue {self.name}>"

    async def enqueue(self, document_id, priority: str = JobPriority.NORMAL) -> QueueJob:
        """Add a processing job for a document."""
        job = QueueJob(
            id=str(uuid.uuid4()),
            document_id=str(document_id),
            priority=priority,
            timestamp=time.time(),
        )
        await self._push(job)
        logger.info(f"Queued job {job.id} for document {job.document_id} ({priority})")
        return job

    async def _push(self, job: QueueJob):
        payload = job.model_dump_json()
        if job.priority == JobPriority.HIGH:
            await self.client.rpush(self.key, payload)
        else:
            await self.client.lpush(self.key, payload)

    async def promote_delayed(self, now: Optional[float] = None) -> int:
        """Move retries whose backoff has elapsed back onto the ready list."""
        now = time.time() if now is None else now
        due = await self.client.zrangebyscore(self.delayed_key, 0, now)
        promoted = 0
        for payload in due:
            # Only the consumer that removes the entry requeues it
            if await self.client.zrem(self.delayed_key, payload):
                await self._push(QueueJob.model_validate_json(payload))
                promoted += 1
        return promoted

    async def dequeue(self, timeout: int = 5) -> Optional[QueueJob]:
        """Block up to ``timeout`` seconds for the next job."""
        await self.promote_delayed()
        result = await self.client.brpop([self.key], timeout=timeout)
        if not result:
            return None
        _, payload = result
        return QueueJob.model_validate_json(payload)

    def backoff_for(self, attempts: int) -> float:
        """Exponential backoff: base, 2 x base, 4 x base, ..."""
        return self.backoff_seconds * (2 ** max(attempts - 1, 0))

    async def retry_or_fail(self, job: QueueJob, error: str) -> bool:
        """
        Record a failed attempt.

        Returns True when the job was scheduled again, False when it ran out
        of attempts and was moved to the failed list.
        """
        job.attempts += 1
        job.last_error = error

        if job.attempts < self.max_attempts:
            ready_at = time.time() + self.backoff_for(job.attempts)
            await self.client.zadd(self.delayed_key, {job.model_dump_json(): ready_at})
            logger.warning(
                f"Job {job.id} failed (attempt {job.attempts}/{self.max_attempts}), retrying",
                extra={"job_id": job.id, "document_id": job.document_id, "attempt": job.attempts},
            )
            return True

        await self.client.lpush(self.failed_key, job.model_dump_json())
        logger.error(
            f"Job {job.id} failed permanently after {job.attempts} attempts: {error}",
            extra={"job_id": job.id, "document_id": job.document_id, "attempt": job.attempts},
        )
        return False

    async def size(self) -> int:
        return await self.client.llen(self.key)

    async def failed_jobs(self, limit: int = 100) -> List[QueueJob]:
        payloads = await self.client.lrange(self.failed_key, 0, limit - 1)
        return [QueueJob.model_validate_json(p) for p in payloads]


def get_document_queue() -> DocumentQueue:
    settings = get_invest_settings()
    return DocumentQueue(
        get_redis_client(),
        settings.PROCESSING_QUEUE,
        max_attempts=settings.QUEUE_MAX_ATTEMPTS,
        backoff_seconds=settings.QUEUE_BACKOFF_SECONDS,
    )
