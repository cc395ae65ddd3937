"""
Indexing Outbox

Decouples content writes from indexing. Content-mutation events are
enqueued as IndexingJobs and a background asyncio worker feeds them to the
ContentIndexer. Indexing failures are logged and never reach the writer.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..common.schemas import ContentType
from .content_indexer import ContentIndexer
from .text_extractor import extract_text

logger = logging.getLogger("atrium.indexer.outbox")


@dataclass
class IndexingJob:
    """One content-mutation event awaiting indexing"""
    workspace_id: str
    content_id: str
    content_type: ContentType
    body: Any  # raw body; rich text is extracted by the worker
    metadata: Dict[str, Any] = field(default_factory=dict)


class IndexingOutbox:
    """
    asyncio queue of indexing jobs with a single worker task.

    Usage:
        outbox = IndexingOutbox(indexer)
        outbox.start()
        outbox.enqueue(job)
        await outbox.drain()
        await outbox.stop()
    """

    def __init__(self, indexer: ContentIndexer, maxsize: int = 0):
        self._indexer = indexer
        self._queue: "asyncio.Queue[IndexingJob]" = asyncio.Queue(maxsize=maxsize)
        self._worker: Optional[asyncio.Task] = None
        self._stats = {"enqueued": 0, "indexed": 0, "skipped": 0, "failed": 0}

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def enqueue(self, job: IndexingJob) -> None:
        """Queue a job without waiting for it to be indexed."""
        self._queue.put_nowait(job)
        self._stats["enqueued"] += 1

    def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="atrium-indexing-outbox")
        logger.info("Indexing outbox worker started")

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Indexing outbox worker stopped")

    async def drain(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self.process(job)
            finally:
                self._queue.task_done()

    async def process(self, job: IndexingJob) -> Optional[str]:
        """Index a single job, logging and swallowing failures."""
        text = extract_text(job.body)
        try:
            entry_id = await asyncio.to_thread(
                self._indexer.index,
                job.workspace_id,
                job.content_id,
                job.content_type,
                text,
                job.metadata,
            )
        except Exception as e:
            self._stats["failed"] += 1
            logger.warning(
                "Indexing failed for %s %s in %s: %s",
                job.content_type, job.content_id, job.workspace_id, e,
                exc_info=True,
            )
            return None

        if entry_id is None:
            self._stats["skipped"] += 1
        else:
            self._stats["indexed"] += 1
        return entry_id

    def get_stats(self) -> Dict[str, int]:
        return {**self._stats, "pending": self._queue.qsize()}
