"""
Async queue for running collection loaders.

A single worker consumes jobs, so exactly one loader runs at a time and
no two loaders ever mutate the store concurrently.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .loaders.base import Loader
from .loaders.context import LoaderContext

logger = logging.getLogger("content_layer.sync")


@dataclass
class LoaderJob:
    """Represents a request to run one collection's loader."""
    collection: str
    loader: Loader
    context: LoaderContext


class LoaderQueue:
    """Single-consumer queue of loader jobs for one sync pass."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[LoaderJob] = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self.failures: Dict[str, Exception] = {}
        self.completed: List[str] = []

    async def enqueue(self, job: LoaderJob) -> int:
        """Add a job to the queue. Returns current queue size."""
        await self._queue.put(job)
        qsize = self._queue.qsize()
        logger.debug("Loader enqueued: %s (queue size: %d)", job.collection, qsize)
        return qsize

    def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="content-layer-loader-worker")

    async def join(self) -> None:
        """Wait until every enqueued job has finished."""
        await self._queue.join()

    async def close(self) -> None:
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None

    async def run_all(self, jobs: Iterable[LoaderJob]) -> Dict[str, Exception]:
        """Run ``jobs`` to completion and return failures keyed by collection."""
        self.start()
        try:
            for job in jobs:
                await self.enqueue(job)
            await self.join()
        finally:
            await self.close()
        return self.failures

    async def _run(self) -> None:
        """Worker loop: consumes jobs until cancelled."""
        while True:
            job = await self._queue.get()
            try:
                await self._process(job)
            except Exception as exc:
                logger.error(
                    "Loader %r for collection %r failed: %s: %s",
                    job.loader.name,
                    job.collection,
                    type(exc).__name__,
                    exc,
                    exc_info=True,
                )
                self.failures[job.collection] = exc
            finally:
                self._queue.task_done()

    async def _process(self, job: LoaderJob) -> None:
        started = time.perf_counter()
        logger.info("Syncing %s (loader: %s)", job.collection, job.loader.name)
        await job.loader.load(job.context)
        self.completed.append(job.collection)
        logger.debug(
            "Finished %s in %.1f ms", job.collection, (time.perf_counter() - started) * 1000
        )
