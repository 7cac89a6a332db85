"""Job queue facade: accepts sync batches and runs them in the background.

``enqueue`` validates a batch, registers a pending job and returns its id
immediately. Worker threads pull ids from the dispatch queue, claim the job
(pending -> running, at most once), resolve the two platform clients and run
the SyncExecutor in a fresh event loop, recording each SyncResult as it
arrives. A job is ``completed`` once every item is processed, whatever the
per-item outcomes; it is ``failed`` when it could not start or the executor
itself crashed, and a failed job carries no per-item results.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, List, Optional, Sequence

from storesync.config import QUEUE_SETTINGS
from storesync.errors import JobSetupError, ValidationError
from storesync.integrations.base import PlatformClient
from storesync.integrations.platforms import ClientResolver
from storesync.jobs.job_store import JobStore
from storesync.jobs.queue import DispatchQueue
from storesync.jobs.worker_migration import MigrationWorker, start_workers
from storesync.models.db.enums import EntityKind, PlatformName
from storesync.models.schemas.sync import Difference, JobSnapshot, SyncResult
from storesync.services.sync_executor import SyncExecutor
from storesync.utils import get_logger, log_business_event

logger = get_logger(__name__)


def _platform(value: Any, role: str) -> PlatformName:
    try:
        return PlatformName(value)
    except ValueError:
        raise ValidationError(f"Unknown {role} platform '{value}'") from None


class JobQueue:
    def __init__(
        self,
        store: JobStore,
        client_resolver: ClientResolver,
        *,
        executor_factory: Optional[Callable[[], SyncExecutor]] = None,
        dispatch: Optional[DispatchQueue] = None,
    ):
        self.store = store
        self.client_resolver = client_resolver
        self.executor_factory = executor_factory or SyncExecutor
        self.dispatch = dispatch or DispatchQueue()
        self.workers: List[MigrationWorker] = []

    # ----------------------------- public API ----------------------------- #
    def enqueue(
        self,
        items: Sequence[Difference],
        type: EntityKind | str,
        source: PlatformName | str,
        destination: PlatformName | str,
        *,
        priority: str = "normal",
        request_id: Optional[str] = None,
    ) -> str:
        """Register a batch and schedule it; returns the new job id without waiting."""
        if not items:
            raise ValidationError("At least one item is required")
        try:
            kind = EntityKind(type)
        except ValueError:
            raise ValidationError(f"Unknown entity type '{type}'") from None
        source_platform = _platform(source, "source")
        destination_platform = _platform(destination, "destination")
        if source_platform == destination_platform:
            raise ValidationError("Source and destination platforms must differ")
        if priority not in self.dispatch.priorities:
            raise ValidationError(f"Unknown priority '{priority}'")
        for i, item in enumerate(items):
            if (item.kind, item.source_platform, item.destination_platform) != (kind, source_platform, destination_platform):
                raise ValidationError(f"Item {i} does not match the job's type and platforms")

        snapshot = self.store.create(items, kind, source_platform, destination_platform, priority=priority)
        try:
            self.dispatch.enqueue(snapshot.id, priority=priority)
        except (OverflowError, RuntimeError):
            self.store.discard(snapshot.id)
            raise

        log_business_event(
            "migration_job_enqueued",
            {
                "job_id": snapshot.id,
                "type": kind.value,
                "source": source_platform.value,
                "destination": destination_platform.value,
                "total": snapshot.total,
                "priority": priority,
            },
            request_id=request_id,
        )
        return snapshot.id

    def get_job(self, job_id: str) -> JobSnapshot:
        return self.store.snapshot(job_id)

    def list_jobs(self, limit: int = 100) -> List[JobSnapshot]:
        return self.store.list_snapshots(limit)

    # ----------------------------- execution ----------------------------- #
    def start(self, workers: Optional[int] = None) -> None:
        if self.workers:
            return
        count = int(workers or QUEUE_SETTINGS["workers"])  # type: ignore[arg-type]
        self.workers = start_workers(self.dispatch, self.run_job, count)

    def shutdown(self, timeout: float = 5.0) -> None:
        self.dispatch.shutdown()
        for worker in self.workers:
            worker.stop(timeout=timeout)
        self.workers = []

    def process_next(self, *, block: bool = False, timeout: Optional[float] = None) -> Optional[str]:
        """Run the next dispatched job on the calling thread; returns its id."""
        job_id = self.dispatch.dequeue(block=block, timeout=timeout)
        if job_id is not None:
            self.run_job(job_id)
        return job_id

    def run_job(self, job_id: str) -> None:
        job_log = logger.bind(job_id=job_id)
        claimed = self.store.claim(job_id)
        if claimed is None:
            job_log.info("Job already claimed; skipping")
            return
        job_log.info(
            "Processing migration job",
            type=claimed.type.value,
            source=claimed.source_platform.value,
            destination=claimed.destination_platform.value,
            total=claimed.total,
        )
        try:
            source_client = self.client_resolver(claimed.source_platform)
            destination_client = self.client_resolver(claimed.destination_platform)
        except Exception as e:
            message = str(e) if isinstance(e, JobSetupError) else f"Could not initialise platform clients: {e}"
            job_log.error("Migration job could not start", error=message)
            self.store.fail(job_id, message)
            return

        executor = self.executor_factory()
        try:
            asyncio.run(self._execute(job_id, executor, source_client, destination_client))
        except Exception as e:
            job_log.error("Migration job crashed", error=str(e), exc_info=True)
            self.store.fail(job_id, f"Executor error: {e}")
            return

        snapshot = self.store.complete(job_id)
        log_business_event(
            "migration_job_completed",
            {
                "job_id": job_id,
                "processed": snapshot.processed,
                "succeeded": snapshot.succeeded,
                "failed_items": snapshot.failed_items,
            },
        )

    async def _execute(
        self,
        job_id: str,
        executor: SyncExecutor,
        source_client: PlatformClient,
        destination_client: PlatformClient,
    ) -> None:
        """One job on its own event loop; clients are closed before the loop ends."""

        async def record(result: SyncResult) -> None:
            # Store writes block on SQL; they run on a worker thread, never on the loop.
            await asyncio.to_thread(self.store.record_result, job_id, result)

        async with source_client, destination_client:
            await executor.run(self.store.items(job_id), source_client, destination_client, on_result=record)

    def snapshot(self) -> dict:
        return {
            "dispatch": self.dispatch.snapshot(),
            "jobs": self.store.counts(),
            "workers": sum(1 for w in self.workers if w.is_alive),
        }


__all__ = ["JobQueue"]
