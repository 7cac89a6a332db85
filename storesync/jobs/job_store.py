"""Registry of migration jobs.

The store is the only writer of job state. Each job carries its own lock;
callers only ever receive ``JobSnapshot`` copies. When a ``JobRepository`` is
attached, every state change is written through to SQL and ids that are no
longer in memory are served from the persisted row. Recording a result is a
blocking SQL write; async callers run it on a worker thread.
"""
from __future__ import annotations

import threading
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from storesync.errors import JobNotFoundError
from storesync.jobs.job_repository import JobRepository
from storesync.jobs.migration_job import MigrationJob, _now
from storesync.models.db.enums import EntityKind, JobStatus, LogLevel, PlatformName
from storesync.models.schemas.sync import Difference, JobSnapshot, SyncResult
from storesync.utils import get_logger

logger = get_logger(__name__)


class JobStore:
    def __init__(self, repository: Optional[JobRepository] = None):
        self.repository = repository
        self._jobs: Dict[str, MigrationJob] = {}
        self._lock = threading.Lock()

    # ----------------------------- internal helpers ----------------------------- #
    def _get(self, job_id: str) -> MigrationJob:
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Migration job {job_id} not found")
        return job

    def _persist(self, snapshot: JobSnapshot) -> None:
        if self.repository is None:
            return
        try:
            self.repository.save(snapshot)
        except SQLAlchemyError as e:
            logger.error("Job snapshot persistence failed", job_id=snapshot.id, error=str(e), exc_info=True)

    def _persist_result(self, job_id: str, result: SyncResult, updated_at: datetime) -> None:
        if self.repository is None:
            return
        try:
            self.repository.add_result(job_id, result, updated_at)
        except SQLAlchemyError as e:
            logger.error("Job result persistence failed", job_id=job_id, index=result.index, error=str(e), exc_info=True)

    def _log(self, job_id: str, level: LogLevel, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        if self.repository is None:
            return
        try:
            self.repository.log(job_id, level, message, details)
        except SQLAlchemyError as e:
            logger.error("Job log persistence failed", job_id=job_id, error=str(e), exc_info=True)

    # ----------------------------- lifecycle ----------------------------- #
    def create(
        self,
        items: Sequence[Difference],
        type: EntityKind,
        source_platform: PlatformName,
        destination_platform: PlatformName,
        *,
        priority: str = "normal",
    ) -> JobSnapshot:
        job = MigrationJob(
            id=uuid.uuid4().hex,
            type=type,
            source_platform=source_platform,
            destination_platform=destination_platform,
            items=list(items),
            priority=priority,
        )
        with self._lock:
            self._jobs[job.id] = job
        with job.lock:
            snapshot = job.snapshot()
        self._persist(snapshot)
        self._log(job.id, LogLevel.INFO, "Job enqueued", {"total": job.total, "priority": priority})
        return snapshot

    def discard(self, job_id: str) -> None:
        """Forget a job that never reached the dispatch queue."""
        with self._lock:
            self._jobs.pop(job_id, None)

    def items(self, job_id: str) -> List[Difference]:
        return list(self._get(job_id).items)

    def claim(self, job_id: str) -> Optional[JobSnapshot]:
        """Atomically move a pending job to running; None if it was already claimed."""
        job = self._get(job_id)
        with job.lock:
            if job.status != JobStatus.PENDING:
                return None
            job.status = JobStatus.RUNNING
            job.started_at = _now()
            job.touch()
            snapshot = job.snapshot()
        self._persist(snapshot)
        self._log(job_id, LogLevel.INFO, "Job started")
        return snapshot

    def record_result(self, job_id: str, result: SyncResult) -> None:
        job = self._get(job_id)
        with job.lock:
            if job.status != JobStatus.RUNNING:
                raise RuntimeError(f"Job {job_id} is not running")
            if result.index in job.results:
                raise RuntimeError(f"Job {job_id} already has a result for item {result.index}")
            job.results[result.index] = result
            if result.success:
                job.succeeded += 1
            else:
                job.failed_items += 1
            job.touch()
            updated_at = job.updated_at
        self._persist_result(job_id, result, updated_at)
        if not result.success:
            self._log(
                job_id,
                LogLevel.WARNING,
                f"Item {result.index} failed: {result.error_message}",
                {"matching_key": result.matching_key, "error_kind": result.error_kind, "attempts": result.attempts},
            )

    def complete(self, job_id: str) -> JobSnapshot:
        job = self._get(job_id)
        with job.lock:
            job.status = JobStatus.COMPLETED
            job.completed_at = _now()
            job.touch()
            snapshot = job.snapshot()
        self._persist(snapshot)
        self._log(
            job_id,
            LogLevel.INFO,
            "Job completed",
            {"processed": snapshot.processed, "succeeded": snapshot.succeeded, "failed_items": snapshot.failed_items},
        )
        return snapshot

    def fail(self, job_id: str, message: str) -> JobSnapshot:
        """Mark the job failed and drop any per-item results it had collected.

        A failed job claims no partial outcome. Items already written to the
        destination are named in the job's event log instead.
        """
        job = self._get(job_id)
        with job.lock:
            discarded = [job.results[i] for i in sorted(job.results)]
            job.results.clear()
            job.succeeded = 0
            job.failed_items = 0
            job.status = JobStatus.FAILED
            job.error = message
            job.completed_at = _now()
            job.touch()
            snapshot = job.snapshot()
        if discarded and self.repository is not None:
            try:
                self.repository.discard_results(job_id)
            except SQLAlchemyError as e:
                logger.error("Job result cleanup failed", job_id=job_id, error=str(e), exc_info=True)
        self._persist(snapshot)
        if discarded:
            self._log(
                job_id,
                LogLevel.WARNING,
                f"Discarded {len(discarded)} partial result(s)",
                {"written": [
                    {"index": r.index, "matching_key": r.matching_key, "destination_id": r.destination_id}
                    for r in discarded if r.success
                ]},
            )
        self._log(job_id, LogLevel.ERROR, f"Job failed: {message}")
        return snapshot

    # ----------------------------- inspection ----------------------------- #
    def snapshot(self, job_id: str) -> JobSnapshot:
        with self._lock:
            job = self._jobs.get(job_id)
        if job is not None:
            with job.lock:
                return job.snapshot()
        if self.repository is not None:
            persisted = self.repository.load(job_id)
            if persisted is not None:
                return persisted
        raise JobNotFoundError(f"Migration job {job_id} not found")

    def list_snapshots(self, limit: int = 100) -> List[JobSnapshot]:
        """Newest first; persisted jobs from earlier runs are included."""
        with self._lock:
            jobs = list(self._jobs.values())
        snapshots: Dict[str, JobSnapshot] = {}
        for job in jobs:
            with job.lock:
                snapshots[job.id] = job.snapshot()
        if self.repository is not None:
            for persisted in self.repository.list(limit):
                snapshots.setdefault(persisted.id, persisted)
        ordered = sorted(snapshots.values(), key=lambda s: s.created_at, reverse=True)
        return ordered[:limit]

    def counts(self) -> Dict[str, int]:
        with self._lock:
            jobs = list(self._jobs.values())
        counts = {status.value: 0 for status in JobStatus}
        for job in jobs:
            with job.lock:
                counts[job.status.value] += 1
        return counts


__all__ = ["JobStore"]
