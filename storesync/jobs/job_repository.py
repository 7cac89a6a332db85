"""SQL write-through for job snapshots, per-item results and the per-job event log."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from storesync.models.db.enums import LogLevel
from storesync.models.db.migration_jobs import MigrationJobRecord, MigrationLog, MigrationResult
from storesync.models.schemas.sync import JobSnapshot, SyncResult
from storesync.utils import get_logger

logger = get_logger(__name__)


class JobRepository:
    """Persists job state to ``migration_jobs``, finished items to ``migration_results``
    and events to ``migration_logs``.

    Lifecycle changes rewrite the job row; a finished item only inserts its own
    result row and bumps the counters, so the cost of recording an item does not
    grow with the size of the job.

    Each call opens its own session so worker threads never share one.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def save(self, snapshot: JobSnapshot) -> None:
        session = self.session_factory()
        try:
            record = session.get(MigrationJobRecord, snapshot.id)
            if record is None:
                record = MigrationJobRecord(id=snapshot.id)
                session.add(record)
            record.type = snapshot.type
            record.source_platform = snapshot.source_platform
            record.destination_platform = snapshot.destination_platform
            record.status = snapshot.status
            record.priority = snapshot.priority
            record.total = snapshot.total
            record.processed = snapshot.processed
            record.succeeded = snapshot.succeeded
            record.failed_items = snapshot.failed_items
            record.error = snapshot.error
            record.created_at = snapshot.created_at
            record.updated_at = snapshot.updated_at
            record.started_at = snapshot.started_at
            record.completed_at = snapshot.completed_at
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def add_result(self, job_id: str, result: SyncResult, updated_at: datetime) -> None:
        session = self.session_factory()
        try:
            session.add(MigrationResult(
                job_id=job_id,
                item_index=result.index,
                success=result.success,
                payload=result.model_dump(mode="json"),
            ))
            session.execute(
                update(MigrationJobRecord)
                .where(MigrationJobRecord.id == job_id)
                .values(
                    processed=MigrationJobRecord.processed + 1,
                    succeeded=MigrationJobRecord.succeeded + (1 if result.success else 0),
                    failed_items=MigrationJobRecord.failed_items + (0 if result.success else 1),
                    updated_at=updated_at,
                )
            )
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def discard_results(self, job_id: str) -> None:
        session = self.session_factory()
        try:
            session.execute(delete(MigrationResult).where(MigrationResult.job_id == job_id))
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def load(self, job_id: str) -> Optional[JobSnapshot]:
        session = self.session_factory()
        try:
            record = session.get(MigrationJobRecord, job_id)
            return self._to_snapshot(record) if record is not None else None
        finally:
            session.close()

    def list(self, limit: int = 100) -> List[JobSnapshot]:
        session = self.session_factory()
        try:
            stmt = select(MigrationJobRecord).order_by(MigrationJobRecord.created_at.desc()).limit(limit)
            return [self._to_snapshot(r) for r in session.scalars(stmt)]
        finally:
            session.close()

    def log(self, job_id: str, level: LogLevel, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        session = self.session_factory()
        try:
            session.add(MigrationLog(job_id=job_id, level=level, message=message, details=details))
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def logs(self, job_id: str) -> List[MigrationLog]:
        session = self.session_factory()
        try:
            stmt = select(MigrationLog).where(MigrationLog.job_id == job_id).order_by(MigrationLog.id)
            return list(session.scalars(stmt))
        finally:
            session.close()

    @staticmethod
    def _to_snapshot(record: MigrationJobRecord) -> JobSnapshot:
        return JobSnapshot(
            id=record.id,
            type=record.type,
            source_platform=record.source_platform,
            destination_platform=record.destination_platform,
            status=record.status,
            priority=record.priority,
            total=record.total,
            processed=record.processed,
            succeeded=record.succeeded,
            failed_items=record.failed_items,
            results=[SyncResult.model_validate(r.payload) for r in record.results],
            error=record.error,
            created_at=_aware(record.created_at),
            updated_at=_aware(record.updated_at),
            started_at=_aware(record.started_at),
            completed_at=_aware(record.completed_at),
        )


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # sqlite drops tzinfo on the way back
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


__all__ = ["JobRepository"]
