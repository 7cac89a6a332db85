"""Migration job record held by the job store."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from storesync.models.db.enums import EntityKind, JobStatus, PlatformName
from storesync.models.schemas.sync import Difference, JobSnapshot, SyncResult


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class MigrationJob:
    id: str
    type: EntityKind
    source_platform: PlatformName
    destination_platform: PlatformName
    items: List[Difference]
    priority: str = "normal"
    status: JobStatus = JobStatus.PENDING
    results: Dict[int, SyncResult] = field(default_factory=dict)
    succeeded: int = 0
    failed_items: int = 0
    error: Optional[str] = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    # Guards every mutable field above; held only by the job store.
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def processed(self) -> int:
        return len(self.results)

    def touch(self) -> None:
        self.updated_at = _now()

    def snapshot(self) -> JobSnapshot:
        """Independent copy; call with ``lock`` held."""
        return JobSnapshot(
            id=self.id,
            type=self.type,
            source_platform=self.source_platform,
            destination_platform=self.destination_platform,
            status=self.status,
            priority=self.priority,
            total=self.total,
            processed=self.processed,
            succeeded=self.succeeded,
            failed_items=self.failed_items,
            results=[self.results[i].model_copy(deep=True) for i in sorted(self.results)],
            error=self.error,
            created_at=self.created_at,
            updated_at=self.updated_at,
            started_at=self.started_at,
            completed_at=self.completed_at,
        )


__all__ = ["MigrationJob"]
