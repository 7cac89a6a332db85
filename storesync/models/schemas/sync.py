"""
Pydantic schemas for difference detection, sync results and migration jobs.
"""
from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, model_validator

from storesync.models.db.enums import EntityKind, JobStatus, PlatformName
from storesync.models.schemas.entities import Entity

CREATE_MARKER = "*"


class Difference(BaseModel):
    """One source entity that must be created or updated on the destination."""
    model_config = ConfigDict(frozen=True)

    matching_key: str = Field(description="Normalized cross-platform key (slug, SKU or email)")
    kind: EntityKind
    source_platform: PlatformName
    destination_platform: PlatformName
    fields_changed: tuple[str, ...] = Field(description='Changed field names, or ("*",) when the entity is missing on the destination')
    source_id: str
    destination_id: Optional[str] = Field(None, description="Resolved destination id; None for the creation case")
    source_snapshot: Optional[Entity] = Field(None, description="Source entity at diff time; re-read from the source when absent")
    title: str = ""
    slug: str = ""

    @property
    def is_creation(self) -> bool:
        return CREATE_MARKER in self.fields_changed

    @model_validator(mode="after")
    def _check_consistency(self) -> "Difference":
        if not self.fields_changed:
            raise ValueError("fields_changed must not be empty")
        if self.source_platform == self.destination_platform:
            raise ValueError("source and destination platforms must differ")
        if self.source_snapshot is not None and self.source_snapshot.kind != self.kind.value:
            raise ValueError("source_snapshot kind does not match difference kind")
        return self


class SyncResult(BaseModel):
    """Outcome of migrating one Difference. Exactly one per input Difference."""
    index: int = Field(ge=0, description="Position of the originating Difference in the batch")
    matching_key: str
    success: bool
    destination_id: Optional[str] = None
    error_message: Optional[str] = None
    error_kind: Optional[str] = Field(None, description="validation|transient|permanent|not_found|timeout")
    attempts: int = 0
    platform: PlatformName
    title: str = ""


class ComparisonSummary(BaseModel):
    source_platform: PlatformName
    destination_platform: PlatformName
    kind: EntityKind
    source_count: int
    destination_count: int
    matched: int
    in_sync: int
    to_create: int
    to_update: int
    duplicate_keys: List[str] = Field(default_factory=list)
    unkeyed_source: int = 0


class DetectionReport(BaseModel):
    differences: List[Difference]
    summary: ComparisonSummary


class JobSnapshot(BaseModel):
    """Read-only copy of a migration job handed to callers."""
    id: str
    type: EntityKind
    source_platform: PlatformName
    destination_platform: PlatformName
    status: JobStatus
    priority: str = "normal"
    total: int
    processed: int = 0
    succeeded: int = 0
    failed_items: int = 0
    results: List[SyncResult] = Field(default_factory=list)
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


# ----------------------------- request bodies ----------------------------- #
class CompareRequest(BaseModel):
    source_of_truth: str = Field("", description="woocommerce or shopify")
    include_snapshots: bool = Field(True, description="Embed source snapshots in the returned differences")


class DifferenceIn(BaseModel):
    """Difference as posted by callers; platforms are derived from source_of_truth."""
    matching_key: str
    source_id: str
    destination_id: Optional[str] = None
    fields_changed: List[str] = Field(default_factory=lambda: [CREATE_MARKER])
    source_snapshot: Optional[Entity] = None
    title: str = ""
    slug: str = ""


class SyncRequest(BaseModel):
    source_of_truth: str = Field("", description="woocommerce or shopify")
    differences: List[DifferenceIn] = Field(default_factory=list)
    priority: str = "normal"


class BulkMigrateRequest(BaseModel):
    item_ids: List[str] = Field(default_factory=list)
    type: EntityKind
    source: PlatformName
    destination: PlatformName
    priority: str = "normal"


class SingleMigrateRequest(BaseModel):
    item_id: str
    type: EntityKind
    source: PlatformName
    destination: PlatformName
    destination_id: Optional[str] = Field(None, description="Update this destination entity instead of creating one")


class PreviewResponse(BaseModel):
    source: Dict[str, Any]
    destination: Dict[str, Any]
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class DeleteRequest(BaseModel):
    platform: PlatformName
    ids: List[str] = Field(default_factory=list)
    hard_delete: bool = False


class DeleteOutcome(BaseModel):
    id: str
    success: bool
    error_message: Optional[str] = None
