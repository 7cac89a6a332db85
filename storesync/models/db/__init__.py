from .enums import PlatformName, EntityKind, JobStatus, LogLevel, SYNCABLE_KINDS
from .connections import PlatformConnection
from .migration_jobs import MigrationJobRecord, MigrationLog, MigrationResult

__all__ = [
    "PlatformName",
    "EntityKind",
    "JobStatus",
    "LogLevel",
    "SYNCABLE_KINDS",
    "PlatformConnection",
    "MigrationJobRecord",
    "MigrationLog",
    "MigrationResult",
]
