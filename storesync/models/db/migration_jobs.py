"""SQLAlchemy models for persisted migration jobs and their event log."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from storesync.database import Base
from .enums import EntityKind, JobStatus, LogLevel, PlatformName


class MigrationJobRecord(Base):
    """Write-through copy of a job snapshot, kept for polling after restarts."""
    __tablename__ = "migration_jobs"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    type: Mapped[EntityKind] = mapped_column(Enum(EntityKind), nullable=False)
    source_platform: Mapped[PlatformName] = mapped_column(Enum(PlatformName), nullable=False)
    destination_platform: Mapped[PlatformName] = mapped_column(Enum(PlatformName), nullable=False)
    status: Mapped[JobStatus] = mapped_column(Enum(JobStatus), nullable=False, index=True)
    priority: Mapped[str] = mapped_column(String(16), default="normal")
    total: Mapped[int] = mapped_column(Integer, default=0)
    processed: Mapped[int] = mapped_column(Integer, default=0)
    succeeded: Mapped[int] = mapped_column(Integer, default=0)
    failed_items: Mapped[int] = mapped_column(Integer, default=0)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    logs: Mapped[list["MigrationLog"]] = relationship("MigrationLog", back_populates="job", cascade="all, delete-orphan")
    results: Mapped[list["MigrationResult"]] = relationship(
        "MigrationResult",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="MigrationResult.item_index",
    )


class MigrationLog(Base):
    __tablename__ = "migration_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    job_id: Mapped[str] = mapped_column(String(32), ForeignKey("migration_jobs.id"), nullable=False, index=True)
    level: Mapped[LogLevel] = mapped_column(Enum(LogLevel), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    job: Mapped[MigrationJobRecord] = relationship("MigrationJobRecord", back_populates="logs")


class MigrationResult(Base):
    """One finished item of a job; written once, as the item completes."""
    __tablename__ = "migration_results"
    __table_args__ = (UniqueConstraint("job_id", "item_index", name="uq_migration_results_job_item"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    job_id: Mapped[str] = mapped_column(String(32), ForeignKey("migration_jobs.id"), nullable=False, index=True)
    item_index: Mapped[int] = mapped_column(Integer, nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)

    job: Mapped[MigrationJobRecord] = relationship("MigrationJobRecord", back_populates="results")
