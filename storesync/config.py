"""Core application configuration & tunable sync rules.

Every knob that may evolve (retry/backoff bounds, circuit thresholds, worker
pool size, per-item timeouts, page sizes, platform API versions) is centralized
here so it can be adjusted without diving into service logic. Values are module
constants seeded from environment variables; tests monkeypatch the dicts.
"""
from __future__ import annotations

import os

DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+pysqlite:///./storesync.db")

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE: str | None = os.getenv("LOG_FILE", "logs/storesync.log") or None
CORS_ORIGINS: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")

# Platforms a sync request may name as source of truth. "memory" is a sandbox
# platform accepted by the migrate endpoints only.
SYNC_PLATFORMS: tuple[str, ...] = ("woocommerce", "shopify")

# ----------------------------- Circuit Breaker ---------------------------- #
CIRCUIT_BREAKER: dict[str, int | float] = {
	"failure_threshold": int(os.getenv("CIRCUIT_FAILURE_THRESHOLD", "5")),  # Consecutive transient failures before OPEN
	"open_cooldown_seconds": 60,     # Stay OPEN for 1 minute
	"half_open_probe_count": 3,      # Probes allowed in HALF_OPEN
}

# --------------------------------- Backoff -------------------------------- #
BACKOFF_POLICY: dict[str, int | float] = {
	"base_seconds": 1,
	"factor": 2,          # Exponential factor
	"max_seconds": 30,
	"max_attempts": int(os.getenv("SYNC_MAX_ATTEMPTS", "3")),
	"jitter_pct": 0.10,   # +/-10% jitter
}

# --------------------------------- Queue ---------------------------------- #
QUEUE_SETTINGS: dict[str, dict[str, int] | int | bool] = {
	"priorities": {  # Lower number = higher priority
		"high": 0,
		"normal": 5,
		"low": 10,
	},
	"warn_depth": 100,
	"max_in_memory": 1000,
	# Worker threads; each runs one job at a time, so this bounds concurrent jobs.
	"workers": int(os.getenv("SYNC_WORKERS", "2")),
	"persist_jobs": os.getenv("PERSIST_JOBS", "true").lower() in ("1", "true", "yes"),
}

# ------------------------------- Migration -------------------------------- #
MIGRATION_SETTINGS: dict[str, int | float] = {
	# Items migrated concurrently within one job. 1 keeps strict sequential order.
	"item_concurrency": int(os.getenv("SYNC_ITEM_CONCURRENCY", "1")),
	# Upper bound for one item including all retries.
	"item_timeout_seconds": float(os.getenv("SYNC_ITEM_TIMEOUT", "120")),
	# Runaway guard when draining paged fetches.
	"max_pages": 200,
	"compare_page_size": 100,
}

# ------------------------------- Platforms -------------------------------- #
PLATFORM_SETTINGS: dict[str, dict[str, int | float | str]] = {
	"woocommerce": {
		"api_path": "wp-json/wc/v3",
		"wp_api_path": "wp-json/wp/v2",
		"max_page_size": 100,
		"timeout_seconds": float(os.getenv("WOOCOMMERCE_TIMEOUT", "30")),
	},
	"shopify": {
		"api_version": os.getenv("SHOPIFY_API_VERSION", "2024-10"),
		"max_page_size": 250,
		"timeout_seconds": float(os.getenv("SHOPIFY_TIMEOUT", "30")),
	},
}

__all__ = [
	"DATABASE_URL",
	"LOG_LEVEL",
	"LOG_FILE",
	"CORS_ORIGINS",
	"SYNC_PLATFORMS",
	"CIRCUIT_BREAKER",
	"BACKOFF_POLICY",
	"QUEUE_SETTINGS",
	"MIGRATION_SETTINGS",
	"PLATFORM_SETTINGS",
]
