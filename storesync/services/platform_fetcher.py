"""Resilient platform calls: circuit breaker, bounded retries and paged draining.

Every network operation a sync performs goes through ``PlatformFetcher.call``:

* The per-platform circuit breaker is consulted first; an open circuit fails
  the call immediately as transient without touching the platform.
* ``TransientError`` is retried up to ``BACKOFF_POLICY["max_attempts"]`` with
  exponential backoff and jitter, and counts against the breaker.
* ``PermanentError`` (and anything else) ends the call on the first attempt.

``fetch_all`` drains a paginated listing by following ``next_token`` until it
is None, bounded by ``MIGRATION_SETTINGS["max_pages"]``. A listing that hits
the bound, or whose next token repeats, raises ``IncompleteListingError``
rather than returning a truncated collection.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from storesync.config import BACKOFF_POLICY, MIGRATION_SETTINGS
from storesync.errors import IncompleteListingError, PermanentError, TransientError
from storesync.integrations.base import PlatformClient
from storesync.models.db.enums import EntityKind
from storesync.models.schemas.entities import EntityBase
from storesync.utils.backoff import compute_backoff_seconds
from storesync.utils.circuit_breaker import GLOBAL_CIRCUIT_BREAKER, CircuitBreaker
from storesync.utils import get_logger

logger = get_logger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]


@dataclass
class CallOutcome:
    success: bool
    value: Any = None
    attempts: int = 0
    error: Optional[Exception] = None

    def unwrap(self) -> Any:
        if not self.success:
            raise self.error  # type: ignore[misc]
        return self.value


class PlatformFetcher:
    """Applies breaker + retry semantics around single platform operations."""

    def __init__(
        self,
        *,
        breaker: Optional[CircuitBreaker] = None,
        max_attempts: int | None = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.breaker = breaker or GLOBAL_CIRCUIT_BREAKER
        self.max_attempts = int(max_attempts or BACKOFF_POLICY["max_attempts"])  # type: ignore[index]
        self.sleep = sleep

    async def call(
        self,
        platform: str,
        operation: Callable[[], Awaitable[Any]],
        *,
        description: str = "platform call",
    ) -> CallOutcome:
        """Run ``operation`` with retries. Never raises; the outcome carries the error."""
        allow, reason = self.breaker.allow_call(platform)
        if not allow:
            logger.warning(
                "Platform call skipped due to circuit breaker",
                platform=platform,
                reason=reason,
                operation=description,
            )
            return CallOutcome(
                success=False,
                attempts=0,
                error=TransientError(f"Circuit breaker denies call: {reason}", platform=platform),
            )

        attempts = 0
        while True:
            attempts += 1
            try:
                value = await operation()
            except TransientError as e:
                self.breaker.record_failure(platform)
                if attempts >= self.max_attempts:
                    logger.warning(
                        "Platform call exhausted retries",
                        platform=platform,
                        operation=description,
                        attempts=attempts,
                        error=str(e),
                    )
                    return CallOutcome(success=False, attempts=attempts, error=e)
                backoff = compute_backoff_seconds(attempts)
                logger.warning(
                    "Platform call retry scheduled",
                    platform=platform,
                    operation=description,
                    attempt=attempts,
                    backoff_seconds=round(backoff, 2),
                    error=str(e),
                )
                await self.sleep(backoff)
                continue
            except PermanentError as e:
                return CallOutcome(success=False, attempts=attempts, error=e)
            except asyncio.CancelledError:
                raise
            except Exception as e:  # unexpected client failure, treated as permanent
                logger.error(
                    "Unexpected platform call failure",
                    platform=platform,
                    operation=description,
                    error=str(e),
                    exc_info=True,
                )
                return CallOutcome(success=False, attempts=attempts, error=e)
            self.breaker.record_success(platform)
            return CallOutcome(success=True, value=value, attempts=attempts)

    async def fetch_all(
        self,
        client: PlatformClient,
        kind: EntityKind,
        *,
        page_size: int | None = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[EntityBase]:
        """Drain every page of ``kind``.

        Raises the last error if a page cannot be fetched, and
        ``IncompleteListingError`` if the listing never reaches its last page.
        """
        size = int(page_size or MIGRATION_SETTINGS["compare_page_size"])
        max_pages = int(MIGRATION_SETTINGS["max_pages"])
        platform = client.platform.value
        items: List[EntityBase] = []
        token: Optional[str] = None
        seen_tokens: set[str] = set()
        for page_number in range(1, max_pages + 1):
            outcome = await self.call(
                platform,
                lambda: client.fetch_page(kind, token, size, filters),
                description=f"fetch_page {kind.value} #{page_number}",
            )
            page = outcome.unwrap()
            items.extend(page.items)
            token = page.next_token
            if token is None:
                break
            if token in seen_tokens:
                logger.error("Pagination token repeated", platform=platform, kind=kind.value, token=token)
                raise IncompleteListingError(
                    f"{platform} returned page token {token!r} twice while listing {kind.value}",
                    platform=platform,
                )
            seen_tokens.add(token)
        else:
            logger.error(
                "Pagination guard reached",
                platform=platform,
                kind=kind.value,
                max_pages=max_pages,
                fetched=len(items),
            )
            raise IncompleteListingError(
                f"{platform} {kind.value} listing exceeds {max_pages} pages; refusing a partial result",
                platform=platform,
            )
        logger.debug("Fetched all entities", platform=platform, kind=kind.value, count=len(items))
        return items


__all__ = ["PlatformFetcher", "CallOutcome"]
