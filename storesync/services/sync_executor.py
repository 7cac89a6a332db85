"""Sync executor: applies a batch of Differences to a destination platform.

Per item: resolve the source snapshot (embedded, else re-read from the source),
validate it, translate it through the destination's field map, then create or
update. Transient platform failures are retried by ``PlatformFetcher``; all
other failures are recorded on the item's SyncResult. An item never affects
its neighbours, and exactly one SyncResult is produced per input Difference,
returned in input order.

Items run sequentially by default. With ``item_concurrency > 1`` a semaphore
bounds in-flight items and each result lands in the slot of its input index.
``on_result`` may be a coroutine function; it is awaited before the item
releases its slot.
"""
from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from storesync.config import MIGRATION_SETTINGS
from storesync.errors import PermanentError, PlatformError, ValidationError
from storesync.integrations.base import PlatformClient
from storesync.models.db.enums import EntityKind, PlatformName
from storesync.models.schemas.entities import EntityBase
from storesync.models.schemas.sync import Difference, PreviewResponse, SyncResult
from storesync.services.mapping import preview_warnings, to_payload, validate_entity
from storesync.services.platform_fetcher import PlatformFetcher
from storesync.utils import get_logger, log_performance

logger = get_logger(__name__)

ResultCallback = Callable[[SyncResult], Union[None, Awaitable[None]]]


async def _deliver(on_result: Optional[ResultCallback], result: SyncResult) -> None:
    if on_result is None:
        return
    outcome = on_result(result)
    if inspect.isawaitable(outcome):
        await outcome


def error_kind_of(exc: BaseException) -> str:
    if isinstance(exc, ValidationError):
        return "validation"
    if isinstance(exc, PlatformError):
        return exc.kind
    return "permanent"


@dataclass
class _ItemProgress:
    attempts: int = 0


class SyncExecutor:
    """Runs Differences against platform clients, one SyncResult per item."""

    def __init__(
        self,
        *,
        fetcher: Optional[PlatformFetcher] = None,
        item_concurrency: Optional[int] = None,
        item_timeout_seconds: Optional[float] = None,
    ):
        self.fetcher = fetcher or PlatformFetcher()
        self.item_concurrency = max(1, int(item_concurrency or MIGRATION_SETTINGS["item_concurrency"]))
        self.item_timeout_seconds = float(item_timeout_seconds or MIGRATION_SETTINGS["item_timeout_seconds"])

    async def run(
        self,
        differences: Sequence[Difference],
        source_client: PlatformClient,
        destination_client: PlatformClient,
        on_result: Optional[ResultCallback] = None,
    ) -> List[SyncResult]:
        started = time.perf_counter()
        slots: List[Optional[SyncResult]] = [None] * len(differences)

        if self.item_concurrency == 1:
            for index, difference in enumerate(differences):
                result = await self.sync_one(index, difference, source_client, destination_client)
                slots[index] = result
                await _deliver(on_result, result)
        else:
            semaphore = asyncio.Semaphore(self.item_concurrency)

            async def _run_slot(index: int, difference: Difference) -> None:
                async with semaphore:
                    result = await self.sync_one(index, difference, source_client, destination_client)
                    slots[index] = result
                    await _deliver(on_result, result)

            await asyncio.gather(*(_run_slot(i, d) for i, d in enumerate(differences)))

        results = [r for r in slots if r is not None]
        log_performance(
            "sync_batch",
            (time.perf_counter() - started) * 1000,
            {
                "items": len(differences),
                "succeeded": sum(1 for r in results if r.success),
                "destination": destination_client.platform.value,
            },
        )
        return results

    async def sync_one(
        self,
        index: int,
        difference: Difference,
        source_client: PlatformClient,
        destination_client: PlatformClient,
    ) -> SyncResult:
        """Migrate one Difference; never raises for item-level failures."""
        progress = _ItemProgress()
        try:
            return await asyncio.wait_for(
                self._migrate(index, difference, source_client, destination_client, progress),
                timeout=self.item_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Sync item timed out",
                index=index,
                matching_key=difference.matching_key,
                timeout_seconds=self.item_timeout_seconds,
            )
            return self._failure(
                index, difference, destination_client,
                f"Timed out after {self.item_timeout_seconds}s", "timeout", progress.attempts,
            )
        except Exception as e:  # item isolation: nothing escapes a single item
            logger.error(
                "Sync item crashed",
                index=index,
                matching_key=difference.matching_key,
                error=str(e),
                exc_info=True,
            )
            return self._failure(index, difference, destination_client, str(e), error_kind_of(e), progress.attempts)

    async def _migrate(
        self,
        index: int,
        difference: Difference,
        source_client: PlatformClient,
        destination_client: PlatformClient,
        progress: _ItemProgress,
    ) -> SyncResult:
        kind = difference.kind
        snapshot = difference.source_snapshot
        if snapshot is None:
            outcome = await self.fetcher.call(
                source_client.platform.value,
                lambda: source_client.get_one(kind, difference.source_id),
                description=f"get_one {kind.value}",
            )
            progress.attempts += outcome.attempts
            if not outcome.success:
                return self._failure(
                    index, difference, destination_client,
                    f"Could not read source {kind.value} {difference.source_id}: {outcome.error}",
                    error_kind_of(outcome.error), progress.attempts,
                )
            snapshot = outcome.value

        problems = validate_entity(snapshot)
        if problems:
            return self._failure(index, difference, destination_client, "; ".join(problems), "validation", progress.attempts, snapshot)

        if not difference.is_creation and not difference.destination_id:
            return self._failure(
                index, difference, destination_client,
                "Update requires a destination id", "permanent", progress.attempts, snapshot,
            )

        fields = None if difference.is_creation else difference.fields_changed
        try:
            payload = to_payload(snapshot, destination_client.field_platform, fields=fields)
        except PermanentError as e:
            return self._failure(index, difference, destination_client, str(e), e.kind, progress.attempts, snapshot)

        if difference.is_creation:
            outcome = await self.fetcher.call(
                destination_client.platform.value,
                lambda: destination_client.create_one(kind, payload),
                description=f"create_one {kind.value}",
            )
        else:
            outcome = await self.fetcher.call(
                destination_client.platform.value,
                lambda: destination_client.update_one(kind, difference.destination_id, payload),
                description=f"update_one {kind.value}",
            )
        progress.attempts += outcome.attempts
        if not outcome.success:
            logger.warning(
                "Sync item failed",
                index=index,
                matching_key=difference.matching_key,
                error_kind=error_kind_of(outcome.error),
                attempts=progress.attempts,
                error=str(outcome.error),
            )
            return self._failure(
                index, difference, destination_client,
                str(outcome.error), error_kind_of(outcome.error), progress.attempts, snapshot,
            )

        destination_id = outcome.value if difference.is_creation else difference.destination_id
        logger.info(
            "Sync item succeeded",
            index=index,
            matching_key=difference.matching_key,
            destination_id=destination_id,
            created=difference.is_creation,
        )
        return SyncResult(
            index=index,
            matching_key=difference.matching_key,
            success=True,
            destination_id=str(destination_id) if destination_id is not None else None,
            attempts=progress.attempts,
            platform=destination_client.platform,
            title=difference.title or _title_of(snapshot),
        )

    def _failure(
        self,
        index: int,
        difference: Difference,
        destination_client: PlatformClient,
        message: str,
        error_kind: str,
        attempts: int,
        snapshot: Optional[EntityBase] = None,
    ) -> SyncResult:
        return SyncResult(
            index=index,
            matching_key=difference.matching_key,
            success=False,
            destination_id=difference.destination_id,
            error_message=message,
            error_kind=error_kind,
            attempts=attempts,
            platform=destination_client.platform,
            title=difference.title or (_title_of(snapshot) if snapshot is not None else ""),
        )

    async def preview(
        self,
        difference: Difference,
        source_client: PlatformClient,
        destination_platform: PlatformName,
    ) -> PreviewResponse:
        """Translated destination payload and data-loss warnings; the destination is not called."""
        snapshot = difference.source_snapshot
        if snapshot is None:
            outcome = await self.fetcher.call(
                source_client.platform.value,
                lambda: source_client.get_one(difference.kind, difference.source_id),
                description=f"get_one {difference.kind.value}",
            )
            snapshot = outcome.unwrap()
        fields = None if difference.is_creation else difference.fields_changed
        return PreviewResponse(
            source=snapshot.model_dump(mode="json"),
            destination=to_payload(snapshot, destination_platform, fields=fields),
            warnings=preview_warnings(snapshot, source_client.platform, destination_platform),
            errors=validate_entity(snapshot),
        )


def _title_of(entity: EntityBase) -> str:
    for attr in ("title", "name", "email"):
        value = getattr(entity, attr, None)
        if value:
            return str(value)
    return ""


def creation_difference(
    kind: EntityKind,
    source_id: str,
    source_platform: PlatformName,
    destination_platform: PlatformName,
    *,
    destination_id: Optional[str] = None,
    fields_changed: Optional[Sequence[str]] = None,
) -> Difference:
    """Difference for an explicit migrate request, keyed by the source id."""
    return Difference(
        matching_key=source_id,
        kind=kind,
        source_platform=source_platform,
        destination_platform=destination_platform,
        fields_changed=tuple(fields_changed) if fields_changed else ("*",),
        source_id=source_id,
        destination_id=destination_id,
    )


__all__ = ["SyncExecutor", "ResultCallback", "error_kind_of", "creation_difference"]
