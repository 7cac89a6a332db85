"""
In-memory platform client.

Backs the ``memory`` sandbox platform and stands in for real stores in tests.
Entities are stored as universal field dicts; the client can pose as another
platform (``platform=PlatformName.SHOPIFY``) so comparisons apply that
platform's field rules, and failures or latency can be scripted per operation.
"""
import asyncio
import copy
import itertools
from collections import defaultdict, deque
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from storesync.errors import NotFoundError, PermanentError
from storesync.integrations.base import Page, PlatformClient
from storesync.models.db.enums import EntityKind, PlatformName
from storesync.models.schemas.entities import EntityBase
from storesync.services.mapping import from_payload
from storesync.utils import get_logger

logger = get_logger(__name__)

OPERATIONS = ("fetch_page", "get_one", "create_one", "update_one", "delete_one")


class MemoryPlatformClient(PlatformClient):
    """Dict-backed store with offset or cursor pagination."""

    def __init__(
        self,
        platform: PlatformName = PlatformName.MEMORY,
        *,
        pagination: str = "offset",
        unsupported_kinds: Tuple[EntityKind, ...] = (),
        latency_seconds: float = 0.0,
    ):
        if pagination not in ("offset", "cursor"):
            raise ValueError("pagination must be 'offset' or 'cursor'")
        self.platform = platform
        self.pagination = pagination
        self.unsupported_kinds = set(unsupported_kinds)
        self.latency_seconds = latency_seconds
        self.connected = True
        self._records: Dict[EntityKind, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        self._trash: Dict[EntityKind, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        self._ids = itertools.count(1)
        self._scripted: Dict[str, Deque[Optional[Exception]]] = defaultdict(deque)
        self._rules: List[Tuple[str, Callable[..., bool], Exception]] = []
        self.calls: List[Tuple[str, EntityKind, Optional[str]]] = []
        self.logger = get_logger(f"integration.memory.{platform.value}")

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "MemoryPlatformClient":
        client = cls(pagination=config.get("pagination", "offset"))
        for kind_name, items in (config.get("seed") or {}).items():
            client.seed(EntityKind(kind_name), items)
        return client

    @property
    def field_platform(self) -> PlatformName:
        return PlatformName.MEMORY

    # ----------------------------- test helpers ----------------------------- #
    def seed(self, kind: EntityKind, items: List[Any]) -> List[str]:
        """Store universal entities (models or field dicts); returns their ids."""
        ids = []
        for item in items:
            if isinstance(item, EntityBase):
                data = item.model_dump(exclude={"platform", "kind"})
            else:
                data = dict(item)
            entity_id = str(data.pop("id", None) or self._next_id())
            self._records[kind][entity_id] = data
            ids.append(entity_id)
        return ids

    def fail_next(self, operation: str, *errors: Optional[Exception]) -> None:
        """Queue outcomes for the next calls of ``operation``; None lets a call through."""
        self._check_operation(operation)
        self._scripted[operation].extend(errors)

    def fail_when(self, operation: str, predicate: Callable[..., bool], error: Exception) -> None:
        """Raise ``error`` whenever ``predicate(kind, entity_id, payload)`` is true."""
        self._check_operation(operation)
        self._rules.append((operation, predicate, error))

    def records(self, kind: EntityKind) -> Dict[str, Dict[str, Any]]:
        return copy.deepcopy(dict(self._records[kind]))

    def entities(self, kind: EntityKind) -> List[EntityBase]:
        return [self._to_entity(kind, entity_id, data) for entity_id, data in self._records[kind].items()]

    def trashed(self, kind: EntityKind) -> List[str]:
        return list(self._trash[kind])

    # ----------------------------- contract ----------------------------- #
    async def fetch_page(
        self,
        kind: EntityKind,
        page_token: Optional[str] = None,
        page_size: int = 100,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Page:
        await self._before("fetch_page", kind, None, None)
        ids = list(self._records[kind])
        if filters:
            ids = [i for i in ids if all(self._records[kind][i].get(k) == v for k, v in filters.items())]
        if self.pagination == "offset":
            page = int(page_token or 1)
            start = (page - 1) * page_size
            chunk = ids[start:start + page_size]
            next_token = str(page + 1) if start + page_size < len(ids) else None
        else:
            start = ids.index(page_token) + 1 if page_token in ids else 0
            chunk = ids[start:start + page_size]
            next_token = chunk[-1] if chunk and start + page_size < len(ids) else None
        items = [self._to_entity(kind, i, self._records[kind][i]) for i in chunk]
        return Page(items=items, next_token=next_token)

    async def get_one(self, kind: EntityKind, entity_id: str) -> EntityBase:
        await self._before("get_one", kind, entity_id, None)
        data = self._records[kind].get(entity_id)
        if data is None:
            raise NotFoundError(f"{kind.value} {entity_id} not found", platform=self.platform.value, status_code=404)
        return self._to_entity(kind, entity_id, data)

    async def create_one(self, kind: EntityKind, payload: Dict[str, Any]) -> str:
        await self._before("create_one", kind, None, payload)
        entity_id = self._next_id()
        self._records[kind][entity_id] = copy.deepcopy(payload)
        self.logger.debug("Entity created", kind=kind.value, entity_id=entity_id)
        return entity_id

    async def update_one(self, kind: EntityKind, entity_id: str, payload: Dict[str, Any]) -> None:
        await self._before("update_one", kind, entity_id, payload)
        if entity_id not in self._records[kind]:
            raise NotFoundError(f"{kind.value} {entity_id} not found", platform=self.platform.value, status_code=404)
        self._records[kind][entity_id].update(copy.deepcopy(payload))

    async def delete_one(self, kind: EntityKind, entity_id: str, hard_delete: bool = False) -> None:
        await self._before("delete_one", kind, entity_id, None)
        data = self._records[kind].pop(entity_id, None)
        if data is None:
            raise NotFoundError(f"{kind.value} {entity_id} not found", platform=self.platform.value, status_code=404)
        if not hard_delete:
            self._trash[kind][entity_id] = data

    async def test_connection(self) -> bool:
        return self.connected

    # ----------------------------- internals ----------------------------- #
    def _next_id(self) -> str:
        return f"{self.platform.value}-{next(self._ids)}"

    def _to_entity(self, kind: EntityKind, entity_id: str, data: Dict[str, Any]) -> EntityBase:
        entity = from_payload(PlatformName.MEMORY, kind, {**data, "id": entity_id})
        return entity.model_copy(update={"platform": self.platform})

    def _check_operation(self, operation: str) -> None:
        if operation not in OPERATIONS:
            raise ValueError(f"unknown operation {operation!r}")

    async def _before(self, operation: str, kind: EntityKind, entity_id: Optional[str], payload: Optional[Dict[str, Any]]) -> None:
        self.calls.append((operation, kind, entity_id))
        if self.latency_seconds:
            await asyncio.sleep(self.latency_seconds)
        if kind in self.unsupported_kinds:
            raise PermanentError(f"{kind.value} is not supported on {self.platform.value}", platform=self.platform.value)
        scripted = self._scripted[operation]
        if scripted:
            error = scripted.popleft()
            if error is not None:
                raise error
        for rule_operation, predicate, error in self._rules:
            if rule_operation == operation and predicate(kind, entity_id, payload):
                raise error


__all__ = ["MemoryPlatformClient", "OPERATIONS"]
