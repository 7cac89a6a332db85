"""Uniform platform client contract.

Every store platform exposes the same five entity operations, keyed by
``EntityKind``. Clients translate native payloads into universal snapshots on
read; on write they receive payloads already shaped for their field dialect
(see ``storesync.services.mapping``).
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from storesync.models.db.enums import EntityKind, PlatformName
from storesync.models.schemas.entities import EntityBase


@dataclass
class Page:
    items: List[EntityBase] = field(default_factory=list)
    next_token: Optional[str] = None


class PlatformClient(ABC):
    platform: PlatformName

    @property
    def field_platform(self) -> PlatformName:
        """Mapping table used to shape write payloads for this client."""
        return self.platform

    @abstractmethod
    async def fetch_page(
        self,
        kind: EntityKind,
        page_token: Optional[str] = None,
        page_size: int = 100,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Page:
        """Fetch one page; ``next_token`` is None on the last page."""

    @abstractmethod
    async def get_one(self, kind: EntityKind, entity_id: str) -> EntityBase:
        """Fetch one entity or raise NotFoundError."""

    @abstractmethod
    async def create_one(self, kind: EntityKind, payload: Dict[str, Any]) -> str:
        """Create an entity and return its new platform id."""

    @abstractmethod
    async def update_one(self, kind: EntityKind, entity_id: str, payload: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def delete_one(self, kind: EntityKind, entity_id: str, hard_delete: bool = False) -> None:
        pass

    @abstractmethod
    async def test_connection(self) -> bool:
        pass

    async def close(self) -> None:
        """Release pooled connections; the client reopens them on next use."""

    async def __aenter__(self) -> "PlatformClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
