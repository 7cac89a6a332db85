"""SQLAlchemy-backed storage for platform connections."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from storesync.models.db.connections import PlatformConnection
from storesync.models.db.enums import PlatformName
from storesync.models.schemas.connections import Connection
from storesync.utils import get_logger

logger = get_logger(__name__)


class ConnectionStore:
    """Reads and writes the ``connections`` table.

    Uses a session factory rather than a request session because worker
    threads resolve clients outside any request.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get_connection(self, platform: PlatformName) -> Optional[Connection]:
        session = self.session_factory()
        try:
            record = session.scalar(select(PlatformConnection).where(PlatformConnection.platform == platform))
            return Connection.model_validate(record) if record is not None else None
        finally:
            session.close()

    def list_connections(self) -> List[Connection]:
        session = self.session_factory()
        try:
            records = session.scalars(select(PlatformConnection).order_by(PlatformConnection.platform))
            return [Connection.model_validate(r) for r in records]
        finally:
            session.close()

    def save(
        self,
        platform: PlatformName,
        config: Dict[str, Any],
        *,
        is_connected: bool,
        tested: bool = False,
    ) -> Connection:
        session = self.session_factory()
        try:
            record = session.scalar(select(PlatformConnection).where(PlatformConnection.platform == platform))
            if record is None:
                record = PlatformConnection(platform=platform)
                session.add(record)
            record.config = dict(config)
            record.is_connected = is_connected
            if tested:
                record.last_tested = datetime.now(timezone.utc)
            session.commit()
            session.refresh(record)
            logger.info("Connection saved", platform=platform.value, is_connected=is_connected)
            return Connection.model_validate(record)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def mark_tested(self, platform: PlatformName, is_connected: bool) -> Optional[Connection]:
        session = self.session_factory()
        try:
            record = session.scalar(select(PlatformConnection).where(PlatformConnection.platform == platform))
            if record is None:
                return None
            record.is_connected = is_connected
            record.last_tested = datetime.now(timezone.utc)
            session.commit()
            session.refresh(record)
            return Connection.model_validate(record)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def disconnect(self, platform: PlatformName) -> bool:
        """Remove the stored credentials; returns False if nothing was stored."""
        session = self.session_factory()
        try:
            record = session.scalar(select(PlatformConnection).where(PlatformConnection.platform == platform))
            if record is None:
                return False
            session.delete(record)
            session.commit()
            logger.info("Connection removed", platform=platform.value)
            return True
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


__all__ = ["ConnectionStore"]
