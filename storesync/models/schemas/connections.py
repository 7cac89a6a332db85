"""
Pydantic schemas for platform connections.
"""
from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, ConfigDict

from storesync.models.db.enums import PlatformName

# Config keys never echoed back to callers.
SECRET_KEYS = frozenset({"consumer_secret", "access_token", "consumer_key"})


class ConnectionConfigIn(BaseModel):
    """Credential blob for one platform; keys depend on the platform."""
    config: Dict[str, Any] = Field(default_factory=dict)
    test: bool = Field(True, description="Verify credentials before marking the connection usable")


class Connection(BaseModel):
    """A stored connection as consumed by the sync core."""
    platform: PlatformName
    is_connected: bool
    config: Dict[str, Any] = Field(default_factory=dict)
    last_tested: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ConnectionRead(BaseModel):
    platform: PlatformName
    is_connected: bool
    config: Dict[str, Any] = Field(default_factory=dict)
    last_tested: Optional[datetime] = None

    @classmethod
    def masked(cls, connection: Connection) -> "ConnectionRead":
        config = {
            k: ("***" if k in SECRET_KEYS and v else v)
            for k, v in connection.config.items()
        }
        return cls(
            platform=connection.platform,
            is_connected=connection.is_connected,
            config=config,
            last_tested=connection.last_tested,
        )
