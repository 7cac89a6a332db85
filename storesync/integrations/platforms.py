"""
Platform client registry.

``build_client`` turns a stored connection config into a client; the
``ConnectionClientResolver`` is the production resolver handed to the job
queue and API, looking connections up in the connection store.
"""
from typing import Any, Callable, Dict, Optional

from storesync.errors import JobSetupError, PermanentError
from storesync.integrations.base import PlatformClient
from storesync.integrations.memory import MemoryPlatformClient
from storesync.integrations.shopify import ShopifyClient
from storesync.integrations.woocommerce import WooCommerceClient
from storesync.models.db.enums import PlatformName
from storesync.utils import get_logger

logger = get_logger(__name__)

ClientResolver = Callable[[PlatformName], PlatformClient]

CLIENT_FACTORIES: Dict[PlatformName, Callable[[Dict[str, Any]], PlatformClient]] = {
    PlatformName.WOOCOMMERCE: WooCommerceClient,
    PlatformName.SHOPIFY: ShopifyClient,
    PlatformName.MEMORY: MemoryPlatformClient.from_config,
}


def build_client(platform: PlatformName, config: Dict[str, Any]) -> PlatformClient:
    """Instantiate the client for ``platform``; raises PermanentError on bad config."""
    factory = CLIENT_FACTORIES.get(platform)
    if factory is None:
        raise PermanentError(f"Unsupported platform {platform}", platform=str(platform))
    return factory(config)


class ConnectionClientResolver:
    """Resolve platform clients from stored connections.

    The ``memory`` sandbox needs no connection; one process-wide instance is
    shared so entities written by one job are visible to the next.
    """

    def __init__(self, connection_store, sandbox: Optional[MemoryPlatformClient] = None):
        self.connection_store = connection_store
        self.sandbox = sandbox or MemoryPlatformClient()
        self.logger = get_logger("integration.resolver")

    def __call__(self, platform: PlatformName) -> PlatformClient:
        platform = PlatformName(platform)
        if platform == PlatformName.MEMORY:
            return self.sandbox
        connection = self.connection_store.get_connection(platform)
        if connection is None or not connection.is_connected:
            self.logger.warning("Platform not connected", platform=platform.value)
            raise JobSetupError(f"{platform.value} is not connected")
        try:
            return build_client(platform, connection.config)
        except PermanentError as e:
            raise JobSetupError(str(e)) from e
