"""
Integrations package initialization.
Exports the platform client contract and its implementations.
"""
from .base import Page, PlatformClient
from .memory import MemoryPlatformClient
from .woocommerce import WooCommerceClient
from .shopify import ShopifyClient
from .platforms import ClientResolver, ConnectionClientResolver, build_client

__all__ = [
    "Page",
    "PlatformClient",
    "MemoryPlatformClient",
    "WooCommerceClient",
    "ShopifyClient",
    "ClientResolver",
    "ConnectionClientResolver",
    "build_client",
]
