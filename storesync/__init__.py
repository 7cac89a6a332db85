"""StoreSync: keeps a WooCommerce store and a Shopify store in step.

Having this file ensures 'storesync' is a regular package during test
discovery and editable installs.
"""

__all__: list[str] = []
