"""Image storage adapters.

Two implementations of IStorageProvider (src/interfaces/storage_provider.py):
    - BunnyStorageProvider  -- Bunny.net storage zone, public b-cdn.net URLs
    - InlineStorageProvider -- base64 data: URI, no remote storage

``STORAGE_BACKEND`` picks one at startup (see src/main.py).
"""

from src.providers.storage.bunny_provider import BunnyStorageProvider
from src.providers.storage.inline_provider import InlineStorageProvider

__all__ = ["BunnyStorageProvider", "InlineStorageProvider"]
