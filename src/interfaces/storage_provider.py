"""Abstract base class for image storage providers.

Defines the contract for any backend that accepts uploaded dish photos
and hands back a URL the vision model can fetch.  Implementations may
wrap a CDN storage zone, an S3 bucket, or skip remote storage entirely
by inlining the bytes as a ``data:`` URI.  Which one is bound is a
configuration choice; the pipeline's stage sequence is identical either
way.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class UploadResult:
    """Outcome of one upload.

    Attributes
    ----------
    success:
        ``True`` when the object was stored and ``url`` is usable.
    url:
        Public URL of the stored image.  Only set on success.
    error:
        Human-readable failure reason.  Only set on failure.
    """

    success: bool
    url: str | None = None
    error: str | None = None


# Concrete implementations: BunnyStorageProvider, InlineStorageProvider
# Located in: src/providers/storage/
class IStorageProvider(ABC):
    """Contract for services that store an image and return its URL."""

    @abstractmethod
    async def upload(
        self,
        data: bytes,
        content_type: str,
        suggested_name: str,
    ) -> UploadResult:
        """Store *data* and return where it can be fetched from.

        Parameters
        ----------
        data:
            Raw image bytes.
        content_type:
            MIME type sent with the upload (e.g. ``"image/jpeg"``).
        suggested_name:
            Original filename; implementations sanitise it and may prefix
            it to keep object keys unique.

        Returns
        -------
        UploadResult
            ``success=False`` with an ``error`` for rejected uploads.
            Implementations report transport failures the same way rather
            than raising.
        """

    @abstractmethod
    async def test_connection(self) -> bool:
        """Return ``True`` if the storage backend accepts our credentials."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"bunny"`` or ``"inline"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider has the configuration it needs.

        This does not contact the remote service; see :meth:`test_connection`.
        """
