"""Bunny.net Storage provider implementing IStorageProvider.

Uploads dish photos to a Bunny storage zone with a single authenticated
``PUT`` and returns the public CDN URL the vision model fetches the image
from.  The ``httpx.AsyncClient`` is injected for testability.
"""

from __future__ import annotations

import re
import time
from typing import Any

import httpx

from src.config.settings import Settings
from src.interfaces.storage_provider import IStorageProvider, UploadResult
from src.utils.logging import get_logger

_DEFAULT_REGION = "de"
_OBJECT_PREFIX = "recipes"
_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def sanitize_filename(name: str) -> str:
    """Replace every character outside ``[a-zA-Z0-9._-]`` with ``_``."""
    return _UNSAFE_NAME_CHARS.sub("_", name) or "image"


class BunnyStorageProvider(IStorageProvider):
    """Storage provider backed by a Bunny.net storage zone.

    Object keys are ``recipes/{epoch_ms}_{sanitised_name}`` so repeated
    uploads of ``IMG_0001.jpg`` never collide.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient) -> None:
        self._http = http_client
        self._access_key = settings.bunny_storage_access_key
        self._zone = settings.bunny_storage_name
        region = (settings.bunny_storage_region or _DEFAULT_REGION).strip().lower()
        # The primary (Falkenstein) region has no prefix on its hostname.
        host = (
            "storage.bunnycdn.com"
            if region == _DEFAULT_REGION
            else f"{region}.storage.bunnycdn.com"
        )
        self._base_url = f"https://{host}/{self._zone}/"
        self._public_base = (
            settings.bunny_pull_zone_url.rstrip("/")
            if settings.bunny_pull_zone_url
            else f"https://{self._zone}.b-cdn.net"
        )
        self._logger = get_logger(__name__)

    async def upload(
        self,
        data: bytes,
        content_type: str,
        suggested_name: str,
    ) -> UploadResult:
        if not self.is_available():
            return UploadResult(success=False, error="Bunny.net access key is missing")

        path = f"{_OBJECT_PREFIX}/{int(time.time() * 1000)}_{sanitize_filename(suggested_name)}"
        headers = {
            "AccessKey": self._access_key,
            "Content-Type": content_type or "application/octet-stream",
        }

        try:
            response = await self._http.put(
                f"{self._base_url}{path}", content=data, headers=headers
            )
        except httpx.HTTPError as exc:
            self._logger.warning("bunny_upload_request_failed", path=path, error=str(exc))
            return UploadResult(success=False, error=f"Upload failed: {exc}")

        if response.status_code >= 400:
            detail = response.reason_phrase or response.text
            self._logger.warning(
                "bunny_upload_rejected", path=path, status=response.status_code, detail=detail
            )
            return UploadResult(
                success=False, error=f"Upload failed: {response.status_code} {detail}"
            )

        url = f"{self._public_base}/{path}"
        self._logger.info("bunny_upload_complete", url=url, bytes=len(data))
        return UploadResult(success=True, url=url)

    async def delete(self, path: str) -> bool:
        """Delete one stored object by its zone-relative path, e.g. ``recipes/1_a.jpg``."""
        if not self.is_available():
            return False
        path = path.lstrip("/")
        try:
            response = await self._http.delete(
                f"{self._base_url}{path}", headers={"AccessKey": self._access_key}
            )
        except httpx.HTTPError as exc:
            self._logger.warning("bunny_delete_failed", path=path, error=str(exc))
            return False
        if not response.is_success:
            self._logger.warning("bunny_delete_rejected", path=path, status=response.status_code)
            return False
        self._logger.info("bunny_delete_complete", path=path)
        return True

    async def list_files(self, path: str = "") -> list[dict[str, Any]]:
        """List the objects under a zone directory; empty on any failure.

        Entries are Bunny's own JSON objects (``ObjectName``, ``Length``,
        ``IsDirectory`` ...), passed through unchanged.
        """
        if not self.is_available():
            return []
        path = path.strip("/")
        url = f"{self._base_url}{path}/" if path else self._base_url
        try:
            response = await self._http.get(url, headers={"AccessKey": self._access_key})
        except httpx.HTTPError as exc:
            self._logger.warning("bunny_list_failed", path=path, error=str(exc))
            return []
        if not response.is_success:
            self._logger.warning("bunny_list_rejected", path=path, status=response.status_code)
            return []
        try:
            entries = response.json()
        except ValueError:
            return []
        return [e for e in entries if isinstance(e, dict)] if isinstance(entries, list) else []

    async def test_connection(self) -> bool:
        """List the zone root; any 2xx means the access key is accepted."""
        if not self.is_available():
            return False
        try:
            response = await self._http.get(
                self._base_url, headers={"AccessKey": self._access_key}
            )
        except httpx.HTTPError as exc:
            self._logger.warning("bunny_connection_failed", error=str(exc))
            return False
        return response.is_success

    def get_provider_name(self) -> str:
        return "bunny"

    def is_available(self) -> bool:
        return bool(self._access_key and self._zone)
