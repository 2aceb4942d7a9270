"""Storage provider that keeps images inside the vision request.

Instead of uploading, the image is encoded as a base64 ``data:`` URI,
which OpenAI-compatible vision endpoints accept in an ``image_url`` part.
Nothing leaves the process until the vision call, and no storage
credentials are needed.  Records persisted afterwards carry the data URI
as their image URL, so this backend suits local runs more than a shared
recipe table.
"""

from __future__ import annotations

import base64

from src.interfaces.storage_provider import IStorageProvider, UploadResult
from src.utils.logging import get_logger

_logger = get_logger(__name__)


class InlineStorageProvider(IStorageProvider):
    """Returns a ``data:<mime>;base64,...`` URI instead of uploading."""

    async def upload(
        self,
        data: bytes,
        content_type: str,
        suggested_name: str,
    ) -> UploadResult:
        if not data:
            return UploadResult(success=False, error=f"{suggested_name} is empty")
        encoded = base64.b64encode(data).decode("ascii")
        _logger.debug("inline_image_encoded", file_name=suggested_name, bytes=len(data))
        return UploadResult(
            success=True,
            url=f"data:{content_type or 'image/jpeg'};base64,{encoded}",
        )

    async def test_connection(self) -> bool:
        return True

    def get_provider_name(self) -> str:
        return "inline"

    def is_available(self) -> bool:
        return True
