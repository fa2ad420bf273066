"""
Ticket External Services
=========================

HTTP object storage for attachments (Supabase storage compatible API).
"""

from typing import Optional
from urllib.parse import quote

import httpx

from cityflow.config import Settings, settings as default_settings
from cityflow.core import ObjectStorageException
from cityflow.shared.infrastructure.logging import get_logger
from cityflow.tickets.application.services import IObjectStorage

logger = get_logger(__name__)


class HTTPObjectStorage(IObjectStorage):
    """
    Uploads to {storage_url}/object/{bucket}/{path}; public objects are
    served from {storage_url}/object/public/{bucket}/{path}.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self._settings = config or default_settings
        self._base_url = self._settings.storage_url.rstrip("/")
        self._bucket = self._settings.storage_bucket
        self._http_client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    def _headers(self, content_type: Optional[str]) -> dict:
        headers = {"Content-Type": content_type or "application/octet-stream"}
        if self._settings.storage_api_key:
            headers["Authorization"] = f"Bearer {self._settings.storage_api_key}"
            headers["apikey"] = self._settings.storage_api_key
        return headers

    async def upload(self, path: str, content: bytes, content_type: Optional[str] = None) -> None:
        url = f"{self._base_url}/object/{self._bucket}/{quote(path)}"
        try:
            client = await self._get_client()
            response = await client.post(url, content=content, headers=self._headers(content_type))
        except httpx.HTTPError as e:
            logger.error("Attachment upload failed", extra={"storage_path": path, "error": str(e)})
            raise ObjectStorageException("Upload failed", {"storage_path": path})

        if response.status_code >= 400:
            logger.error(
                "Attachment upload rejected",
                extra={"storage_path": path, "status_code": response.status_code}
            )
            raise ObjectStorageException(
                f"Upload rejected with status {response.status_code}",
                {"storage_path": path}
            )

    def public_url(self, path: str) -> str:
        return f"{self._base_url}/object/public/{self._bucket}/{quote(path)}"

    async def close(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None
