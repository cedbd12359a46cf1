"""
Vercel Blob uploads.
"""
import logging
from typing import Dict, Optional

import httpx

from app.core.config import settings
from app.core.errors import NotConfigured, UpstreamError

logger = logging.getLogger(__name__)

BLOB_API_VERSION = "7"


class BlobStorage:
    """
    Uploads public blobs and returns their URLs.
    """

    TIMEOUT = 60.0

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        token = token or settings.BLOB_READ_WRITE_TOKEN
        if not token:
            raise NotConfigured("Blob storage not configured")
        self.token = token
        self.api_url = (api_url or settings.BLOB_API_URL).rstrip("/")
        self._transport = transport

    async def put(self, pathname: str, data: bytes, content_type: str) -> Dict[str, str]:
        """
        Upload ``data`` under ``pathname`` with public access.

        Returns:
            Dict[str, str]: ``url`` and ``pathname`` of the stored blob

        Raises:
            UpstreamError: If the blob API rejects the upload
        """
        headers = {
            "Authorization": f"Bearer {self.token}",
            "x-api-version": BLOB_API_VERSION,
            "x-content-type": content_type,
            "x-add-random-suffix": "1",
        }
        logger.info(f"[BLOB] Uploading {pathname} ({len(data)} bytes, {content_type})")

        async with httpx.AsyncClient(timeout=self.TIMEOUT, transport=self._transport) as client:
            try:
                response = await client.put(f"{self.api_url}/{pathname}", content=data, headers=headers)
            except httpx.HTTPError as e:
                logger.error(f"[BLOB] Upload failed: {e}")
                raise UpstreamError("Failed to upload file") from e

        if response.status_code >= 400:
            logger.error(f"[BLOB] HTTP error: {response.status_code} - {response.text[:200]}")
            raise UpstreamError("Failed to upload file", details=response.text[:500])

        body = response.json()
        return {"url": body["url"], "pathname": body.get("pathname", pathname)}
