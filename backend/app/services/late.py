"""
Client for the Late social scheduling API.

Translates calendar posts into Late's post payload and records nothing
itself; callers persist the returned ids. Requests are not retried and carry
no idempotency key, so a retry after a timeout can create a duplicate post.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from app.core.config import settings
from app.core.errors import NotConfigured, UpstreamError

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = (".mp4", ".mov", ".avi", ".webm", ".m4v")
DEFAULT_PROFILE_COLOR = "#4ade80"


def media_type_for(url: str) -> str:
    path = url.split("?", 1)[0].lower()
    return "video" if path.endswith(VIDEO_EXTENSIONS) else "image"


def build_late_payload(
    content: str,
    accounts: Iterable[Dict[str, str]],
    scheduled_for: str,
    timezone: str,
    media_url: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the body for ``POST /posts``.

    Args:
        content: Post caption
        accounts: Dicts with ``platform`` and ``accountId``
        scheduled_for: Local ISO timestamp without offset
        timezone: IANA timezone the timestamp is in
        media_url: Optional public URL of the image or video

    Returns:
        Dict[str, Any]: Late post payload
    """
    payload: Dict[str, Any] = {
        "content": content,
        "platforms": [
            {"platform": account["platform"], "accountId": account["accountId"]}
            for account in accounts
        ],
        "scheduledFor": scheduled_for,
        "timezone": timezone,
    }
    if media_url:
        payload["mediaItems"] = [{"type": media_type_for(media_url), "url": media_url}]
    return payload


def extract_post_id(data: Dict[str, Any]) -> Optional[str]:
    """Late has answered with the id under ``post._id``, ``post.id``, ``_id`` and ``id``."""
    post = data.get("post") if isinstance(data.get("post"), dict) else {}
    for candidate in (post.get("_id"), post.get("id"), data.get("_id"), data.get("id")):
        if candidate:
            return str(candidate)
    return None


class LateClient:
    """
    Thin async wrapper around the Late REST API.
    """

    TIMEOUT = 30.0  # Default timeout in seconds

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        api_key = api_key or settings.LATE_API_KEY
        if not api_key:
            raise NotConfigured("Late API key not configured")
        self.base_url = (base_url or settings.LATE_API_BASE_URL).rstrip("/")
        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self._transport = transport

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """
        Make a request and return the decoded JSON body.

        Raises:
            UpstreamError: On non-2xx answers (carrying Late's status and text) or transport errors
        """
        url = f"{self.base_url}{path}"
        logger.info(f"[LATE] {method} {path}")

        async with httpx.AsyncClient(timeout=self.TIMEOUT, transport=self._transport) as client:
            try:
                response = await client.request(method, url, headers=self.headers, **kwargs)
            except httpx.TimeoutException as e:
                logger.error(f"[LATE] Request timed out after {self.TIMEOUT}s")
                raise UpstreamError("Late API request timed out", status_code=504) from e
            except httpx.HTTPError as e:
                logger.error(f"[LATE] Request failed: {e}")
                raise UpstreamError(f"Late API request failed: {e}") from e

        if response.status_code >= 400:
            logger.error(f"[LATE] HTTP error: {response.status_code} - {response.text[:200]}")
            raise UpstreamError(
                f"Late API error: {response.text[:500] or response.reason_phrase}",
                status_code=response.status_code if response.status_code < 500 else 502,
                extra={"upstreamStatus": response.status_code},
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"raw": response.text}

    async def list_accounts(self, profile_id: str) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/accounts", params={"profileId": profile_id})
        if isinstance(data, list):
            return data
        return data.get("accounts", [])

    async def create_post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/posts", json=payload)

    async def delete_post(self, late_post_id: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/posts/{late_post_id}")

    async def create_profile(self, name: str, description: str, color: str = DEFAULT_PROFILE_COLOR) -> str:
        """
        Create a Late profile and return its id.

        Raises:
            UpstreamError: If Late fails or answers without a profile id
        """
        data = await self._request(
            "POST", "/profiles", json={"name": name, "description": description, "color": color}
        )
        profile = data.get("profile") if isinstance(data.get("profile"), dict) else {}
        profile_id = data.get("_id") or profile.get("_id")
        if not profile_id:
            raise UpstreamError("Late did not return a profile id")
        return str(profile_id)

    async def connect_url(self, platform: str, profile_id: str, redirect_url: str) -> str:
        """
        OAuth URL that connects a ``platform`` account to a profile.

        Raises:
            UpstreamError: If Late answers without a URL
        """
        data = await self._request(
            "GET", f"/connect/{platform}", params={"profileId": profile_id, "redirect_url": redirect_url}
        )
        url = data.get("authUrl") or data.get("url") or data.get("connectUrl")
        if not url:
            raise UpstreamError("Late did not return a connect URL")
        return url


def get_late_client() -> LateClient:
    return LateClient()


def profile_description(name: str, description: Optional[str] = None,
                        brand_tone: Optional[str] = None, website: Optional[str] = None) -> str:
    parts = [f"Social media profile for {name}"]
    if description:
        parts.append(f"About: {description}")
    if brand_tone:
        parts.append(f"Brand tone: {brand_tone}")
    if website:
        parts.append(f"Website: {website}")
    return "\n\n".join(parts)
