"""
Authentication dependencies for FastAPI.

Callers authenticate with the Supabase access token issued to the browser.
The token is an HS256 JWT signed with the project's JWT secret, so it is
verified locally without a round trip to the identity provider.
"""
import hmac
import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.core.config import settings
from app.core.errors import NotAuthenticated, NotConfigured

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    id: UUID
    email: Optional[str] = None


def token_preview(token: str) -> str:
    return f"{token[:8]}..." if token else "None"


def decode_access_token(token: str) -> CurrentUser:
    """
    Verify a Supabase access token and return the caller.

    Raises:
        NotConfigured: If no JWT secret is configured
        NotAuthenticated: If the token is invalid, expired or has no subject
    """
    if not settings.SUPABASE_JWT_SECRET:
        logger.error("[AUTH] SUPABASE_JWT_SECRET is not configured")
        raise NotConfigured("Authentication is not configured")

    try:
        payload = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.SUPABASE_JWT_AUDIENCE,
        )
    except JWTError as e:
        logger.warning(f"[AUTH] Rejected token {token_preview(token)}: {e}")
        raise NotAuthenticated() from e

    subject = payload.get("sub")
    try:
        user_id = UUID(str(subject))
    except (TypeError, ValueError) as e:
        logger.warning(f"[AUTH] Token {token_preview(token)} has no usable subject")
        raise NotAuthenticated() from e

    return CurrentUser(id=user_id, email=payload.get("email"))


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    """
    Resolve the authenticated user from the ``Authorization: Bearer`` header.

    Returns:
        CurrentUser: The caller's id and email

    Raises:
        NotAuthenticated: If the header is missing or the token is invalid
    """
    if credentials is None or not credentials.credentials:
        raise NotAuthenticated()
    return decode_access_token(credentials.credentials)


async def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> None:
    """
    Guard for externally triggered jobs.

    When ``CRON_SECRET`` is set the caller must present it as a bearer token.
    """
    secret = settings.CRON_SECRET
    if not secret:
        return
    presented = credentials.credentials if credentials else ""
    if not hmac.compare_digest(presented.encode(), secret.encode()):
        logger.warning("[CRON] Unauthorized cron job attempt")
        raise NotAuthenticated()
