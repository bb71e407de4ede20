"""
Authentication — API-key bearer auth for the API, shared secret for cron.

- Frontend/programmatic: API_KEY. Include: Authorization: Bearer <API_KEY>
- Cron: CRON_SECRET. Include: X-Cron-Secret: <CRON_SECRET> (or Bearer)

In development with no API_KEY set, auth is skipped for local dev.
"""

import hmac
import logging
from typing import Optional
from fastapi import Depends, Header, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from recengine.config import get_settings

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


def _matches(token: Optional[str], secret: str) -> bool:
    return bool(token) and hmac.compare_digest(token.encode(), secret.encode())


async def require_auth(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
) -> str:
    """Returns the API key on success, or "dev-no-auth" when auth is disabled."""
    settings = get_settings()
    api_key = settings.api_key

    # Dev convenience: skip auth when no key is configured
    if not api_key:
        if settings.is_production:
            raise HTTPException(
                status_code=500,
                detail="Server misconfiguration: API_KEY must be set in production.",
            )
        return "dev-no-auth"

    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Missing authorization. Include header: Authorization: Bearer <API_KEY>",
        )

    if _matches(credentials.credentials, api_key):
        return credentials.credentials

    raise HTTPException(status_code=401, detail="Invalid API key.")


async def require_cron_secret(
    x_cron_secret: Optional[str] = Header(None, alias="X-Cron-Secret"),
    authorization: Optional[str] = Header(None),
) -> None:
    """Verify the request came from the scheduler with a valid secret."""
    secret = get_settings().cron_secret
    if not secret:
        raise HTTPException(500, "CRON_SECRET not configured")
    # Accept X-Cron-Secret header or Bearer token
    token = x_cron_secret
    if not token and authorization and authorization.startswith("Bearer "):
        token = authorization[7:]
    if not _matches(token, secret):
        logger.warning("Rejected cron request with invalid secret")
        raise HTTPException(401, "Invalid cron secret")
