"""Authentication dependencies for the operator (admin) API.

Two guards:
  - require_admin_token()   HTTP endpoints (Bearer token in Authorization header)
  - require_admin_ws()      the debug WebSocket (?token= query param)

Behavior matrix:
  ADMIN_API_KEY set + valid token   → allow
  ADMIN_API_KEY set + wrong/missing → 401 Unauthorized
  ADMIN_API_KEY empty + DEBUG=true  → allow (local dev convenience)
  ADMIN_API_KEY empty + DEBUG=false → 403 Forbidden (locked in production)

The agent tool bridge is not guarded: the voice client calls it on the
agent's behalf and only ever gets instruction text back.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import Depends, HTTPException, Query, WebSocket, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from callflow.config import settings

log = logging.getLogger("callflow.auth")

_bearer_scheme = HTTPBearer(auto_error=False)


def _token_matches(token: str, key: str) -> bool:
    return secrets.compare_digest(token.encode("utf-8"), key.encode("utf-8"))


async def require_admin_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> None:
    """FastAPI dependency: protect operator HTTP endpoints with a bearer token."""
    key = settings.admin_api_key

    if not key:
        if settings.debug:
            return
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin API key not configured. Set ADMIN_API_KEY in .env.",
        )

    if credentials is None or not _token_matches(credentials.credentials, key):
        log.warning("Rejected admin request with missing or invalid token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing admin token.",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_admin_ws(
    websocket: WebSocket,
    token: str = Query(default=""),
) -> bool:
    """WebSocket auth. Browsers can't send headers, so use ?token= query param.

    Returns False (after closing the socket) when the caller is rejected.
    """
    key = settings.admin_api_key

    if not key:
        if settings.debug:
            return True
        await websocket.close(code=4003, reason="Admin API key not configured")
        return False

    if not _token_matches(token, key):
        await websocket.close(code=4001, reason="Unauthorized")
        return False
    return True
