from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.config import Settings, get_settings
from core.security import ALL_SCOPES, api_key_hint, decode_token, verify_api_key
from schemas.auth import Principal


# --------------------------------------------------------------------------- #
# Common constants / helpers
# --------------------------------------------------------------------------- #
LOGGER = logging.getLogger(__name__)
BEARER = "Bearer"


def unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    """Return the canonical 401 response."""
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": BEARER},
    )


def forbidden(detail: str = "Access denied") -> HTTPException:
    """Return the canonical 403 response."""
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=detail,
    )


bearer_scheme = HTTPBearer(auto_error=False)


# --------------------------------------------------------------------------- #
# The dependency
# --------------------------------------------------------------------------- #
async def get_current_principal(
    settings: Annotated[Settings, Depends(get_settings)],
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
) -> Principal:
    """
    Resolve the caller from the ``Authorization: Bearer`` header.

    A token equal to one of ``MCP_API_KEYS`` yields an api-key principal with
    every scope; anything else must be a valid JWT signed with ``SECRET_KEY``.

    Raises
    ------
    HTTPException(401)
        If the header is missing, or the token is neither a configured key
        nor a valid JWT.
    """
    if credentials is None or not credentials.credentials:
        raise unauthorized("Missing bearer token")

    token = credentials.credentials
    if verify_api_key(token, settings.MCP_API_KEYS):
        return Principal(
            kind="api-key", subject=api_key_hint(token), scopes=list(ALL_SCOPES)
        )

    # `decode_token` raises HTTPException(401) on failure
    token_data = decode_token(token)
    if not token_data.sub:
        LOGGER.debug("Token missing 'sub' claim")
        raise unauthorized()

    return Principal(kind="jwt", subject=token_data.sub, scopes=token_data.scopes)


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


# --------------------------------------------------------------------------- #
# Authorization helpers
# --------------------------------------------------------------------------- #
def require_scope(scope: str) -> Callable[[Principal], Awaitable[Principal]]:
    """Build a dependency that admits only principals holding ``scope``.

    Usage:
        @router.post("/call")
        async def call(principal: Annotated[Principal, Depends(require_scope(...))]):
    """

    async def _check(principal: CurrentPrincipal) -> Principal:
        if not principal.has_scope(scope):
            LOGGER.debug("Principal %s lacks scope %s", principal.subject, scope)
            raise forbidden(f"Missing required scope: {scope}")
        return principal

    return _check
