import hmac
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import HTTPException, status
from jose import JWTError, jwt

from core.config import Settings, get_settings
from schemas.auth import TokenData


# Scopes understood by the HTTP surface
SCOPE_TOOLS_READ = "tools:read"
SCOPE_TOOLS_CALL = "tools:call"
SCOPE_JOBS_RUN = "jobs:run"
ALL_SCOPES: tuple[str, ...] = (SCOPE_TOOLS_READ, SCOPE_TOOLS_CALL, SCOPE_JOBS_RUN)


def _settings() -> Settings:  # lazy accessor to allow tests to set env first
    return get_settings()


def create_access_token(
    data: dict[str, Any], expires_delta: timedelta | None = None
) -> str:
    """Encodes a JWT with `sub` (subject), optional `scopes` and expiry"""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(
            minutes=_settings().ACCESS_TOKEN_EXPIRE_MINUTES
        )
    to_encode.update({"exp": expire})
    s = _settings()
    encoded_jwt = jwt.encode(to_encode, s.SECRET_KEY, algorithm=s.ALGORITHM)
    return encoded_jwt


def decode_token(token: str) -> TokenData:
    """Decode and validate a JWT, returning TokenData or raising 401.

    Expects a `sub` claim (client identifier). Also supports optional `scopes`
    as a list or a space-separated string.
    """
    try:
        s = _settings()
        payload = jwt.decode(
            token,
            s.SECRET_KEY,
            algorithms=[s.ALGORITHM],
            options={"verify_aud": False},
        )
    except JWTError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from err

    sub = payload.get("sub")
    scopes = payload.get("scopes", [])
    if sub is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing subject",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if isinstance(scopes, str):
        scopes = scopes.split()
    return TokenData(
        sub=str(sub),
        scopes=[str(s) for s in scopes] if isinstance(scopes, list) else [],
    )


def verify_api_key(candidate: str, api_keys: Iterable[str]) -> bool:
    """Constant-time comparison against every configured key."""
    matched = False
    for key in api_keys:
        if key and hmac.compare_digest(candidate.encode(), key.encode()):
            matched = True
    return matched


def api_key_hint(token: str) -> str:
    """Mask a credential for audit records, keeping the last four characters."""
    if len(token) <= 8:
        return "****"
    return f"****{token[-4:]}"
