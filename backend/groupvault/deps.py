"""FastAPI dependencies: the caller identity and the key envelope."""
from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException, status

from groupvault.config import settings
from groupvault.crypto import KeyEnvelope, load_master_key


def _parse_user_id(raw: Optional[str]) -> Optional[int]:
    if raw is None or raw == "":
        return None
    try:
        user_id = int(raw)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID format",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if user_id <= 0:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID format",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> int:
    """Caller id asserted by the upstream AuthProvider after token verification.

    The header is trusted as-is, so the gateway in front of this app must
    strip or overwrite any client-sent ``X-User-Id``; never expose the app
    directly. Deployments that verify bearer tokens in-process replace this
    through ``app.dependency_overrides``.
    """
    user_id = _parse_user_id(x_user_id)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


def get_optional_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[int]:
    return _parse_user_id(x_user_id)


@lru_cache(maxsize=1)
def get_envelope() -> KeyEnvelope:
    """Process-wide envelope built once from MASTER_KEY."""
    return KeyEnvelope(load_master_key(settings.MASTER_KEY))
