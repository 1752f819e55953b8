"""Caller identification for the gate's HTTP surface.

Every route except ``/health`` needs a key listed in ``API_KEYS``. The key
also names the caller for the per-key query rate limit.
"""

import os
import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader

_api_key_header = APIKeyHeader(name="Authorization")


def get_api_keys() -> set[str]:
    """Keys allowed to query, read from the comma-separated ``API_KEYS``."""
    raw = os.environ.get("API_KEYS", "")
    return {k.strip() for k in raw.split(",") if k.strip()}


def _presented_key(authorization: str) -> str:
    scheme, _, rest = authorization.strip().partition(" ")
    if scheme.lower() == "bearer" and rest:
        return rest.strip()
    return authorization.strip()


async def require_api_key(
    authorization: str = Depends(_api_key_header),
) -> str:
    """Identify the caller sending queries through the gate.

    The ``Authorization`` header holds ``Bearer <key>`` or the bare key.
    Keys are compared in constant time.

    Raises:
        HTTPException: 500 when the server has no keys configured, so a
            misconfigured deployment never serves queries; 401 for an
            unknown key.
    """
    presented = _presented_key(authorization)

    allowed = get_api_keys()
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server has no API keys configured",
        )

    if not any(secrets.compare_digest(presented, key) for key in allowed):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )

    return presented
