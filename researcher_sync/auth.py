from __future__ import annotations

import hmac
import os
from typing import Optional

from .exceptions import Unauthorized
from .logging_setup import get_logger

logger = get_logger(__name__)

SECRET_ENV = "BACKFILL_SECRET"


def verify_secret(provided: Optional[str], expected: str) -> bool:
    """Constant-time comparison; a missing value never matches."""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def require_operator(provided: Optional[str]) -> None:
    """
    Gate for operator-only entry points (backfills, manual identifier updates).

    Fails closed: an unconfigured secret is a server error, never an open door.
    """
    expected = (os.environ.get(SECRET_ENV) or "").strip()
    if not expected:
        logger.error(f"{SECRET_ENV} not configured")
        raise Unauthorized("Server configuration error", status_code=500)
    if not verify_secret(provided, expected):
        logger.warning("operator secret rejected")
        raise Unauthorized("Unauthorized", status_code=401)
