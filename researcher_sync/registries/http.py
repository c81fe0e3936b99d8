from __future__ import annotations

import os
from typing import Any, Dict, Optional

import requests

from ..exceptions import RegistryTimeout, RegistryUnreachable
from ..logging_setup import get_logger, with_extras

logger = get_logger(__name__)

OPENALEX_EMAIL = os.environ.get("OPENALEX_EMAIL") or os.environ.get("OPENALEX_MAILTO") or "changeme@example.com"
USER_AGENT = f"researcher_sync/1.0 (mailto:{OPENALEX_EMAIL})"

_SESSION: Optional[requests.Session] = None


def make_session() -> requests.Session:
    # no retry adapter: callers own retry/backoff
    s = requests.Session()
    s.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})
    return s


def get_session() -> requests.Session:
    global _SESSION
    if _SESSION is None:
        _SESSION = make_session()
    return _SESSION


def get_json(
    registry: str,
    url: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    timeout: float,
    session: Optional[requests.Session] = None,
    stage: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Single GET with a hard timeout. Raises RegistryTimeout / RegistryUnreachable
    on any transport failure, non-2xx status or non-JSON body.
    """
    sess = session or get_session()
    try:
        r = sess.get(url, params=params, timeout=timeout)
    except requests.Timeout as e:
        with_extras(logger, registry=registry, url=url, timeout=timeout).warning("registry timeout")
        raise RegistryTimeout(registry, f"timed out after {timeout}s", stage=stage) from e
    except requests.RequestException as e:
        with_extras(logger, registry=registry, url=url, error=str(e)).warning("registry network error")
        raise RegistryUnreachable(registry, str(e), stage=stage) from e

    if r.status_code >= 400:
        body = (r.text or "")[:500]
        with_extras(logger, registry=registry, url=r.url, status=r.status_code, body_snippet=body).warning(
            "registry HTTP error"
        )
        raise RegistryUnreachable(registry, f"HTTP {r.status_code}", status_code=r.status_code, stage=stage)

    try:
        data = r.json()
    except ValueError as e:
        with_extras(logger, registry=registry, url=r.url).warning("registry returned non-JSON body")
        raise RegistryUnreachable(registry, "invalid JSON body", stage=stage) from e
    if not isinstance(data, dict):
        raise RegistryUnreachable(registry, "unexpected JSON payload", stage=stage)
    return data
