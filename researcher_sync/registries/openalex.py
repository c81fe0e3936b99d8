from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests

from ..exceptions import RegistryUnreachable
from ..logging_setup import get_logger, with_extras
from ..models import AuthorRecord
from ..runtime_config import RUNTIME_CONFIG
from .http import OPENALEX_EMAIL, get_json
from .orcid import orcid_filter_value

logger = get_logger(__name__)

OPENALEX_BASE = RUNTIME_CONFIG.openalex.api_url
AUTHOR_TIMEOUT = RUNTIME_CONFIG.openalex.author_timeout_seconds
WORKS_TIMEOUT = RUNTIME_CONFIG.openalex.works_timeout_seconds
WORKS_PER_PAGE = RUNTIME_CONFIG.openalex.works_per_page


def short_openalex_id(value: Optional[str]) -> Optional[str]:
    """https://openalex.org/A5012345678 -> A5012345678"""
    if not value:
        return None
    short = str(value).strip().rstrip("/").rsplit("/", 1)[-1]
    return short.upper() or None


def _author_from_payload(author: Dict[str, Any]) -> Optional[AuthorRecord]:
    openalex_id = short_openalex_id(author.get("id"))
    if not openalex_id:
        return None
    institution = None
    for inst in author.get("last_known_institutions") or []:
        if isinstance(inst, dict) and inst.get("display_name"):
            institution = inst["display_name"]
            break
    return AuthorRecord(openalex_id=openalex_id, institution=institution)


def lookup_author_by_orcid(
    orcid: str,
    *,
    session: Optional[requests.Session] = None,
) -> Optional[AuthorRecord]:
    """
    First OpenAlex author whose ORCID matches. None if there is none or the
    value holds no ORCID, in which case no request is made.

    Raises RegistryUnreachable / RegistryTimeout when the call itself fails.
    """
    bare = orcid_filter_value(orcid)
    if bare is None:
        with_extras(logger, orcid=orcid).warning("stored ORCID is not an ORCID; skipping OpenAlex lookup")
        return None
    params = {"filter": f"orcid:{bare}", "mailto": OPENALEX_EMAIL}
    data = get_json("openalex", f"{OPENALEX_BASE}/authors", params=params, timeout=AUTHOR_TIMEOUT, session=session, stage="author")
    for author in data.get("results") or []:
        if isinstance(author, dict):
            record = _author_from_payload(author)
            if record:
                return record
    return None


def resolve_author_by_identifier(
    orcid: str,
    *,
    session: Optional[requests.Session] = None,
) -> Optional[AuthorRecord]:
    """Soft variant of lookup_author_by_orcid: failures become None."""
    try:
        return lookup_author_by_orcid(orcid, session=session)
    except RegistryUnreachable as e:
        with_extras(logger, orcid=orcid, error=str(e)).warning("OpenAlex author lookup failed")
        return None


def fetch_author_works(
    openalex_id: str,
    *,
    per_page: int = WORKS_PER_PAGE,
    session: Optional[requests.Session] = None,
) -> List[Dict[str, Any]]:
    """Newest-first works for one author (a single page). Raises on failure."""
    params = {
        "filter": f"author.id:{short_openalex_id(openalex_id)}",
        "per_page": str(per_page),
        "sort": "publication_year:desc",
        "mailto": OPENALEX_EMAIL,
    }
    data = get_json("openalex", f"{OPENALEX_BASE}/works", params=params, timeout=WORKS_TIMEOUT, session=session, stage="works")
    works = [w for w in (data.get("results") or []) if isinstance(w, dict)]
    with_extras(logger, openalex_id=openalex_id, works=len(works)).info("OpenAlex works fetched")
    return works
