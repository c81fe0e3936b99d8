from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

import requests

from ..exceptions import AmbiguousIdentityMatch, NoIdentityMatch, RegistryUnreachable
from ..logging_setup import get_logger, with_extras
from ..models import IdentityCandidate
from ..names import parse_name
from ..runtime_config import RUNTIME_CONFIG
from .http import get_json

logger = get_logger(__name__)

ORCID_API = RUNTIME_CONFIG.orcid.api_url
ORCID_TIMEOUT = RUNTIME_CONFIG.orcid.timeout_seconds

_ORCID_RE = re.compile(r"(\d{4}-\d{4}-\d{4}-\d{3}[0-9X])", re.IGNORECASE)
_ORCID_COMPACT_RE = re.compile(r"(\d{15}[0-9X])", re.IGNORECASE)
_ORCID_URL_PREFIX = re.compile(r"^(https?://)?(www\.)?orcid\.org/", re.IGNORECASE)


def valid_orcid(orcid: str) -> bool:
    """ISO 7064 Mod 11-2 checksum over the 16 ORCID characters."""
    if not orcid:
        return False
    digits = orcid.replace("-", "").upper()
    if not re.match(r"^\d{15}[0-9X]$", digits):
        return False
    total = 0
    for ch in digits[:-1]:
        total = (total + int(ch)) * 2
    remainder = total % 11
    result = (12 - remainder) % 11
    check = "X" if result == 10 else str(result)
    return digits[-1] == check


def normalize_orcid(raw: Optional[str]) -> Optional[str]:
    """URL, compact or bare ORCID -> hyphenated bare form; None unless the checksum holds."""
    if not raw:
        return None
    txt = raw.strip()
    match = _ORCID_RE.search(txt)
    if not match:
        match = _ORCID_COMPACT_RE.search(txt)
    if not match:
        return None
    val = match.group(1).upper()
    if len(val) == 16:
        val = "-".join([val[i : i + 4] for i in range(0, 16, 4)])
    if not valid_orcid(val):
        return None
    return val


def orcid_filter_value(raw: Optional[str]) -> Optional[str]:
    """
    The bare identifier OpenAlex expects in ``filter=orcid:...``, or None
    when the text does not contain an ORCID-shaped token.

    Unlike normalize_orcid the checksum is not enforced: a stored value with
    a bad checksum is still passed through so the registry decides.
    """
    txt = _ORCID_URL_PREFIX.sub("", (raw or "").strip()).strip("/")
    match = _ORCID_RE.search(txt)
    if match:
        return match.group(1).upper()
    match = _ORCID_COMPACT_RE.fullmatch(txt)
    if match:
        val = match.group(1).upper()
        return "-".join([val[i : i + 4] for i in range(0, 16, 4)])
    return None


def _candidates_from_payload(data: Dict[str, Any], given: str, family: str) -> List[IdentityCandidate]:
    out: List[IdentityCandidate] = []
    for result in data.get("result") or []:
        if not isinstance(result, dict):
            continue
        identifier = result.get("orcid-identifier") or {}
        path = identifier.get("path") if isinstance(identifier, dict) else None
        if path:
            out.append(IdentityCandidate(orcid=str(path), name=f"{given} {family}"))
    return out


def search_candidates_by_name(
    given: str,
    family: str,
    *,
    session: Optional[requests.Session] = None,
) -> List[IdentityCandidate]:
    """
    Exact family-name AND given-names query against the ORCID registry.

    Any failure is logged and reported as zero candidates.
    """
    params = {"q": f"family-name:{family} AND given-names:{given}"}
    try:
        data = get_json("orcid", f"{ORCID_API}/search/", params=params, timeout=ORCID_TIMEOUT, session=session)
    except RegistryUnreachable as e:
        with_extras(logger, given=given, family=family, error=str(e)).warning("ORCID search failed")
        return []
    candidates = _candidates_from_payload(data, given, family)
    with_extras(logger, given=given, family=family, candidates=len(candidates)).info("ORCID search")
    return candidates


def resolve_candidate_for_name(
    raw_name: Optional[str],
    *,
    session: Optional[requests.Session] = None,
) -> IdentityCandidate:
    """
    Name -> the single ORCID candidate.

    Raises InsufficientNameParts, NoIdentityMatch or AmbiguousIdentityMatch.
    """
    given, family = parse_name(raw_name)
    candidates = search_candidates_by_name(given, family, session=session)
    if not candidates:
        raise NoIdentityMatch(f"no ORCID for {given} {family}")
    if len(candidates) > 1:
        raise AmbiguousIdentityMatch(candidates)
    return candidates[0]
