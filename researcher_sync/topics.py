from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import requests

from .exceptions import RegistryUnreachable
from .logging_setup import get_logger, with_extras
from .registries.openalex import fetch_author_works, lookup_author_by_orcid
from .runtime_config import RUNTIME_CONFIG

logger = get_logger(__name__)

MAX_TOPICS = RUNTIME_CONFIG.backfill.max_topics


def _label(obj: Any) -> Optional[str]:
    if not isinstance(obj, dict):
        return None
    name = obj.get("display_name")
    if not isinstance(name, str) or not name.strip():
        return None
    return name


def tally_topics(works: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    """
    Count topic labels across works with hierarchical rollup: each topic
    credits its own label, its subfield and its field in the same tally.
    Dict insertion order records first-seen order.
    """
    tally: Dict[str, int] = {}
    for work in works:
        if not isinstance(work, dict):
            continue
        for topic in work.get("topics") or []:
            if not isinstance(topic, dict):
                continue
            for label in (_label(topic), _label(topic.get("subfield")), _label(topic.get("field"))):
                if label is not None:
                    tally[label] = tally.get(label, 0) + 1
    return tally


def rank_topics(tally: Dict[str, int], limit: int = MAX_TOPICS) -> List[str]:
    # sorted() is stable, so equal counts keep first-seen order
    ranked = sorted(tally.items(), key=lambda kv: kv[1], reverse=True)
    return [label for label, _ in ranked[:limit]]


def derive_topics(works: Iterable[Dict[str, Any]], limit: int = MAX_TOPICS) -> List[str]:
    return rank_topics(tally_topics(works), limit=limit)


def topics_for_author(openalex_id: str, *, session: Optional[requests.Session] = None) -> List[str]:
    """Ranked topics for an OpenAlex author; [] when the works fetch fails or is empty."""
    try:
        works = fetch_author_works(openalex_id, session=session)
    except RegistryUnreachable as e:
        with_extras(logger, openalex_id=openalex_id, error=str(e)).warning("failed to fetch works for topics")
        return []
    return derive_topics(works)


def topics_for_orcid(orcid: str, *, session: Optional[requests.Session] = None) -> List[str]:
    try:
        author = lookup_author_by_orcid(orcid, session=session)
    except RegistryUnreachable as e:
        with_extras(logger, orcid=orcid, error=str(e)).warning("failed to fetch author for topics")
        return []
    if author is None:
        return []
    return topics_for_author(author.openalex_id, session=session)
