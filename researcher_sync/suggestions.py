from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from .dynamo.researchers_repo import ResearchersRepo
from .exceptions import InvalidTopicsError
from .logging_setup import get_logger, with_extras
from .models import ResearcherRecord, SuggestionResult, TopicCount
from .runtime_config import RUNTIME_CONFIG

logger = get_logger(__name__)

DEFAULT_LIMIT = RUNTIME_CONFIG.suggestions.default_limit
DISPLAY_TOPICS = RUNTIME_CONFIG.suggestions.display_topics
MATCHED_TOPICS = RUNTIME_CONFIG.suggestions.matched_topics

EXACT_MATCH_POINTS = 3
PARTIAL_MATCH_POINTS = 1


def _validate_topics(query_topics: Any) -> List[str]:
    if not isinstance(query_topics, (list, tuple)) or not query_topics:
        raise InvalidTopicsError("topics must be a non-empty list of strings")
    if not all(isinstance(t, str) for t in query_topics):
        raise InvalidTopicsError("topics must be a non-empty list of strings")
    return list(query_topics)


def _validate_limit(limit: Any) -> int:
    # 0 is a valid cap and yields no results
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
        raise InvalidTopicsError(f"limit must be a non-negative integer, got {limit!r}")
    return limit


def score_topics(query_lower: Sequence[str], candidate_topics: Sequence[str]) -> tuple[int, List[str]]:
    """
    Score one candidate: +3 for an exact match, +1 when either string
    contains the other. Comparison is case-insensitive. Returns the score
    and the (lower-cased) candidate topics that matched, first-match order.
    """
    candidate_lower = [t.lower() for t in candidate_topics]
    score = 0
    matched: List[str] = []
    for q in query_lower:
        for c in candidate_lower:
            if q == c:
                score += EXACT_MATCH_POINTS
            elif q in c or c in q:
                score += PARTIAL_MATCH_POINTS
            else:
                continue
            if c not in matched:
                matched.append(c)
    return score, matched


def score_candidates(
    query_topics: Sequence[str],
    pool: Iterable[ResearcherRecord],
    *,
    exclude_did: Optional[str] = None,
    limit: int = DEFAULT_LIMIT,
) -> List[SuggestionResult]:
    """Rank a candidate pool against query topics. Pure; safe to call concurrently."""
    query_lower = [t.lower() for t in _validate_topics(query_topics)]
    limit = _validate_limit(limit)

    scored: List[SuggestionResult] = []
    for candidate in pool:
        if exclude_did is not None and candidate.did == exclude_did:
            continue
        if not candidate.topics:
            continue
        score, matched = score_topics(query_lower, candidate.topics)
        if score <= 0:
            continue
        scored.append(
            SuggestionResult(
                did=candidate.did,
                handle=candidate.handle,
                name=candidate.name,
                institution=candidate.institution,
                topics=list(candidate.topics[:DISPLAY_TOPICS]),
                match_score=score,
                matched_topics=matched[:MATCHED_TOPICS],
            )
        )
    # stable: equal scores keep pool order
    scored.sort(key=lambda s: s.match_score, reverse=True)
    return scored[:limit]


def suggest_researchers(
    topics: Sequence[str],
    *,
    exclude_did: Optional[str] = None,
    limit: Optional[int] = None,
    repo: Optional[ResearchersRepo] = None,
) -> List[SuggestionResult]:
    """Suggestions over every active researcher with topics."""
    _validate_topics(topics)
    repo = repo or ResearchersRepo()
    pool = repo.select_active_with_topics()
    results = score_candidates(
        topics,
        pool,
        exclude_did=exclude_did,
        limit=DEFAULT_LIMIT if limit is None else limit,
    )
    with_extras(logger, query=list(topics), pool=len(pool), returned=len(results)).info("suggestions computed")
    return results


def count_topics(records: Iterable[ResearcherRecord]) -> Dict[str, Any]:
    """Topic frequencies over the given records, most common first (ties in first-seen order)."""
    counts: Dict[str, int] = {}
    total = 0
    for record in records:
        if not record.topics:
            continue
        total += 1
        for topic in record.topics:
            counts[topic] = counts.get(topic, 0) + 1
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return {
        "topics": [TopicCount(topic=t, count=c) for t, c in ranked],
        "total_researchers": total,
    }


def list_known_topics(repo: Optional[ResearchersRepo] = None) -> Dict[str, Any]:
    repo = repo or ResearchersRepo()
    return count_topics(repo.select_active_with_topics())


def researchers_with_topic(topic: str, repo: Optional[ResearchersRepo] = None) -> List[ResearcherRecord]:
    if not isinstance(topic, str) or not topic.strip():
        raise InvalidTopicsError("topic must be a non-empty string")
    repo = repo or ResearchersRepo()
    return [r for r in repo.select_active_with_topics() if topic in (r.topics or [])]
