from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    txt = str(value).strip()
    return txt or None


def decode_topics(raw: Any) -> Optional[List[str]]:
    """
    Parse the stored ``research_topics`` attribute.

    Stored as a JSON array string; legacy rows may hold a native list.
    Anything unparseable is treated as "never computed".
    """
    if raw is None:
        return None
    if isinstance(raw, str):
        if not raw.strip():
            return None
        try:
            raw = json.loads(raw)
        except ValueError:
            return None
    if not isinstance(raw, (list, tuple)):
        return None
    return [str(t) for t in raw if isinstance(t, str) and t.strip()]


def encode_topics(topics: List[str]) -> str:
    return json.dumps(list(topics), ensure_ascii=False)


@dataclass
class ResearcherRecord:
    id: str
    did: Optional[str] = None
    handle: Optional[str] = None
    name: Optional[str] = None
    orcid: Optional[str] = None
    openalex_id: Optional[str] = None
    institution: Optional[str] = None
    topics: Optional[List[str]] = None
    is_active: bool = True
    topics_version: int = 0

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "ResearcherRecord":
        version = item.get("topics_version")
        try:
            version = int(version) if version is not None else 0
        except (TypeError, ValueError):
            version = 0
        return cls(
            id=str(item["id"]),
            did=_clean_str(item.get("did")),
            handle=_clean_str(item.get("handle")),
            name=_clean_str(item.get("name")),
            orcid=_clean_str(item.get("orcid")),
            openalex_id=_clean_str(item.get("openalex_id")),
            institution=_clean_str(item.get("institution")),
            topics=decode_topics(item.get("research_topics")),
            is_active=bool(item.get("is_active", True)),
            topics_version=version,
        )

    @property
    def has_topics(self) -> bool:
        return bool(self.topics)


@dataclass(frozen=True)
class IdentityCandidate:
    orcid: str
    name: str


@dataclass(frozen=True)
class AuthorRecord:
    openalex_id: str
    institution: Optional[str] = None


@dataclass
class BackfillOutcome:
    id: str
    name: Optional[str]
    status: str
    topics_count: Optional[int] = None
    orcid: Optional[str] = None
    match_count: Optional[int] = None

    def as_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None or k == "name"}


@dataclass
class BackfillRunReport:
    mode: str
    success_status: str
    results: List[BackfillOutcome] = field(default_factory=list)

    def add(self, outcome: BackfillOutcome) -> None:
        self.results.append(outcome)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.status == self.success_status)

    @property
    def counts(self) -> Dict[str, int]:
        out: Dict[str, int] = {}
        for r in self.results:
            out[r.status] = out.get(r.status, 0) + 1
        return out

    @property
    def message(self) -> str:
        if self.mode == "identity":
            counts = self.counts
            return (
                f"Lookup complete: {self.success_count} updated, "
                f"{counts.get('no_match', 0)} no match, "
                f"{counts.get('multiple_matches', 0)} multiple matches"
            )
        return f"Backfill complete: {self.success_count}/{self.total} researchers updated"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "message": self.message,
            "total": self.total,
            "success_count": self.success_count,
            "counts": self.counts,
            "results": [r.as_dict() for r in self.results],
        }


@dataclass
class SuggestionResult:
    did: Optional[str]
    handle: Optional[str]
    name: Optional[str]
    institution: Optional[str]
    topics: List[str]
    match_score: int
    matched_topics: List[str]

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TopicCount:
    topic: str
    count: int
