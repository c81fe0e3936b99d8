from __future__ import annotations

from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import IdentityCandidate

__all__ = [
    "ResearcherSyncError",
    "ResolutionError",
    "InsufficientNameParts",
    "RegistryUnreachable",
    "RegistryTimeout",
    "NoIdentityMatch",
    "AmbiguousIdentityMatch",
    "AuthorNotFound",
    "NoTopicsDerived",
    "Unauthorized",
    "PersistenceError",
    "InvalidTopicsError",
    "InvalidIdentifierError",
    "ResearcherNotFound",
]


class ResearcherSyncError(Exception):
    """Base class for everything raised by researcher_sync."""


class ResolutionError(ResearcherSyncError):
    """
    A per-record failure while resolving identity or topics.

    These are soft: the batch runner records ``status`` for the record and moves on.
    """
    status = "error"


class InsufficientNameParts(ResolutionError):
    status = "no_name"

    def __init__(self, raw_name: Optional[str]) -> None:
        super().__init__(f"cannot split name into given/family parts: {raw_name!r}")
        self.raw_name = raw_name


class RegistryUnreachable(ResolutionError):
    """
    An external registry call failed (network error or non-success response).

    ``stage`` names the lookup that failed ("author" or "works") and picks
    the batch status tag.
    """

    def __init__(
        self,
        registry: str,
        message: str,
        *,
        status_code: Optional[int] = None,
        stage: Optional[str] = None,
    ) -> None:
        super().__init__(f"{registry}: {message}")
        self.registry = registry
        self.status_code = status_code
        self.stage = stage

    @property
    def status(self) -> str:
        return f"{self.stage}_fetch_failed" if self.stage else "registry_unreachable"


class RegistryTimeout(RegistryUnreachable):
    pass


class NoIdentityMatch(ResolutionError):
    status = "no_match"


class AmbiguousIdentityMatch(ResolutionError):
    status = "multiple_matches"

    def __init__(self, candidates: List["IdentityCandidate"]) -> None:
        super().__init__(f"{len(candidates)} ORCID candidates")
        self.candidates = list(candidates)

    @property
    def match_count(self) -> int:
        return len(self.candidates)


class AuthorNotFound(ResolutionError):
    status = "author_not_found"


class NoTopicsDerived(ResolutionError):
    status = "no_topics_found"


class Unauthorized(ResearcherSyncError):
    """Operator gate failure. 500 when the secret is not configured, 401 otherwise."""

    def __init__(self, message: str = "Unauthorized", *, status_code: int = 401) -> None:
        super().__init__(message)
        self.status_code = status_code


class PersistenceError(ResearcherSyncError):
    """The researcher store rejected a read or write; aborts the whole run."""


class InvalidTopicsError(ResearcherSyncError, ValueError):
    pass


class InvalidIdentifierError(ResearcherSyncError, ValueError):
    pass


class ResearcherNotFound(ResearcherSyncError, LookupError):
    pass
