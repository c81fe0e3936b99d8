from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import requests

from .auth import require_operator
from .dynamo.researchers_repo import ResearchersRepo
from .exceptions import AuthorNotFound, InvalidIdentifierError, NoTopicsDerived, ResearcherNotFound
from .logging_setup import get_logger, with_extras
from .models import AuthorRecord, IdentityCandidate, ResearcherRecord
from .registries.openalex import fetch_author_works, lookup_author_by_orcid, resolve_author_by_identifier, short_openalex_id
from .registries.orcid import normalize_orcid, resolve_candidate_for_name
from .topics import derive_topics, topics_for_author

logger = get_logger(__name__)


def _info(msg: str, **extras: Any) -> None:
    if extras:
        with_extras(logger, **extras).info(msg)
    else:
        logger.info(msg)


def _warn(msg: str, **extras: Any) -> None:
    if extras:
        with_extras(logger, **extras).warning(msg)
    else:
        logger.warning(msg)


def _institution_to_fill(record: ResearcherRecord, author: Optional[AuthorRecord]) -> Optional[str]:
    # only fills a gap; a stored institution is never overwritten
    if author is None or record.institution:
        return None
    return author.institution


def resolve_topics_for_orcid(
    orcid: str,
    *,
    session: Optional[requests.Session] = None,
) -> Tuple[AuthorRecord, List[str]]:
    """
    ORCID -> (OpenAlex author, ranked topics).

    Unlike topics_for_orcid this keeps the failure reason: it raises
    RegistryUnreachable (stage "author" or "works"), AuthorNotFound or
    NoTopicsDerived.
    """
    author = lookup_author_by_orcid(orcid, session=session)
    if author is None:
        raise AuthorNotFound(f"no OpenAlex author for ORCID {orcid}")
    works = fetch_author_works(author.openalex_id, session=session)
    topics = derive_topics(works)
    if not topics:
        raise NoTopicsDerived(f"no topics in {len(works)} works")
    return author, topics


def resolve_topics_for_record(
    record: ResearcherRecord,
    repo: ResearchersRepo,
    *,
    session: Optional[requests.Session] = None,
) -> List[str]:
    """Topic backfill for one record that already carries an ORCID. Writes on success."""
    author, topics = resolve_topics_for_orcid(record.orcid, session=session)
    institution = _institution_to_fill(record, author)
    repo.write_resolution(record, openalex_id=author.openalex_id, topics=topics, institution=institution)
    if institution:
        record.institution = institution
    record.openalex_id = author.openalex_id
    record.topics = topics
    _info("topics resolved", researcher_id=record.id, openalex_id=author.openalex_id, topics=len(topics))
    return topics


def resolve_identity_for_record(
    record: ResearcherRecord,
    repo: ResearchersRepo,
    *,
    session: Optional[requests.Session] = None,
) -> Tuple[IdentityCandidate, List[str]]:
    """
    Name -> single ORCID -> topics for a record without an ORCID.

    The ORCID is written even when no topics can be derived; the topic list
    is then left untouched so the next topic backfill picks the record up.
    Name/match failures raise before anything is written.
    """
    candidate = resolve_candidate_for_name(record.name, session=session)

    openalex_id: Optional[str] = None
    topics: List[str] = []
    author = resolve_author_by_identifier(candidate.orcid, session=session)
    if author is not None:
        openalex_id = author.openalex_id
        topics = topics_for_author(author.openalex_id, session=session)
    institution = _institution_to_fill(record, author)

    repo.write_resolution(
        record,
        orcid=candidate.orcid,
        openalex_id=openalex_id,
        topics=topics or None,
        institution=institution,
    )
    record.orcid = candidate.orcid
    if institution:
        record.institution = institution
    if openalex_id:
        record.openalex_id = openalex_id
    if topics:
        record.topics = topics
    _info("identity resolved", researcher_id=record.id, orcid=candidate.orcid, topics=len(topics))
    return candidate, topics


def apply_manual_identifier(
    handle: str,
    *,
    orcid: Optional[str] = None,
    openalex_id: Optional[str] = None,
    secret: Optional[str],
    repo: Optional[ResearchersRepo] = None,
    session: Optional[requests.Session] = None,
) -> Dict[str, Any]:
    """
    Operator entry of an ORCID and/or OpenAlex id for one researcher.

    An explicit OpenAlex id wins over the ORCID-based author lookup. Registry
    failures are soft here: identifiers are still saved, topics only when
    some were derived.
    """
    require_operator(secret)

    handle = (handle or "").strip().lstrip("@")
    if not handle:
        raise InvalidIdentifierError("handle is required")
    if not orcid and not openalex_id:
        raise InvalidIdentifierError("orcid or openalex_id is required")

    clean_orcid: Optional[str] = None
    if orcid:
        clean_orcid = normalize_orcid(orcid)
        if clean_orcid is None:
            raise InvalidIdentifierError(f"invalid ORCID: {orcid!r}")
    clean_openalex = short_openalex_id(openalex_id) if openalex_id else None
    if openalex_id and not clean_openalex:
        raise InvalidIdentifierError(f"invalid OpenAlex id: {openalex_id!r}")

    repo = repo or ResearchersRepo()
    record = repo.get_by_handle(handle)
    if record is None:
        raise ResearcherNotFound(f"researcher not found: {handle}")

    author: Optional[AuthorRecord] = None
    if clean_openalex is None and clean_orcid:
        author = resolve_author_by_identifier(clean_orcid, session=session)
        if author is not None:
            clean_openalex = author.openalex_id

    topics: List[str] = []
    if clean_openalex:
        topics = topics_for_author(clean_openalex, session=session)
    else:
        _warn("no OpenAlex author for manual identifier", handle=handle, orcid=clean_orcid)

    repo.write_resolution(
        record,
        orcid=clean_orcid,
        openalex_id=clean_openalex,
        topics=topics or None,
        institution=_institution_to_fill(record, author),
    )
    _info("manual identifier applied", handle=handle, orcid=clean_orcid, openalex_id=clean_openalex, topics=len(topics))
    return {
        "success": True,
        "handle": handle,
        "orcid": clean_orcid,
        "openalex_id": clean_openalex,
        "topics_count": len(topics),
    }
