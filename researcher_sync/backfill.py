from __future__ import annotations

import time
from typing import Any, Callable, List, Optional

from .auth import require_operator
from .dynamo.researchers_repo import ResearchersRepo
from .exceptions import AmbiguousIdentityMatch, PersistenceError, ResolutionError, Unauthorized
from .logging_setup import get_logger, with_extras
from .models import BackfillOutcome, BackfillRunReport, ResearcherRecord
from .registries.http import get_session
from .resolution import resolve_identity_for_record, resolve_topics_for_record
from .runtime_config import RUNTIME_CONFIG

logger = get_logger(__name__)

MODE_TOPICS = "topics"
MODE_IDENTITY = "identity"
MODES = (MODE_TOPICS, MODE_IDENTITY)

_SUCCESS_STATUS = {MODE_TOPICS: "success", MODE_IDENTITY: "updated"}
_DEFAULT_DELAY_MS = {
    MODE_TOPICS: RUNTIME_CONFIG.backfill.topics_delay_ms,
    MODE_IDENTITY: RUNTIME_CONFIG.backfill.identity_delay_ms,
}


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


def _topics_outcome(record: ResearcherRecord, repo: ResearchersRepo, session) -> BackfillOutcome:
    try:
        topics = resolve_topics_for_record(record, repo, session=session)
    except ResolutionError as e:
        _warn("topic backfill skipped record", researcher_id=record.id, status=e.status, error=str(e))
        return BackfillOutcome(id=record.id, name=record.name, status=e.status)
    return BackfillOutcome(id=record.id, name=record.name, status="success", topics_count=len(topics))


def _identity_outcome(record: ResearcherRecord, repo: ResearchersRepo, session) -> BackfillOutcome:
    try:
        candidate, topics = resolve_identity_for_record(record, repo, session=session)
    except AmbiguousIdentityMatch as e:
        _info("multiple ORCID matches", researcher_id=record.id, name=record.name, matches=e.match_count)
        return BackfillOutcome(id=record.id, name=record.name, status=e.status, match_count=e.match_count)
    except ResolutionError as e:
        _info("identity not resolved", researcher_id=record.id, name=record.name, status=e.status)
        return BackfillOutcome(id=record.id, name=record.name, status=e.status)
    return BackfillOutcome(
        id=record.id,
        name=record.name,
        status="updated",
        orcid=candidate.orcid,
        topics_count=len(topics),
    )


_HANDLERS: dict[str, Callable[..., BackfillOutcome]] = {
    MODE_TOPICS: _topics_outcome,
    MODE_IDENTITY: _identity_outcome,
}


def select_records(mode: str, repo: ResearchersRepo) -> List[ResearcherRecord]:
    if mode == MODE_TOPICS:
        return repo.select_missing_topics()
    if mode == MODE_IDENTITY:
        return repo.select_missing_orcid()
    raise ValueError(f"unknown backfill mode: {mode!r}")


def run_backfill(
    mode: str,
    *,
    secret: Optional[str],
    repo: Optional[ResearchersRepo] = None,
    delay_seconds: Optional[float] = None,
    limit: Optional[int] = None,
) -> BackfillRunReport:
    """
    Operator-triggered maintenance run over the researcher store.

    mode "topics": records with an ORCID but no topic list get topics.
    mode "identity": records with no ORCID get one from their display name.

    Records are processed one at a time with a pause after each one to
    respect registry rate limits. A failing record never stops the run;
    only Unauthorized and PersistenceError propagate.
    """
    if mode not in MODES:
        raise ValueError(f"unknown backfill mode: {mode!r}")
    require_operator(secret)

    repo = repo or ResearchersRepo()
    delay = _DEFAULT_DELAY_MS[mode] / 1000.0 if delay_seconds is None else max(0.0, float(delay_seconds))
    handler = _HANDLERS[mode]
    session = get_session()

    records = select_records(mode, repo)
    if limit is not None and limit >= 0:
        records = records[:limit]
    _info("backfill started", mode=mode, selected=len(records), delay_seconds=delay)

    report = BackfillRunReport(mode=mode, success_status=_SUCCESS_STATUS[mode])
    for record in records:
        try:
            outcome = handler(record, repo, session)
        except (Unauthorized, PersistenceError):
            raise
        except Exception as e:
            with_extras(logger, mode=mode, researcher_id=record.id, error=str(e)).exception("backfill record failed")
            outcome = BackfillOutcome(id=record.id, name=record.name, status="error")
        report.add(outcome)
        if delay > 0:
            time.sleep(delay)

    _info(report.message, mode=mode, counts=report.counts)
    return report
