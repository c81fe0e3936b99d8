from __future__ import annotations

import argparse
import json
import logging
import os
from dataclasses import asdict
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .auth import SECRET_ENV
from .backfill import MODES, run_backfill
from .db import init_db
from .exceptions import (
    InvalidIdentifierError,
    InvalidTopicsError,
    ResearcherNotFound,
    Unauthorized,
)
from .logging_setup import get_logger
from .resolution import apply_manual_identifier
from .suggestions import list_known_topics, researchers_with_topic, suggest_researchers

load_dotenv()

logger = get_logger(__name__)


def _secret(args: argparse.Namespace) -> Optional[str]:
    return args.secret or os.environ.get(SECRET_ENV)


def cmd_backfill(args: argparse.Namespace) -> Dict[str, Any]:
    delay = args.delay_ms / 1000.0 if args.delay_ms is not None else None
    report = run_backfill(args.mode, secret=_secret(args), delay_seconds=delay, limit=args.limit)
    return report.as_dict()


def cmd_suggest(args: argparse.Namespace) -> Dict[str, Any]:
    results = suggest_researchers(args.topic, exclude_did=args.exclude_did, limit=args.limit)
    return {"suggestions": [r.as_dict() for r in results], "count": len(results)}


def cmd_topics(args: argparse.Namespace) -> Dict[str, Any]:
    catalogue = list_known_topics()
    return {
        "topics": [asdict(tc) for tc in catalogue["topics"]],
        "total_researchers": catalogue["total_researchers"],
    }


def cmd_by_topic(args: argparse.Namespace) -> Dict[str, Any]:
    records = researchers_with_topic(args.topic)
    return {
        "topic": args.topic,
        "researchers": [
            {"did": r.did, "handle": r.handle, "name": r.name, "institution": r.institution, "topics": r.topics}
            for r in records
        ],
        "count": len(records),
    }


def cmd_manual_update(args: argparse.Namespace) -> Dict[str, Any]:
    return apply_manual_identifier(
        args.handle,
        orcid=args.orcid,
        openalex_id=args.openalex_id,
        secret=_secret(args),
    )


def cmd_init_db(args: argparse.Namespace) -> Dict[str, Any]:
    return {"ok": True}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Researcher identity resolution and topic discovery")
    p.add_argument("--debug", action="store_true")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_backfill = sub.add_parser("backfill", help="Run a topic or identity backfill over the researcher store")
    p_backfill.add_argument("--mode", required=True, choices=list(MODES))
    p_backfill.add_argument("--limit", type=int, default=None, help="Process at most this many selected records")
    p_backfill.add_argument("--delay-ms", type=int, default=None, help="Override the pause after each record")
    p_backfill.add_argument("--secret", default=None, help=f"Operator secret (defaults to ${SECRET_ENV})")
    p_backfill.set_defaults(func=cmd_backfill)

    p_suggest = sub.add_parser("suggest", help="Suggest researchers for a set of topics")
    p_suggest.add_argument("--topic", action="append", required=True, help="Query topic (repeatable)")
    p_suggest.add_argument("--exclude-did", default=None)
    p_suggest.add_argument("--limit", type=int, default=None)
    p_suggest.set_defaults(func=cmd_suggest)

    p_topics = sub.add_parser("topics", help="List known topics with researcher counts")
    p_topics.set_defaults(func=cmd_topics)

    p_by_topic = sub.add_parser("by-topic", help="List researchers carrying an exact topic")
    p_by_topic.add_argument("topic")
    p_by_topic.set_defaults(func=cmd_by_topic)

    p_manual = sub.add_parser("manual-update", help="Set ORCID / OpenAlex id for a researcher by handle")
    p_manual.add_argument("--handle", required=True)
    p_manual.add_argument("--orcid", default=None)
    p_manual.add_argument("--openalex-id", default=None)
    p_manual.add_argument("--secret", default=None, help=f"Operator secret (defaults to ${SECRET_ENV})")
    p_manual.set_defaults(func=cmd_manual_update)

    p_init = sub.add_parser("init-db", help="Create the researcher table and indexes")
    p_init.set_defaults(func=cmd_init_db)

    return p


def _print(out: Dict[str, Any]) -> None:
    print(json.dumps(out, ensure_ascii=False, indent=2, default=str))


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.debug:
        # module loggers set their own level in get_logger
        for name in list(logging.root.manager.loggerDict):
            if name.startswith("researcher_sync"):
                logging.getLogger(name).setLevel(logging.DEBUG)

    init_db()
    try:
        out = args.func(args)
    except Unauthorized as e:
        _print({"error": str(e), "status_code": e.status_code})
        return 2
    except (InvalidTopicsError, InvalidIdentifierError, ResearcherNotFound, ValueError) as e:
        _print({"error": str(e)})
        return 1
    _print(out)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
