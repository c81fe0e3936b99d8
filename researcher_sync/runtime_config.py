from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional
import logging
import tomllib

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[1] / "config" / "runtime.toml"


@dataclass(frozen=True)
class OrcidConfig:
    api_url: str
    timeout_seconds: float


@dataclass(frozen=True)
class OpenAlexConfig:
    api_url: str
    author_timeout_seconds: float
    works_timeout_seconds: float
    works_per_page: int


@dataclass(frozen=True)
class BackfillConfig:
    topics_delay_ms: int
    identity_delay_ms: int
    max_topics: int


@dataclass(frozen=True)
class SuggestionsConfig:
    default_limit: int
    display_topics: int
    matched_topics: int


@dataclass(frozen=True)
class RuntimeConfig:
    orcid: OrcidConfig
    openalex: OpenAlexConfig
    backfill: BackfillConfig
    suggestions: SuggestionsConfig


def _default_config() -> RuntimeConfig:
    return RuntimeConfig(
        orcid=OrcidConfig(api_url="https://pub.orcid.org/v3.0", timeout_seconds=10.0),
        openalex=OpenAlexConfig(
            api_url="https://api.openalex.org",
            author_timeout_seconds=10.0,
            works_timeout_seconds=15.0,
            works_per_page=100,
        ),
        backfill=BackfillConfig(topics_delay_ms=100, identity_delay_ms=200, max_topics=20),
        suggestions=SuggestionsConfig(default_limit=10, display_topics=5, matched_topics=3),
    )


def _safe_int(value: Any, fallback: int) -> int:
    try:
        parsed = int(value)
        return parsed if parsed > 0 else fallback
    except Exception:
        return fallback


def _safe_float(value: Any, fallback: float) -> float:
    if isinstance(value, bool):
        return fallback
    try:
        parsed = float(value)
        return parsed if parsed > 0 else fallback
    except Exception:
        return fallback


def _safe_delay(value: Any, fallback: int) -> int:
    # zero is a valid delay (tests, local runs); negatives are not
    try:
        parsed = int(value)
        return parsed if parsed >= 0 else fallback
    except Exception:
        return fallback


def _str_field(d: dict, key: str, default: str) -> str:
    val = d.get(key, default)
    if not isinstance(val, str) or not val.strip():
        return default
    return val.strip().rstrip("/")


def _section(raw: Any, name: str) -> dict:
    section = raw.get(name) if isinstance(raw, dict) else {}
    return section if isinstance(section, dict) else {}


def load_runtime_config(config_path: Optional[Path] = None) -> RuntimeConfig:
    cfg = _default_config()
    path = config_path or _DEFAULT_CONFIG_PATH
    try:
        with path.open("rb") as handle:
            raw = tomllib.load(handle)
    except FileNotFoundError:
        logger.warning("Runtime config file not found; using defaults", extra={"path": str(path)})
        return cfg
    except tomllib.TOMLDecodeError:
        logger.exception("Runtime config parse failed; using defaults", extra={"path": str(path)})
        return cfg
    except Exception:
        logger.exception("Runtime config load failed; using defaults", extra={"path": str(path)})
        return cfg

    orcid_raw = _section(raw, "orcid")
    openalex_raw = _section(raw, "openalex")
    backfill_raw = _section(raw, "backfill")
    suggestions_raw = _section(raw, "suggestions")

    return RuntimeConfig(
        orcid=OrcidConfig(
            api_url=_str_field(orcid_raw, "api_url", cfg.orcid.api_url),
            timeout_seconds=_safe_float(
                orcid_raw.get("timeout_seconds", cfg.orcid.timeout_seconds), cfg.orcid.timeout_seconds
            ),
        ),
        openalex=OpenAlexConfig(
            api_url=_str_field(openalex_raw, "api_url", cfg.openalex.api_url),
            author_timeout_seconds=_safe_float(
                openalex_raw.get("author_timeout_seconds", cfg.openalex.author_timeout_seconds),
                cfg.openalex.author_timeout_seconds,
            ),
            works_timeout_seconds=_safe_float(
                openalex_raw.get("works_timeout_seconds", cfg.openalex.works_timeout_seconds),
                cfg.openalex.works_timeout_seconds,
            ),
            # OpenAlex caps per_page at 200
            works_per_page=min(
                _safe_int(openalex_raw.get("works_per_page", cfg.openalex.works_per_page), cfg.openalex.works_per_page),
                200,
            ),
        ),
        backfill=BackfillConfig(
            topics_delay_ms=_safe_delay(
                backfill_raw.get("topics_delay_ms", cfg.backfill.topics_delay_ms), cfg.backfill.topics_delay_ms
            ),
            identity_delay_ms=_safe_delay(
                backfill_raw.get("identity_delay_ms", cfg.backfill.identity_delay_ms), cfg.backfill.identity_delay_ms
            ),
            max_topics=_safe_int(backfill_raw.get("max_topics", cfg.backfill.max_topics), cfg.backfill.max_topics),
        ),
        suggestions=SuggestionsConfig(
            default_limit=_safe_int(
                suggestions_raw.get("default_limit", cfg.suggestions.default_limit), cfg.suggestions.default_limit
            ),
            display_topics=_safe_int(
                suggestions_raw.get("display_topics", cfg.suggestions.display_topics), cfg.suggestions.display_topics
            ),
            matched_topics=_safe_int(
                suggestions_raw.get("matched_topics", cfg.suggestions.matched_topics), cfg.suggestions.matched_topics
            ),
        ),
    )


RUNTIME_CONFIG = load_runtime_config()
