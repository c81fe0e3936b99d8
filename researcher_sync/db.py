from __future__ import annotations

from .dynamo.tables import ensure_tables


def init_db() -> None:
    """
    Create the researcher table and its indexes (no-op if they already exist).

    The CLI calls this before every command.
    """
    ensure_tables()


__all__ = ["init_db"]
