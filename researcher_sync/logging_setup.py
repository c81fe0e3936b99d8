import json
import logging
import os
import sys

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s | extras=%(extras)s"


def _stdout_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=_FORMAT))
    return handler


def get_logger(name: str) -> logging.LoggerAdapter:
    """Module logger writing one line per record to stdout; level from LOG_LEVEL."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.addHandler(_stdout_handler())
        logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    # the formatter needs an "extras" field on every record
    return logging.LoggerAdapter(logger, extra={"extras": "{}"})


def with_extras(logger, **extras) -> logging.LoggerAdapter:
    """Adapter rendering ``extras`` as JSON in the extras= slot of the log line."""
    base = logger.logger if isinstance(logger, logging.LoggerAdapter) else logger
    payload = json.dumps(extras, ensure_ascii=False, default=str)
    return logging.LoggerAdapter(base, extra={"extras": payload})
