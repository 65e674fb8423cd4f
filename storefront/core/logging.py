"""Loguru setup.

Records carry the request id and the authenticated user id from context
variables set by the request middleware and the auth dependency. Production
writes one JSON object per line; ``LOG_JSON=false`` gives a readable format
for local runs.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from sys import stdout
from typing import Any

from loguru import logger

from storefront.core.config import settings

request_id_ctx_var: ContextVar[str] = ContextVar("request_id", default="-")
user_id_ctx_var: ContextVar[str] = ContextVar("user_id", default="-")

TEXT_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> <level>{level: <7}</level> "
    "[{extra[request_id]} user={extra[user_id]}] {message} {extra}"
)

# chatty third-party loggers
_QUIET = {
    "passlib.handlers.bcrypt": logging.ERROR,
    "botocore": logging.WARNING,
    "urllib3": logging.WARNING,
    "httpx": logging.WARNING,
}


def _patch_record(record: dict[str, Any]) -> None:
    record["extra"].setdefault("request_id", request_id_ctx_var.get())
    record["extra"].setdefault("user_id", user_id_ctx_var.get())


def log_level() -> str:
    if settings.LOG_LEVEL:
        return settings.LOG_LEVEL.upper()
    return "DEBUG" if settings.DEBUG else "INFO"


def setup_logging() -> None:
    logging.basicConfig(level=logging.INFO)
    for name, level in _QUIET.items():
        logging.getLogger(name).setLevel(level)

    logger.remove()
    logger.configure(patcher=_patch_record)
    if settings.LOG_JSON:
        logger.add(stdout, level=log_level(), enqueue=True, backtrace=False, diagnose=False, serialize=True)
    else:
        logger.add(stdout, level=log_level(), format=TEXT_FORMAT, colorize=True, diagnose=False)
