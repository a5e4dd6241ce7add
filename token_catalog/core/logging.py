"""Catalog logging on Loguru.

Every record carries the logger ``name`` and, while a batch is being ingested,
the ingest ``run`` id, so all lines of one batch can be grepped together.
ERROR records are forwarded to Slack when a webhook is configured.
"""

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import httpx
from loguru import logger

from token_catalog.core.config import settings

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | run={extra[run]} | {extra[name]}:{function}:{line} | {message}"

_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
_LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}

# Stdlib loggers whose output is routed through Loguru instead of their own handlers
_INTERCEPTED = ("uvicorn", "uvicorn.error", "uvicorn.access", "alembic")

_configured = False


class InterceptHandler(logging.Handler):
    """Forward stdlib records (uvicorn, alembic, sqlalchemy) into Loguru under their own name."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_name == "emit":
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).bind(name=record.name).log(level, record.getMessage())


def _slack_text(record: dict[str, Any]) -> str:
    extra = record["extra"]
    header = f"[{record['level'].name}] token_catalog/{extra.get('name', '-')}"
    if extra.get("run", "-") != "-":
        header += f" (ingest run {extra['run']})"
    return f"{header}\n{record['function']}:{record['line']}: {record['message']}"


def _slack_sink(message: Any) -> None:
    if not settings.SLACK_WEBHOOK_URL:
        return
    try:
        httpx.post(settings.SLACK_WEBHOOK_URL, json={"text": _slack_text(message.record)}, timeout=5.0)
    except httpx.HTTPError:
        # Logging from here would re-enter this sink
        pass


def _resolve_level() -> str:
    level = (settings.effective_log_level or "INFO").strip().upper()
    level = _LEVEL_ALIASES.get(level, level)
    return level if level in _LEVELS else "INFO"


def configure_logging() -> None:
    """Install the stdout, file and Slack sinks once per process."""
    global _configured
    if _configured:
        return
    _configured = True

    level = _resolve_level()
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.configure(extra={"name": "token_catalog", "run": "-"})
    logger.add(sys.stdout, level=level, format=LOG_FORMAT, backtrace=False, diagnose=False)
    logger.add(
        log_dir / "app.log",
        level=level,
        format=LOG_FORMAT,
        rotation="10 MB",
        retention="14 days",
        enqueue=True,
        backtrace=False,
        diagnose=False,
    )
    if settings.SLACK_WEBHOOK_URL:
        logger.add(_slack_sink, level="ERROR", enqueue=True)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in _INTERCEPTED:
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        std_logger.propagate = False

    # Statement echo is noise; keep engine warnings only
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logger.__class__:
    return logger.bind(name=name)


@contextmanager
def ingest_context(run_id: Any) -> Iterator[None]:
    """Tag every record emitted inside the block with ``run_id``."""
    with logger.contextualize(run=str(run_id)):
        yield


configure_logging()
