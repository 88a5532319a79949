"""Logging for the pharmacy domain.

Everything logs through structlog. Records are routed to the standard library
so that Protean's own messages and ours share the same handlers: stdout plus a
rotating ``logs/pharmacy.log``. Production and staging render JSON lines; other
environments get the console renderer.

Scheduled jobs bind their name with ``add_context`` so every line a job emits
can be traced back to the run that produced it.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any

import structlog

_LEVELS = {"production": "INFO", "staging": "INFO", "development": "DEBUG", "test": "WARNING"}
_JSON_ENVIRONMENTS = ("production", "staging")
_QUIET_LOGGERS = ("protean", "asyncio", "urllib3", "sqlalchemy.engine")


def _environment() -> str:
    return (os.getenv("ENVIRONMENT") or os.getenv("PROTEAN_ENV") or "development").lower()


def _handlers(level: str, log_dir: str) -> list[logging.Handler]:
    path = Path(log_dir)
    path.mkdir(exist_ok=True)

    console = logging.StreamHandler(sys.stdout)
    rotating = logging.handlers.RotatingFileHandler(
        filename=path / "pharmacy.log",
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    for handler in (console, rotating):
        handler.setLevel(level)
    return [console, rotating]


def configure_logging(log_dir: str = "logs") -> None:
    """Wire structlog onto stdlib handlers for the current environment."""
    env = _environment()
    level = os.getenv("LOG_LEVEL", _LEVELS.get(env, "INFO"))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = _handlers(level, log_dir)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    renderer = (
        structlog.processors.JSONRenderer()
        if env in _JSON_ENVIRONMENTS
        else structlog.dev.ConsoleRenderer(colors=env == "development")
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def add_context(**kwargs: Any) -> None:
    """Bind values onto every log line emitted from this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
