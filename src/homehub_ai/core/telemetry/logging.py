from __future__ import annotations

import logging
import sys

import structlog

_CONFIGURED = False


def _stderr_logger_factory(*_args) -> structlog.PrintLogger:
    # Resolved per call so CLI stdout stays clean and redirected streams are honoured.
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(log_level: str = "INFO", json_logs: bool = True) -> None:
    global _CONFIGURED
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
    ]

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*shared_processors, structlog.processors.EventRenamer(to="event"), renderer],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, log_level.upper(), logging.INFO)),
        logger_factory=_stderr_logger_factory,
        cache_logger_on_first_use=False,
    )
    _CONFIGURED = True


def get_logger(name: str):
    if not _CONFIGURED:
        configure_logging()
    return structlog.get_logger(name)


def mask_secret(value: str | None, visible: int = 6) -> str:
    if not value:
        return "missing"
    if len(value) <= visible:
        return "*" * len(value)
    return value[:visible] + "..."
