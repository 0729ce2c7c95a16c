"""Structured logging configuration using structlog."""

from __future__ import annotations

import logging
import re
import sys
from typing import Any, TextIO

import structlog

# Classic and fine-grained GitHub token shapes
_TOKEN_RE = re.compile(r"\b(gh[pousr]_[A-Za-z0-9]{8,}|github_pat_[A-Za-z0-9_]{8,})")


def redact_tokens(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask anything that looks like a GitHub token in string values."""
    for key, value in event_dict.items():
        if isinstance(value, str) and ("gh" in value or "github_pat_" in value):
            event_dict[key] = _TOKEN_RE.sub("***", value)
    return event_dict


def setup_logging(level: str = "INFO", stream: TextIO | None = None) -> None:
    """Configure structlog over stdlib logging.

    JSON lines by default, a coloured console renderer at DEBUG.  The CLI
    passes ``stream=sys.stderr`` so logs never mix with command output.
    """
    level = level.upper()
    renderer: structlog.types.Processor = (
        structlog.dev.ConsoleRenderer(colors=True) if level == "DEBUG" else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            redact_tokens,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in ("httpx", "httpcore", "uvicorn.access"):
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_pr_context(owner: str, repo: str, pr_number: int) -> None:
    """Attach the pull request being reviewed to every later log line."""
    structlog.contextvars.bind_contextvars(repository=f"{owner}/{repo}", pr_number=pr_number)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a bound logger for a module."""
    return structlog.get_logger(name)
