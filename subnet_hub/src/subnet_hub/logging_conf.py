"""
structlog setup for hub builds.

Each source-level outcome of a build (node verified or skipped, entries
fetched, peer fallback) is its own event. Sources are fetched concurrently,
so a build tags every event it emits with its build id via ``build_context``.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog
from structlog.types import Processor

from .config import get_settings

# Per-request INFO lines from the HTTP stack duplicate our own source events.
QUIET_LOGGERS = ("httpx", "httpcore")


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def _renderers(json_output: bool) -> list[Processor]:
    if json_output:
        return [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]


def setup_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """
    Configure structlog for the CLI or the server.

    Args:
        level: Log level name; defaults to ``settings.log_level``
        json_output: JSON lines instead of console output (for CI and servers);
            defaults to ``settings.log_json``
    """
    settings = get_settings()
    level_no = _level(level or settings.log_level)
    if json_output is None:
        json_output = settings.log_json

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level_no)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            *_renderers(json_output),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_no),
        logger_factory=structlog.PrintLoggerFactory(),
    )


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """Logger for a module, tagged with its name."""
    if name:
        return structlog.get_logger().bind(logger=name)
    return structlog.get_logger()


@contextmanager
def build_context(build_id: str) -> Iterator[str]:
    """Tag every event logged inside the block with ``build_id``."""
    with structlog.contextvars.bound_contextvars(build_id=build_id):
        yield build_id
