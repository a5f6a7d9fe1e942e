"""
structlog setup for changescribe.

Events are rendered by structlog and written through the stdlib
``logging`` module to stderr, so ``--json`` report output on stdout is
never mixed with log lines.

Defaults come from the environment when no argument is given:

- CHANGESCRIBE_LOG_LEVEL: DEBUG | INFO | WARNING | ERROR (default: WARNING)
- CHANGESCRIBE_LOG_FORMAT: console | json (default: console)

Usage:
    from changescribe.logging import configure_logging

    configure_logging()
    configure_logging(level="DEBUG", format="json", force=True)
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Literal

import structlog
from structlog.types import Processor

from changescribe.logging.context import add_context_processor

_configured = False

_SHARED_PROCESSORS: tuple[Processor, ...] = (
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    add_context_processor,
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
)


def _renderer(fmt: str) -> Processor:
    if fmt == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None,
    format: Literal["json", "console"] | None = None,
    force: bool = False,
) -> None:
    """
    Configure structlog and the stdlib root handler.

    Only the first call takes effect unless ``force=True``; the CLI forces
    reconfiguration on every invocation so the handler follows the current
    ``sys.stderr``.
    """
    global _configured
    if _configured and not force:
        return

    level_name = (level or os.environ.get("CHANGESCRIBE_LOG_LEVEL") or "WARNING").upper()
    fmt = (format or os.environ.get("CHANGESCRIBE_LOG_FORMAT") or "console").lower()
    numeric = logging.getLevelName(level_name)
    if not isinstance(numeric, int):
        numeric = logging.WARNING

    structlog.configure(
        processors=[*_SHARED_PROCESSORS, _renderer(fmt)],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric, force=True)
    logging.getLogger("changescribe").setLevel(numeric)

    _configured = True


def is_configured() -> bool:
    return _configured
