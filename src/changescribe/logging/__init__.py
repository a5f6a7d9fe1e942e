"""
Structured, run-aware logging for changescribe.

- Structured logging with structlog
- Run context propagation via contextvars
- Stage timing via ``log_step``

Usage:
    from changescribe.logging import configure_logging, get_logger, log_step

    configure_logging()
    log = get_logger(__name__)

    with log_step("collect"):
        snapshot = collect_staged_changes(repo)
"""

from changescribe.logging.config import configure_logging, is_configured
from changescribe.logging.context import (
    LogContext,
    bind_context,
    clear_context,
    get_context,
    get_logger,
    new_run_id,
    push_context,
    set_context,
)
from changescribe.logging.timing import StageTimer, log_step

__all__ = [
    # Configuration
    "configure_logging",
    "is_configured",
    # Context
    "LogContext",
    "bind_context",
    "clear_context",
    "get_context",
    "get_logger",
    "new_run_id",
    "push_context",
    "set_context",
    # Timing
    "StageTimer",
    "log_step",
]
