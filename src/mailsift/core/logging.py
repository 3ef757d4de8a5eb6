"""Structured logging with structlog."""

from __future__ import annotations

import logging
import os
import sys

import structlog


def configure_logging(verbose: bool = False, debug: bool = False) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        verbose: Log at INFO level.
        debug: Log at DEBUG level (wins over verbose).
    """
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level, force=True)

    # Keep LiteLLM quiet unless debugging
    os.environ.setdefault("LITELLM_LOG", "DEBUG" if debug else "ERROR")
    for noisy in ("LiteLLM", "litellm", "httpx"):
        logging.getLogger(noisy).setLevel(logging.DEBUG if debug else logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
    )
    for handler in logging.root.handlers:
        handler.setFormatter(formatter)

