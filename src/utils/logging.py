"""Structured logging setup using structlog.

The same shared processor chain (context vars, log level, timestamps,
stack info) feeds either a coloured ConsoleRenderer for local development
or a JSONRenderer for production.  The renderer is selected from the
``APP_ENV`` environment variable (default ``"development"``) or forced via
``json_output``.

Standard-library ``logging`` is routed through the same formatter so
httpx, openai and uvicorn records look identical to our own.

Per-item context (``item_id``, ``file_name``) is attached with
:func:`item_log_context`; every log line emitted while an item is being
processed carries those keys without threading them through each call.
"""

import logging
import os
import sys
from collections.abc import Callable
from contextlib import AbstractContextManager
from typing import Any

import structlog


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    stderr: bool = False,
) -> structlog.BoundLogger:
    """Configure structlog with environment-appropriate rendering.

    Args:
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON output. When False, JSON is still used if
                     ``APP_ENV`` is ``production``.
        stderr: Write to stderr instead of stdout; the CLI uses this so
                stdout stays clean for reports.

    Returns:
        A configured structlog BoundLogger.
    """
    app_env = os.environ.get("APP_ENV", "development")
    use_json = json_output or app_env == "production"
    target = sys.stderr if stderr else sys.stdout

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if use_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=target.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(log_level.upper())
        ),
        context_class=dict,
        logger_factory=_print_logger_factory(stderr),
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *shared_processors,
            renderer,
        ],
    )

    handler = logging.StreamHandler(target)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    return structlog.get_logger()


def _print_logger_factory(stderr: bool) -> Callable[..., structlog.PrintLogger]:
    # Resolve the stream per logger so a replaced sys.stdout / sys.stderr
    # (test capture, daemonisation) is picked up.
    def factory(*args: Any) -> structlog.PrintLogger:
        return structlog.PrintLogger(sys.stderr if stderr else sys.stdout)

    return factory


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a named structlog logger, configuring defaults on first use.

    Args:
        name: Logger name, typically the module name.
    """
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(logger_name=name)


def item_log_context(item_id: str, file_name: str) -> AbstractContextManager:
    """Bind ``item_id`` and ``file_name`` to every log line inside the block.

    Usage::

        with item_log_context(item.id, item.file_name):
            await process(item)
    """
    return structlog.contextvars.bound_contextvars(item_id=item_id, file_name=file_name)
