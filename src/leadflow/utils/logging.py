from __future__ import annotations

import logging
import sys
from typing import cast

import structlog


def configure_logging(level: str = "INFO", json: bool = True) -> None:
    """Route structlog output for the automation core through stdlib logging.

    Production deployments keep ``json=True`` so workflow, routing and
    escalation events are machine-parseable; ``json=False`` switches to the
    coloured console renderer for local runs.

    Args:
        level: Standard logging level string, e.g. ``"DEBUG"`` or ``"INFO"``.
            Usually :attr:`AutomationConfig.log_level`.
        json: Render entries as JSON when true, as console lines otherwise.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer: structlog.types.Processor
    if json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    # APScheduler logs every job run at INFO; keep sweeps quiet unless debugging.
    if log_level > logging.DEBUG:
        logging.getLogger("apscheduler").setLevel(logging.WARNING)


def get_logger(name: str, **initial_values: object) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger named *name*, optionally pre-bound with context."""
    logger = structlog.get_logger(name)
    if initial_values:
        logger = logger.bind(**initial_values)
    return cast(structlog.stdlib.BoundLogger, logger)
