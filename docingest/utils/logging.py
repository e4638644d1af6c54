"""structlog configuration shared by the API, the CLI and the services.

One processor chain (context vars, level, timestamp, stack info) ends in a
coloured console renderer for development or a JSON renderer when
``APP_ENV=production``.  Standard-library loggers (uvicorn, httpx, chromadb)
are bridged into the same chain so every line has one format.
"""

import logging
import sys

import structlog

# Libraries that log every request or telemetry call at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "chromadb", "chromadb.telemetry")


def configure_logging(
    log_level: str = "INFO",
    app_env: str = "development",
    json_output: bool = False,
) -> structlog.BoundLogger:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR.
        app_env: ``production`` selects JSON output.
        json_output: Force JSON output regardless of *app_env*.

    Returns:
        The root structlog logger.
    """
    level = log_level.upper()
    shared: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    renderer: structlog.types.Processor
    if json_output or app_env == "production":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[*shared, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *shared,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root.level))

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a logger bound to *name*, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)
