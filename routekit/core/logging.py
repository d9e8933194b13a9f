import logging
import sys

import structlog
from structlog.stdlib import BoundLogger
from structlog.typing import EventDict, WrappedLogger


DEFAULT_CATEGORY = "general"


def add_default_category(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Fill in ``category`` for events logged without one."""
    event_dict.setdefault("category", DEFAULT_CATEGORY)
    return event_dict


def configure_structlog(json_logs: bool = False) -> None:
    """Configure structlog with the shared processor chain."""
    timestamper = structlog.processors.TimeStamper(fmt="iso")

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_default_category,
        timestamper,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        # Hand the event dict to ProcessorFormatter so we don't double-render
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    structlog.configure(
        processors=processors,  # type: ignore[arg-type]
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,  # Don't cache to allow reconfiguration
    )


def setup_logging(json_logs: bool = False, log_level: str = "INFO") -> BoundLogger:
    """
    Setup logging for the application including uvicorn and fastapi.
    Returns a structlog logger instance.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    # Root level first so structlog's filter_by_level sees it
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    configure_structlog(json_logs=json_logs)

    handler = logging.StreamHandler(sys.stdout)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    # ProcessorFormatter renders both structlog and stdlib records
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                add_default_category,
                structlog.processors.TimeStamper(fmt="iso"),
            ],
        )
    )

    root_logger.handlers = [handler]

    for logger_name in [
        "uvicorn",
        "uvicorn.access",
        "uvicorn.error",
        "fastapi",
        "routekit",
    ]:
        logger = logging.getLogger(logger_name)
        logger.handlers = []
        logger.propagate = True
        logger.setLevel(level)

    # uvicorn already writes its own access lines; ours come from access_log
    if level > logging.DEBUG:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return structlog.get_logger()  # type: ignore[no-any-return]


def get_logger(name: str | None = None) -> BoundLogger:
    """Get a structlog logger instance."""
    return structlog.get_logger(name)  # type: ignore[no-any-return]
