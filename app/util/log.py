import logging
import logging.handlers
import pathlib
from typing import Any

import structlog

_shared_processors: list[Any] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
]


def _build_formatter(log_format: str) -> structlog.stdlib.ProcessorFormatter:
    renderers: list[Any]
    if log_format.lower() == "json":
        renderers = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [structlog.dev.ConsoleRenderer(colors=False)]

    return structlog.stdlib.ProcessorFormatter(
        # records from uvicorn, sqlalchemy, aiohttp etc. get the same fields
        foreign_pre_chain=_shared_processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *renderers],
    )


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "text",
    log_file: str | None = None,
    config_dir: str = "/config",
) -> None:
    """
    Route structlog through the standard logging handlers so that application
    events and third-party library records end up on the same outputs.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: "text" for human-readable lines, "json" for one object per line
        log_file: Optional rotating log file, relative to `<config_dir>/logs`
        config_dir: Base configuration directory
    """
    level = logging.getLevelNamesMapping().get(log_level.upper(), logging.INFO)
    formatter = _build_formatter(log_format)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_shared_processors,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        log_dir = pathlib.Path(config_dir) / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                filename=log_dir / log_file,
                maxBytes=50 * 1024 * 1024,
                backupCount=5,
                encoding="utf-8",
            )
        )

    root_logger = logging.getLogger()
    root_logger.handlers = []
    root_logger.setLevel(level)
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    # replaced by the request middleware line
    logging.getLogger("uvicorn.access").disabled = True


def bind_request_context(**context: Any) -> None:
    """Attach key/value pairs to every log line emitted during the current request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**context)


def get_logger(name: str = "shelf") -> structlog.stdlib.BoundLogger:
    return structlog.stdlib.get_logger(name)


logger = get_logger()
