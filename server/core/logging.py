"""Structured logging configuration."""

import sys
import structlog
import logging
from pathlib import Path
from typing import List, TYPE_CHECKING

from core.config import Settings

if TYPE_CHECKING:
    from services.execution.models import Job

# Third-party loggers that only speak up on warnings
NOISY_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "aiosqlite",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "httpx",
    "openai",
)


def _build_handlers(level: int, log_file: str = None) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    for handler in handlers:
        handler.setLevel(level)
    return handlers


def _build_processors(log_format: str) -> list:
    """JSON lines for production, aligned plain text for local runs."""
    shared = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        return [
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            *shared,
            structlog.processors.JSONRenderer(),
        ]

    return [
        structlog.processors.TimeStamper(fmt="%H:%M:%S"),
        *shared,
        structlog.dev.ConsoleRenderer(
            colors=False,
            pad_event_to=35,
            exception_formatter=structlog.dev.plain_traceback
        ),
    ]


def configure_logging(settings: Settings) -> None:
    """Route stdlib and structlog output through the configured renderer."""
    level = getattr(logging, settings.log_level.upper())

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=_build_handlers(level, settings.log_file),
        force=True
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=_build_processors(settings.log_format),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_execution_time(logger: structlog.BoundLogger, operation: str,
                       start_time: float, end_time: float, **kwargs) -> None:
    logger.info(
        "Operation completed",
        operation=operation,
        execution_time_seconds=round(end_time - start_time, 4),
        **kwargs
    )


def log_api_call(logger: structlog.BoundLogger, provider: str, model: str,
                 operation: str, success: bool, **kwargs) -> None:
    """Log one call to an external model provider."""
    log = logger.info if success else logger.warning
    log(
        "API call completed",
        provider=provider,
        model=model,
        operation=operation,
        success=success,
        **kwargs
    )


def log_job_event(logger: structlog.BoundLogger, event: str, job: "Job",
                  queue: str, level: str = "info", **kwargs) -> None:
    """Log a job state change with the job's identity and attempt counters."""
    getattr(logger, level)(
        event,
        queue=queue,
        job_id=job.id,
        job_name=job.name,
        status=job.status.value,
        attempts_made=job.attempts_made,
        attempts=job.attempts,
        **kwargs
    )
