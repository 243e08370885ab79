"""Structured logging configuration for the SQL exporter"""
import logging
import os
import sys
from typing import Any, Dict, Optional

import structlog
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer, StackInfoRenderer, TimeStamper
from structlog.stdlib import LoggerFactory


def setup_structured_logging(settings) -> None:
    """Setup structured logging with JSON format for production and console for development"""

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        TimeStamper(fmt="iso"),
        StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    # Use JSON renderer for production, console for development
    is_development = os.getenv("ENVIRONMENT", "production").lower() == "development"
    if is_development:
        processors.append(ConsoleRenderer())
    else:
        processors.append(JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, settings.log_level.upper())
    handlers = []

    if settings.log_file is not None:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(settings.log_file))
        file_handler.setLevel(level)
        handlers.append(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    handlers.append(console_handler)

    logging.basicConfig(level=level, format="%(message)s", handlers=handlers, force=True)

    # Set specific logger levels to reduce noise
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance"""
    return structlog.get_logger(name)


def log_scrape(logger: structlog.stdlib.BoundLogger, families_count: int, scrape_time: float,
               failures_total: int, error: Optional[str] = None) -> None:
    """Log the outcome of one scrape cycle"""
    if error is None:
        logger.debug(
            "Scrape completed",
            families_count=families_count,
            scrape_time_seconds=round(scrape_time, 3),
            event_type="scrape"
        )
    else:
        logger.warning(
            "Scrape failed",
            error=error,
            families_count=families_count,
            scrape_time_seconds=round(scrape_time, 3),
            scrape_failures_total=failures_total,
            event_type="scrape_failure"
        )


def log_server_startup(logger: structlog.stdlib.BoundLogger, settings, config) -> None:
    """Log server startup with configuration details"""
    logger.info(
        "Server starting up",
        service_name=settings.service_name,
        service_version=settings.service_version,
        listen_address=settings.listen_address,
        config_path=str(settings.config_path),
        driver=config.driver_name,
        queries=[query.metric_name for query in config.queries],
        pid=os.getpid(),
        event_type="server_startup"
    )


def log_error(logger: structlog.stdlib.BoundLogger, error: Exception, context: Dict[str, Any] = None) -> None:
    """Log error with structured context"""
    logger.error(
        "Error occurred",
        error=str(error),
        error_type=type(error).__name__,
        context=context or {},
        event_type="error",
        exc_info=True
    )
