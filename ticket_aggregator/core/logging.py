"""
Logging configuration with Rich and structlog integration.
"""
import os
import logging
import structlog
from rich.console import Console
from rich.logging import RichHandler
from rich.traceback import install as install_rich_traceback
from datetime import datetime

from ..config.settings import Settings, get_settings

# Create console for rich output
console = Console()


def configure_logging(settings: Settings = None):
    """Configure structured logging with Rich for console and JSON file output."""
    settings = settings or get_settings()

    # Install rich traceback handler for exception formatting
    install_rich_traceback(show_locals=True)

    os.makedirs(settings.log_dir, exist_ok=True)

    rich_handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        tracebacks_show_locals=True,
        markup=True,
        show_time=False,  # structlog will add this
    )

    timestamp = datetime.now().strftime("%Y%m%d")
    file_handler = logging.FileHandler(
        os.path.join(settings.log_dir, f"ticket_aggregator_{timestamp}.log")
    )

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[rich_handler, file_handler],
        force=True,
    )

    processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
        structlog.contextvars.merge_contextvars,
        structlog.processors.dict_tracebacks,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Console gets key=value lines, the file gets one JSON object per record
    rich_handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
    ))
    file_handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
    ))

    return structlog.get_logger()


def get_logger(name: str = None):
    """Get a configured logger instance."""
    return structlog.get_logger(name)
