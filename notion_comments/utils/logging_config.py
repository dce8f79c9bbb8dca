"""Logging Configuration for the Notion comment responder

Centralized structlog configuration with JSON output. Poll cycles run unattended
inside the host process, so every event is written as a JSON line with enough
context (page_id, discussion_id, comment_id) to correlate failures afterwards.

Usage:
    >>> from notion_comments.utils.logging_config import setup_logging
    >>> setup_logging()
    >>> import structlog
    >>> logger = structlog.get_logger()
    >>> logger.info("poll_cycle_started", page_count=3)
    >>> logger.error("page_processing_failed", exc_info=True, page_id="abc")
"""

import logging
import sys
from pathlib import Path

import structlog

FILE_HANDLER_NAME = "notion_comments.file"
CONSOLE_HANDLER_NAME = "notion_comments.console"


def setup_logging(
    log_dir: str = "logs",
    log_filename: str = "notion_comments.log",
    console_level: int = logging.INFO,
) -> None:
    """Configure structlog with JSON renderer and file output.

    Sets up both Python stdlib logging and structlog to write JSON-formatted
    log entries to ``<log_dir>/<log_filename>``. Creates the directory if it
    doesn't exist. Handlers the host already attached to the root logger are
    left in place; calling this again replaces only the handlers it added.

    Args:
        log_dir: Directory for log files, relative to current working directory (default: "logs")
        log_filename: Name of the log file (default: "notion_comments.log")
        console_level: Minimum level echoed to stdout (default: INFO)

    Log entry format (JSON):
        {
            "event": "reply_posted",
            "level": "info",
            "timestamp": "2026-02-10T12:34:56.789Z",
            "logger": "notion_comments.poller",
            ...additional context fields...
        }
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    log_file = log_path / log_filename

    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
        structlog.processors.StackInfoRenderer(),
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Final JSON rendering happens in the stdlib formatter
    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(ensure_ascii=False),
        foreign_pre_chain=shared_processors,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Only handlers installed by an earlier call are replaced; the host's stay
    for handler in root_logger.handlers[:]:
        if handler.get_name() in (FILE_HANDLER_NAME, CONSOLE_HANDLER_NAME):
            root_logger.removeHandler(handler)
            handler.close()

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.set_name(FILE_HANDLER_NAME)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.set_name(CONSOLE_HANDLER_NAME)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)


def get_logger(name: str = None):
    """Get a configured structlog logger instance.

    Args:
        name: Logger name (typically __name__). If None, returns root logger.

    Returns:
        Configured structlog logger ready for use (BoundLoggerLazyProxy)
    """
    return structlog.get_logger(name)
