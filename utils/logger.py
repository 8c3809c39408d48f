import json
import logging
import os
from datetime import UTC, datetime
from typing import Any, Dict, Optional

from colorama import Fore, Style, init

init(autoreset=True)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured search logging"""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "event_type": getattr(record, "event_type", "general"),
            "event_data": getattr(record, "event_data", {}),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output with search event highlighting"""

    COLORS = {
        "DEBUG": Fore.CYAN,
        "INFO": Fore.BLUE,
        "WARNING": Fore.YELLOW,
        "ERROR": Fore.RED,
        "CRITICAL": Fore.MAGENTA + Style.BRIGHT,
    }

    EVENT_COLORS = {
        "tab": Fore.CYAN,
        "load": Fore.BLUE,
        "agent": Fore.MAGENTA,
        "extraction": Fore.GREEN,
        "recovery": Fore.YELLOW + Style.BRIGHT,
        "general": Fore.WHITE,
    }

    def format(self, record):
        record.levelname_colored = (
            self.COLORS.get(record.levelname, Fore.WHITE)
            + record.levelname
            + Style.RESET_ALL
        )

        event_type = getattr(record, "event_type", "general")
        record.event_type_colored = (
            self.EVENT_COLORS.get(event_type, Fore.WHITE)
            + event_type.upper()
            + Style.RESET_ALL
        )

        return super().format(record)


class DefaultEventMetadataFilter(logging.Filter):
    """Ensure log records contain the event metadata expected by the formatters."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401 (doc inherited)
        if not hasattr(record, "event_type"):
            record.event_type = "general"
        if not hasattr(record, "event_data"):
            record.event_data = {}
        return True


def setup_logger(
    name: str = "parts_search",
    level: int = logging.INFO,
    log_file: Optional[str] = "data/logs/search.log",
    structured_file: Optional[str] = None,
    console: bool = True,
    config: Optional[Dict[str, Any]] = None,
) -> logging.Logger:
    """Setup logger with file, structured JSON and colored console handlers

    Args:
        name: Logger name ("" configures the root logger)
        level: Logging level
        log_file: Path to plain log file, None disables it
        structured_file: Path to JSON-lines log file, None disables it
        console: Whether to enable console logging
        config: Optional ``logging`` section from settings.json
    """

    if config:
        log_file = config.get("file", log_file)
        structured_file = config.get("structured_file", structured_file)
        console = config.get("console", console)
        if config.get("log_level"):
            level = getattr(logging, str(config["log_level"]).upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers
    if logger.hasHandlers():
        logger.handlers.clear()

    logger.addFilter(DefaultEventMetadataFilter())

    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.addFilter(DefaultEventMetadataFilter())
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - [%(event_type)s] - %(message)s"
            )
        )
        logger.addHandler(file_handler)

    if structured_file:
        os.makedirs(os.path.dirname(structured_file) or ".", exist_ok=True)
        json_handler = logging.FileHandler(structured_file, encoding="utf-8")
        json_handler.setFormatter(StructuredFormatter())
        logger.addHandler(json_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.addFilter(DefaultEventMetadataFilter())
        console_handler.setFormatter(
            ColoredFormatter(
                "%(asctime)s - %(levelname_colored)s - [%(event_type_colored)s] - %(message)s"
            )
        )
        logger.addHandler(console_handler)

    return logger


def log_search_event(
    logger: logging.Logger,
    event_type: str,
    message: str,
    event_data: Optional[Dict[str, Any]] = None,
    level: int = logging.INFO,
) -> None:
    """Structured search-step logging"""
    logger.log(
        level,
        message,
        extra={"event_type": event_type, "event_data": event_data or {}},
    )
