#!/usr/bin/env python3
"""
Centralized Logging Configuration for RIS Live

Provides standardized logging setup with:
- Console and file output
- Configurable log levels
- Structured log formatting
- systemd journal integration
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Dict
import time

from ris_live.utils.config import LoggingConfig


class RisLiveFormatter(logging.Formatter):
    """Formatter with optional ANSI colors and duration suffix"""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True, include_module: bool = True):
        """
        Initialize formatter

        Args:
            use_colors: Use ANSI color codes for console output
            include_module: Include module name in log output
        """
        self.use_colors = use_colors and sys.stderr.isatty()
        self.include_module = include_module

        if include_module:
            format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        else:
            format_str = "%(asctime)s - %(levelname)s - %(message)s"

        super().__init__(fmt=format_str, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record):
        """Format log record with optional colors"""
        formatted = super().format(record)

        if hasattr(record, "duration"):
            formatted = f"{formatted} [took {record.duration:.3f}s]"

        if self.use_colors and record.levelname in self.COLORS:
            color = self.COLORS[record.levelname]
            formatted = f"{color}{formatted}{self.RESET}"

        return formatted


def setup_logging(
    logging_config: LoggingConfig = None,
    level: str = None,
    log_to_file: bool = None,
    log_file: str = None,
    console_colors: bool = True,
    include_modules: bool = True,
) -> Dict[str, logging.Handler]:
    """
    Setup centralized logging for RIS Live

    Args:
        logging_config: Logging section of the configuration
        level: Log level override
        log_to_file: Enable file logging override
        log_file: Log file path override
        console_colors: Use colors in console output
        include_modules: Include module names in log format

    Returns:
        Dictionary of configured handlers
    """
    if logging_config is None:
        logging_config = LoggingConfig()

    if level is None:
        level = logging_config.level
    if log_to_file is None:
        log_to_file = logging_config.log_to_file
    if log_file is None:
        log_file = logging_config.log_file

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handlers = {}

    # Console output goes to stderr; stdout carries the record stream
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(
        RisLiveFormatter(use_colors=console_colors, include_module=include_modules)
    )
    root_logger.addHandler(console_handler)
    handlers["console"] = console_handler

    if log_to_file and log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(RisLiveFormatter(use_colors=False, include_module=True))
        root_logger.addHandler(file_handler)
        handlers["file"] = file_handler

    if _is_running_as_service():
        try:
            from systemd import journal
        except ImportError:
            journal = None

        if journal is not None:
            journal_handler = journal.JournalHandler()
            journal_handler.setLevel(numeric_level)
            journal_handler.setFormatter(RisLiveFormatter(use_colors=False, include_module=True))
            root_logger.addHandler(journal_handler)
            handlers["journal"] = journal_handler

    logger = logging.getLogger("ris-live.logging")
    logger.debug(f"Logging configured: level={level}, handlers={list(handlers.keys())}")

    return handlers


def _is_running_as_service() -> bool:
    """Check if running as a systemd service"""
    return (
        os.getenv("INVOCATION_ID") is not None
        or os.getenv("JOURNAL_STREAM") is not None
    )


class LoggingTimer:
    """Context manager for timing operations with logging"""

    def __init__(
        self, logger: logging.Logger, operation: str, level: int = logging.INFO
    ):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.start_time = None
        self.duration = None

    def __enter__(self):
        self.start_time = time.time()
        self.logger.log(self.level, f"Starting {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.time() - self.start_time
        extra = {"duration": self.duration}

        if exc_type is None:
            self.logger.log(self.level, f"Completed {self.operation}", extra=extra)
        else:
            self.logger.error(f"Failed {self.operation}: {exc_val}", extra=extra)

        return False
