#!/usr/bin/env python3
"""
RIS Live Error Handling Utilities

Provides the exception hierarchy for the ingestion pipeline, standardized
error formatting, parameter validation and user guidance for the CLI.

Error Format Standards:
- INFO: "✓ {message}"                    # Success messages
- WARNING: "⚠ {message}"                 # Warning messages
- ERROR: "✗ {message}"                   # Error messages
- FATAL: "✗ Fatal: {message}"            # Critical errors
- USAGE: "Usage: {usage_help}"           # Usage guidance
"""

import logging
from pathlib import Path
from typing import Optional, Union
from functools import wraps
import os
import sys


class ErrorSeverity:
    """Error severity levels for consistent classification"""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"
    USAGE = "usage"


class RisLiveError(Exception):
    """Base exception class for RIS Live with standardized error handling"""

    def __init__(self, message: str, severity: str = ErrorSeverity.ERROR,
                 guidance: Optional[str] = None, technical_details: Optional[str] = None):
        self.message = message
        self.severity = severity
        self.guidance = guidance
        self.technical_details = technical_details
        super().__init__(message)


class ValidationError(RisLiveError):
    """Raised when parameter validation fails"""

    def __init__(self, message: str, parameter: str = None, guidance: str = None):
        self.parameter = parameter
        super().__init__(message, ErrorSeverity.ERROR, guidance)


class ConfigurationError(RisLiveError):
    """Raised when configuration is invalid or missing"""
    pass


class TransportError(RisLiveError):
    """Raised when the feed cannot be opened or read"""

    def __init__(self, message: str, source: str = None, technical_details: str = None):
        self.source = source
        super().__init__(message, ErrorSeverity.WARNING,
                         "Check the feed URL, network connectivity or the local file path",
                         technical_details)


class DecodeError(RisLiveError):
    """Raised when the feed contains malformed JSON"""

    def __init__(self, message: str, record_index: int = None, technical_details: str = None):
        self.record_index = record_index
        super().__init__(message, ErrorSeverity.FATAL,
                         "The feed is corrupted or not in RIS Live JSON format",
                         technical_details)


class DigestError(RisLiveError):
    """Raised when an AS path contains an element that is not an AS number"""

    def __init__(self, message: str, element=None):
        self.element = element
        super().__init__(message, ErrorSeverity.ERROR,
                         "Use --drop-undigestable to skip such records instead of stopping")


class PrefixParseError(RisLiveError, ValueError):
    """Raised when CIDR text cannot be parsed"""

    def __init__(self, message: str, prefix: str = None):
        self.prefix = prefix
        super().__init__(message, ErrorSeverity.WARNING,
                         "Use address/length notation (e.g., 192.0.2.0/24 or 2001:db8::/32)")


class ErrorFormatter:
    """Centralized error message formatting with consistent symbols and styles"""

    SYMBOLS = {
        ErrorSeverity.INFO: "✓",
        ErrorSeverity.WARNING: "⚠",
        ErrorSeverity.ERROR: "✗",
        ErrorSeverity.FATAL: "✗ Fatal:",
        ErrorSeverity.USAGE: "Usage:"
    }

    @classmethod
    def format_message(cls, message: str, severity: str = ErrorSeverity.ERROR,
                       guidance: Optional[str] = None) -> str:
        """Format a message with the appropriate symbol and structure"""
        symbol = cls.SYMBOLS.get(severity, "•")
        formatted = f"{symbol} {message}"

        if guidance:
            formatted += f"\n  Suggestion: {guidance}"

        return formatted

    @classmethod
    def format_error(cls, error: Union[Exception, RisLiveError],
                     hide_technical: bool = True) -> str:
        """Format an exception with appropriate level of detail"""
        if isinstance(error, RisLiveError):
            formatted = cls.format_message(error.message, error.severity, error.guidance)
            if not hide_technical and error.technical_details:
                formatted += f"\n  Technical: {error.technical_details}"
            return formatted

        error_type = type(error).__name__
        message = str(error)

        if isinstance(error, FileNotFoundError):
            guidance = "Check that the file path is correct and the file exists"
            return cls.format_message(f"File not found: {message}",
                                      ErrorSeverity.ERROR, guidance)
        elif isinstance(error, PermissionError):
            guidance = "Check file permissions or run with appropriate privileges"
            return cls.format_message(f"Permission denied: {message}",
                                      ErrorSeverity.ERROR, guidance)
        elif isinstance(error, ValueError):
            guidance = "Verify input parameters and try again"
            return cls.format_message(f"Invalid input: {message}",
                                      ErrorSeverity.ERROR, guidance)
        elif isinstance(error, KeyboardInterrupt):
            return cls.format_message("Operation interrupted by user", ErrorSeverity.WARNING)
        else:
            if hide_technical:
                return cls.format_message("Unexpected error occurred", ErrorSeverity.ERROR,
                                          "Check logs for details or run with --verbose")
            else:
                return cls.format_message(f"Unexpected {error_type}: {message}",
                                          ErrorSeverity.ERROR)


class ParameterValidator:
    """Parameter validation with range checks and user guidance"""

    @staticmethod
    def validate_buffer_size(size: int, parameter_name: str = "buffer") -> int:
        """Validate output queue capacity"""
        if isinstance(size, bool) or not isinstance(size, int):
            raise ValidationError(
                f"Buffer size must be an integer, got {size!r}",
                parameter_name,
                "Use a whole number of records (e.g., 1000)"
            )

        if size < 1:
            raise ValidationError(
                f"Buffer size must be at least 1, got {size}",
                parameter_name,
                "The output queue is bounded; use a positive capacity (e.g., 1000)"
            )

        if size > 1000000:
            logger = logging.getLogger('ris-live.validation')
            logger.warning(f"Very large buffer ({size}) - backpressure will take long to apply")

        return size

    @staticmethod
    def validate_timeout(timeout: float, parameter_name: str = "timeout") -> float:
        """Validate timeout values with reasonable ranges"""
        if timeout <= 0:
            raise ValidationError(
                f"Timeout must be positive (>0 seconds), got {timeout}",
                parameter_name,
                "Use a positive number for timeout values (e.g., 30)"
            )
        return timeout

    @staticmethod
    def validate_file_exists(file_path: Union[str, Path], parameter_name: str = "file") -> Path:
        """Validate that a file exists and is readable"""
        path = Path(file_path)

        if not path.exists():
            raise ValidationError(
                f"File does not exist: {path}",
                parameter_name,
                "Check the file path and ensure the file exists"
            )

        if not path.is_file():
            raise ValidationError(
                f"Path is not a file: {path}",
                parameter_name,
                "Provide a path to a file, not a directory"
            )

        if not os.access(path, os.R_OK):
            raise ValidationError(
                f"Cannot read file: {path}",
                parameter_name,
                "Check file permissions or run with appropriate privileges"
            )

        return path

    @staticmethod
    def validate_as_number(as_number: Union[str, int],
                           parameter_name: str = "as_number") -> int:
        """Validate AS numbers with RFC compliance"""
        if isinstance(as_number, bool):
            raise ValidationError(
                f"AS number must be an integer, got '{as_number}'",
                parameter_name,
                "Use a numeric AS number (e.g., 12345 or AS12345)"
            )
        try:
            if isinstance(as_number, str):
                # Handle "AS12345" format
                as_number = as_number.strip()
                if as_number.upper().startswith('AS'):
                    as_number = as_number[2:]
            as_num = int(as_number)
        except (ValueError, TypeError):
            raise ValidationError(
                f"AS number must be an integer, got '{as_number}'",
                parameter_name,
                "Use a numeric AS number (e.g., 12345 or AS12345)"
            )

        # RFC 4271 / RFC 6793: AS numbers are 32-bit unsigned integers
        if not (0 <= as_num <= 4294967295):
            raise ValidationError(
                f"AS number out of valid range (0-4294967295), got {as_num}",
                parameter_name,
                "Use a valid 32-bit AS number"
            )

        return as_num


def handle_errors(logger_name: str = None, hide_technical: bool = True):
    """Decorator for standardized error handling in command functions"""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = logging.getLogger(logger_name or f'ris-live.{func.__name__}')

            try:
                return func(*args, **kwargs)
            except RisLiveError as e:
                logger.error(f"{e.severity.title()} in {func.__name__}: {e.message}")
                print(ErrorFormatter.format_error(e, hide_technical), file=sys.stderr)

                if e.severity == ErrorSeverity.FATAL:
                    return 2
                elif e.severity == ErrorSeverity.ERROR:
                    return 1
                else:
                    return 0

            except KeyboardInterrupt:
                logger.info(f"Command {func.__name__} interrupted by user")
                print(ErrorFormatter.format_message("Operation interrupted by user",
                                                    ErrorSeverity.WARNING), file=sys.stderr)
                return 130

            except Exception as e:
                logger.error(f"Unexpected error in {func.__name__}: {e}")
                print(ErrorFormatter.format_error(e, hide_technical), file=sys.stderr)
                return 1

        return wrapper
    return decorator


def print_success(message: str):
    """Print a success message with consistent formatting"""
    print(ErrorFormatter.format_message(message, ErrorSeverity.INFO), file=sys.stderr)


def print_warning(message: str, guidance: str = None):
    """Print a warning message with consistent formatting"""
    print(ErrorFormatter.format_message(message, ErrorSeverity.WARNING, guidance), file=sys.stderr)


def print_error(message: str, guidance: str = None):
    """Print an error message with consistent formatting"""
    print(ErrorFormatter.format_message(message, ErrorSeverity.ERROR, guidance), file=sys.stderr)


def validate_common_args(args):
    """Validate common command-line arguments"""
    validator = ParameterValidator()

    if getattr(args, 'buffer', None) is not None:
        args.buffer = validator.validate_buffer_size(args.buffer, "buffer")

    if getattr(args, 'timeout', None) is not None:
        args.timeout = validator.validate_timeout(args.timeout, "timeout")

    if getattr(args, 'file', None):
        validator.validate_file_exists(args.file, "file")

    if getattr(args, 'filter_file', None):
        validator.validate_file_exists(args.filter_file, "filter_file")

    if getattr(args, 'count', None) is not None and args.count < 1:
        raise ValidationError(
            f"Count must be positive, got {args.count}",
            "count",
            "Omit --count to stream until the feed ends"
        )

    return args


__all__ = [
    'ErrorSeverity', 'RisLiveError', 'ValidationError', 'ConfigurationError',
    'TransportError', 'DecodeError', 'DigestError', 'PrefixParseError',
    'ErrorFormatter', 'ParameterValidator', 'handle_errors',
    'print_success', 'print_warning', 'print_error', 'validate_common_args'
]
