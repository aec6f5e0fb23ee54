#!/usr/bin/env python3
"""
Configuration Management for RIS Live

Provides centralized configuration handling with:
- Environment variable support
- Configuration file support
- Default values and validation

The resulting configuration is an explicit value handed to the ingestion
loop; nothing here is consulted implicitly at runtime.
"""

import os
import json
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Optional, List
import logging

DEFAULT_RIS_LIVE_URL = "https://ris-live.ripe.net/v1/stream/?format=json"
DEFAULT_CLIENT = "python-rislive"
DIGEST_ERROR_POLICIES = ("abort", "drop")


def _env_list(name: str) -> Optional[List[str]]:
    value = os.getenv(name)
    if not value:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class StreamConfig:
    """Feed source and output queue configuration"""

    url: str = DEFAULT_RIS_LIVE_URL
    file: Optional[str] = None
    client: str = DEFAULT_CLIENT
    buffer_size: int = 1000
    connect_timeout: float = 30.0
    on_digest_error: str = "abort"  # abort, drop

    def __post_init__(self):
        """Load from environment variables if set"""
        if os.getenv("RIS_LIVE_URL"):
            self.url = os.getenv("RIS_LIVE_URL")
        if os.getenv("RIS_LIVE_FILE"):
            self.file = os.getenv("RIS_LIVE_FILE")
        if os.getenv("RIS_LIVE_CLIENT"):
            self.client = os.getenv("RIS_LIVE_CLIENT")
        if os.getenv("RIS_LIVE_BUFFER"):
            try:
                self.buffer_size = int(os.getenv("RIS_LIVE_BUFFER"))
            except ValueError:
                pass
        if os.getenv("RIS_LIVE_CONNECT_TIMEOUT"):
            try:
                self.connect_timeout = float(os.getenv("RIS_LIVE_CONNECT_TIMEOUT"))
            except ValueError:
                pass
        if os.getenv("RIS_LIVE_ON_DIGEST_ERROR") in DIGEST_ERROR_POLICIES:
            self.on_digest_error = os.getenv("RIS_LIVE_ON_DIGEST_ERROR")

    @property
    def use_file(self) -> bool:
        """True when a local file overrides the remote feed"""
        return bool(self.file)


@dataclass
class FilterSettings:
    """Filter criteria as configured (converted to a RisFilter at session start)"""

    as_path: List[int] = field(default_factory=list)
    invalid_transit_as: List[int] = field(default_factory=list)
    origins: List[str] = field(default_factory=list)
    prefixes: List[str] = field(default_factory=list)

    def __post_init__(self):
        """Load from environment variables if set"""
        as_path = _env_list("RIS_LIVE_FILTER_AS_PATH")
        if as_path is not None:
            self.as_path = as_path
        transit = _env_list("RIS_LIVE_FILTER_INVALID_TRANSIT")
        if transit is not None:
            self.invalid_transit_as = transit
        origins = _env_list("RIS_LIVE_FILTER_ORIGINS")
        if origins is not None:
            self.origins = origins
        prefixes = _env_list("RIS_LIVE_FILTER_PREFIXES")
        if prefixes is not None:
            self.prefixes = prefixes

    def to_filter(self):
        """Build the immutable RisFilter for a stream session"""
        from ris_live.filters import RisFilter
        return RisFilter.from_values(
            as_path=self.as_path,
            invalid_transit_as=self.invalid_transit_as,
            origins=self.origins,
            prefixes=self.prefixes,
        )

    def is_empty(self) -> bool:
        return not (self.as_path or self.invalid_transit_as or self.origins or self.prefixes)


@dataclass
class LoggingConfig:
    """Logging configuration"""

    level: str = "INFO"
    log_to_file: bool = False
    log_file: Optional[str] = None

    def __post_init__(self):
        """Load from environment variables if set"""
        if os.getenv("RIS_LIVE_LOG_LEVEL"):
            self.level = os.getenv("RIS_LIVE_LOG_LEVEL").upper()
        if os.getenv("RIS_LIVE_LOG_FILE"):
            self.log_file = os.getenv("RIS_LIVE_LOG_FILE")
            self.log_to_file = True


@dataclass
class RisLiveConfig:
    """Main configuration container"""

    stream: StreamConfig = None
    filters: FilterSettings = None
    logging: LoggingConfig = None

    def __post_init__(self):
        """Initialize subconfigs if not provided"""
        if self.stream is None:
            self.stream = StreamConfig()
        if self.filters is None:
            self.filters = FilterSettings()
        if self.logging is None:
            self.logging = LoggingConfig()


class ConfigManager:
    """Configuration management for RIS Live"""

    DEFAULT_CONFIG_PATHS = [
        Path.home() / ".config/ris-live/config.json",
        Path("/etc/ris-live/config.json"),
        Path("./ris-live.json"),
    ]

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration manager

        Args:
            config_path: Optional path to configuration file
        """
        self.logger = logging.getLogger(__name__)
        self.config_path = Path(config_path) if config_path else None
        self.config = RisLiveConfig()

        self._load_config()

    def _load_config(self):
        """Load configuration from file; environment is applied in __post_init__"""
        config_file = self._find_config_file()
        if config_file:
            try:
                self._load_from_file(config_file)
                self.logger.info(f"Loaded configuration from {config_file}")
            except (OSError, ValueError, TypeError) as e:
                self.logger.warning(f"Failed to load config file {config_file}: {e}")

    def _find_config_file(self) -> Optional[Path]:
        """Find configuration file in default locations"""
        if self.config_path:
            return self.config_path if self.config_path.exists() else None

        for path in self.DEFAULT_CONFIG_PATHS:
            if path.exists():
                return path

        return None

    def _load_from_file(self, config_path: Path):
        """Load configuration from JSON file"""
        with open(config_path, "r") as f:
            data = json.load(f)
        self._load_from_dict(data)

    def _load_from_dict(self, data: dict):
        """Load configuration from dictionary"""
        if "stream" in data:
            self.config.stream = StreamConfig(**data["stream"])

        if "filters" in data:
            self.config.filters = FilterSettings(**data["filters"])

        if "logging" in data:
            self.config.logging = LoggingConfig(**data["logging"])

    def save_config(self, config_path: Optional[Path] = None) -> Path:
        """
        Save current configuration to file

        Args:
            config_path: Path to save configuration (default: first default path)

        Returns:
            Path where configuration was saved
        """
        if config_path is None:
            config_path = self.DEFAULT_CONFIG_PATHS[0]
        config_path = Path(config_path)

        config_path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = {
            "stream": asdict(self.config.stream),
            "filters": asdict(self.config.filters),
            "logging": asdict(self.config.logging),
        }

        with open(config_path, "w") as f:
            json.dump(config_dict, f, indent=2)

        self.logger.info(f"Configuration saved to {config_path}")
        return config_path

    def get_config(self) -> RisLiveConfig:
        """Get current configuration"""
        return self.config

    def update_stream_config(self, **kwargs):
        """Update stream configuration, ignoring unset (None) values"""
        for key, value in kwargs.items():
            if value is not None and hasattr(self.config.stream, key):
                setattr(self.config.stream, key, value)

    def update_filter_config(self, **kwargs):
        """Update filter criteria, ignoring unset (None) values"""
        for key, value in kwargs.items():
            if value is not None and hasattr(self.config.filters, key):
                setattr(self.config.filters, key, value)

    @classmethod
    def validate_object(cls, data: dict) -> List[str]:
        """
        Validate configuration from dictionary without side effects

        Args:
            data: Configuration dictionary to validate

        Returns:
            List of validation error messages (empty if valid)
        """
        temp_manager = cls.__new__(cls)
        temp_manager.logger = logging.getLogger(__name__)
        temp_manager.config_path = None
        temp_manager.config = RisLiveConfig()

        try:
            temp_manager._load_from_dict(data)
        except TypeError as e:
            return [f"Failed to load configuration: {e}"]

        return temp_manager.validate_config()

    def validate_config(self) -> List[str]:
        """
        Validate configuration and return list of issues

        Returns:
            List of validation error messages
        """
        from ris_live.utils.error_handling import (
            ParameterValidator, ValidationError, PrefixParseError
        )
        from ris_live.validators.prefix import parse_prefix

        issues = []
        stream = self.config.stream

        if stream.use_file:
            if not Path(stream.file).is_file():
                issues.append(f"Feed file not found: {stream.file}")
        elif not stream.url.startswith(("http://", "https://")):
            issues.append(f"Feed URL must be http(s): {stream.url}")

        if not stream.client:
            issues.append("Client identifier is empty (set RIS_LIVE_CLIENT)")

        if isinstance(stream.buffer_size, bool) or not isinstance(stream.buffer_size, int):
            issues.append(f"buffer_size must be an integer, got {stream.buffer_size!r}")
        elif stream.buffer_size < 1:
            issues.append(f"Buffer size must be at least 1, got {stream.buffer_size}")

        if (isinstance(stream.connect_timeout, bool)
                or not isinstance(stream.connect_timeout, (int, float))):
            issues.append(f"connect_timeout must be a number, got {stream.connect_timeout!r}")
        elif stream.connect_timeout <= 0:
            issues.append(f"Connect timeout must be positive, got {stream.connect_timeout}")

        if stream.on_digest_error not in DIGEST_ERROR_POLICIES:
            issues.append(
                f"on_digest_error must be one of {', '.join(DIGEST_ERROR_POLICIES)}, "
                f"got {stream.on_digest_error}"
            )

        filters = self.config.filters
        for name, values in (("as_path", filters.as_path),
                             ("invalid_transit_as", filters.invalid_transit_as)):
            for value in values:
                try:
                    ParameterValidator.validate_as_number(value, name)
                except ValidationError as e:
                    issues.append(f"Filter {name}: {e.message}")

        for prefix in filters.prefixes:
            try:
                parse_prefix(prefix)
            except PrefixParseError as e:
                issues.append(f"Filter prefixes: {e.message}")

        level = self.config.logging.level.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            issues.append(f"Unknown log level: {self.config.logging.level}")

        return issues

    def print_config(self):
        """Print current configuration"""
        stream = self.config.stream
        filters = self.config.filters

        print("RIS Live Configuration:")
        print("  Stream:")
        if stream.use_file:
            print(f"    Source: file {stream.file}")
        else:
            print(f"    Source: {stream.url}")
        print(f"    Client: {stream.client}")
        print(f"    Buffer size: {stream.buffer_size}")
        print(f"    Connect timeout: {stream.connect_timeout}s")
        print(f"    On digest error: {stream.on_digest_error}")

        print("  Filters:")
        if filters.is_empty():
            print("    None (all records accepted)")
        else:
            print(f"    AS path fragment: {filters.as_path or 'Not set'}")
            print(f"    Invalid transit AS: {filters.invalid_transit_as or 'Not set'}")
            print(f"    Origins: {filters.origins or 'Not set'}")
            print(f"    Prefixes: {filters.prefixes or 'Not set'}")

        print("  Logging:")
        print(f"    Level: {self.config.logging.level}")
        print(f"    Log to file: {self.config.logging.log_to_file}")
        if self.config.logging.log_file:
            print(f"    Log file: {self.config.logging.log_file}")
