#!/usr/bin/env python3
"""
Filter file loading.

A filter file is YAML (or JSON, which YAML also accepts) with any of the
keys as_path, invalid_transit_as, origins and prefixes:

    as_path: [3356, 1299]
    invalid_transit_as: [64512]
    origins: [igp]
    prefixes:
      - 192.0.2.0/24
      - 2001:db8::/32
"""

import logging
from pathlib import Path
from typing import Union

import yaml

from ris_live.utils.config import FilterSettings
from ris_live.utils.error_handling import ConfigurationError

logger = logging.getLogger(__name__)

FILTER_KEYS = ('as_path', 'invalid_transit_as', 'origins', 'prefixes')


def load_filter_file(path: Union[str, Path]) -> FilterSettings:
    """
    Load filter criteria from a YAML or JSON file.

    Raises:
        ConfigurationError: If the file cannot be read or has the wrong shape
    """
    path = Path(path)
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read filter file {path}: {e}",
                                 guidance="Check the --filter-file path")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Filter file {path} is not valid YAML/JSON",
                                 technical_details=str(e))

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Filter file {path} must contain a mapping",
                                 guidance=f"Use the keys: {', '.join(FILTER_KEYS)}")

    unknown = sorted(set(data) - set(FILTER_KEYS))
    if unknown:
        logger.warning(f"Ignoring unknown filter keys in {path}: {', '.join(unknown)}")

    settings = FilterSettings()
    for key in FILTER_KEYS:
        if key not in data:
            continue
        value = data[key]
        if value is None:
            value = []
        elif not isinstance(value, list):
            value = [value]
        setattr(settings, key, value)

    logger.debug(f"Loaded filter criteria from {path}")
    return settings
