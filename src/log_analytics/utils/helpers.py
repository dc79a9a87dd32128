"""
Helper utilities for Log Analytics.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Any, Iterator, Tuple, Union

import yaml

from .exceptions import ConfigurationError, SourceUnavailableError


logger = logging.getLogger(__name__)


def load_config(config_path: Union[str, Path], config_type: str = "auto") -> Dict[str, Any]:
    """
    Load configuration from file.

    Args:
        config_path: Path to configuration file
        config_type: Type of config file ('json', 'yaml', 'auto')

    Returns:
        Configuration dictionary

    Raises:
        ConfigurationError: If configuration cannot be loaded
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    if config_type == "auto":
        config_type = config_path.suffix.lower().lstrip(".")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            if config_type in ["json"]:
                data = json.load(f)
            elif config_type in ["yaml", "yml"]:
                data = yaml.safe_load(f)
            else:
                raise ConfigurationError(f"Unsupported config type: {config_type}")
    except ConfigurationError:
        raise
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load config from {config_path}: {str(e)}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration root must be a mapping: {config_path}",
            {"type": type(data).__name__},
        )
    return data


def decode_line(raw: Union[bytes, str], encoding: str = "utf-8") -> Tuple[str, bool]:
    """
    Decode one raw line.

    Malformed bytes are replaced rather than aborting the read, so one bad
    line never stops the rest of the input from being processed.

    Returns:
        (text, whether any bytes had to be replaced)
    """
    if isinstance(raw, str):
        return raw, False

    try:
        return raw.decode(encoding), False
    except UnicodeDecodeError:
        return raw.decode(encoding, errors="replace"), True


def iter_raw_lines(path: Union[str, Path]) -> Iterator[bytes]:
    """
    Stream undecoded lines from a file one at a time.

    Raises:
        SourceUnavailableError: If the file does not exist or cannot be opened
    """
    path = Path(path)
    if not path.is_file():
        raise SourceUnavailableError(str(path), "no such file")

    try:
        handle = open(path, "rb")
    except OSError as e:
        raise SourceUnavailableError(str(path), str(e))

    with handle:
        yield from handle


def iter_file_lines(path: Union[str, Path], encoding: str = "utf-8") -> Iterator[str]:
    """
    Stream decoded lines from a file one at a time.

    Raises:
        SourceUnavailableError: If the file does not exist or cannot be opened
    """
    for raw_line in iter_raw_lines(path):
        text, _ = decode_line(raw_line, encoding)
        yield text


def format_number(value: Union[int, float]) -> str:
    """Format a number with thousands separators (1234567 -> '1,234,567')."""
    if isinstance(value, float) and not value.is_integer():
        return f"{value:,.2f}"
    return f"{int(value):,}"
