"""
Field extraction from matched lines.
"""

import math
import re
import logging
from datetime import datetime
from typing import Callable, Dict, Hashable, List, Optional, Pattern, Union

from ..utils.exceptions import ConfigurationError


logger = logging.getLogger(__name__)

Number = Union[int, float]

_INT_RE = re.compile(r"^[+-]?\d+$")
_CLOCK_RE = re.compile(r"(?<!\d)(\d{1,2}):(\d{2})(?::\d{2})?(?!\d)")
_PREFIX_SPLIT_RE = re.compile(r"[:.,]")

TIMESTAMP_FORMATS = [
    "%d/%b/%Y:%H:%M:%S %z",
    "%d/%b/%Y:%H:%M:%S",
]


def parse_number(value: Optional[str]) -> Optional[Number]:
    """
    Parse a numeric field.

    Returns None instead of a default for anything that is not a finite
    number, so unparseable values drop out of numeric aggregates.
    """
    if value is None:
        return None

    text = value.strip()
    if not text:
        return None

    if _INT_RE.match(text):
        return int(text)

    try:
        number = float(text)
    except ValueError:
        return None

    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_hour(timestamp: Optional[str]) -> Optional[int]:
    """
    Extract the hour of day from a timestamp.

    Understands Apache access log, ISO 8601 and syslog timestamps, falling
    back to the first HH:MM[:SS] clock token in the text.
    """
    if not timestamp:
        return None

    text = timestamp.strip()

    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(text, fmt).hour
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(text).hour
    except ValueError:
        pass

    clock = _CLOCK_RE.search(text)
    if clock:
        hour, minute = int(clock.group(1)), int(clock.group(2))
        if hour < 24 and minute < 60:
            return hour

    return None


def _to_int(value: str) -> Optional[int]:
    number = parse_number(value)
    if isinstance(number, int):
        return number
    return None


def _status_class(value: str) -> Optional[str]:
    status = _to_int(value)
    if status is None or not 100 <= status <= 599:
        return None
    return f"{status // 100}xx"


def _path(value: str) -> Optional[str]:
    path = value.split("?", 1)[0]
    return path or None


def _prefix(value: str) -> Optional[str]:
    prefix = _PREFIX_SPLIT_RE.split(value, 1)[0].strip()
    return prefix or None


KEY_TRANSFORMS: Dict[str, Callable[[str], Optional[Hashable]]] = {
    "str": lambda value: value,
    "int": _to_int,
    "hour": parse_hour,
    "status_class": _status_class,
    "path": _path,
    "prefix": _prefix,
    "lower": lambda value: value.lower(),
    "upper": lambda value: value.upper(),
}


def get_transform(name: str) -> Callable[[str], Optional[Hashable]]:
    """
    Look up a key transform by name.

    Raises:
        ConfigurationError: If the transform is unknown
    """
    try:
        return KEY_TRANSFORMS[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown key transform '{name}'", {"available": sorted(KEY_TRANSFORMS)}
        )


class FieldExtractor:
    """Pulls named fields out of line text."""

    @staticmethod
    def from_match(match: re.Match, fields: List[str]) -> Dict[str, str]:
        """
        Collect the declared fields that participated in a match.

        Groups that did not participate are left out entirely rather than
        reported as empty strings.
        """
        groups = match.groupdict()
        return {name: groups[name] for name in fields if groups.get(name) is not None}

    def extract(
        self, text: str, pattern: Pattern, fields: Optional[List[str]] = None
    ) -> Optional[Dict[str, str]]:
        """
        Extract fields from a line.

        Args:
            text: Line text
            pattern: Compiled extraction pattern with named groups
            fields: Field names to report (all named groups when omitted)

        Returns:
            Mapping of field name to captured text, or None if the pattern
            does not match
        """
        match = pattern.search(text)
        if match is None:
            return None

        if fields is None:
            fields = list(pattern.groupindex)
        return self.from_match(match, fields)
