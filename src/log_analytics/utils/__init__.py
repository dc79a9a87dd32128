"""
Utility modules for Log Analytics.
"""

from .exceptions import (
    LogAnalyticsError,
    ConfigurationError,
    LogParserError,
    RulePatternError,
    SourceUnavailableError,
    AggregationError,
    ReportError,
)
from .helpers import (
    load_config,
    iter_file_lines,
    decode_line,
    iter_raw_lines,
    format_number,
)

__all__ = [
    "LogAnalyticsError",
    "ConfigurationError",
    "LogParserError",
    "RulePatternError",
    "SourceUnavailableError",
    "AggregationError",
    "ReportError",
    "load_config",
    "iter_file_lines",
    "decode_line",
    "iter_raw_lines",
    "format_number",
]
