"""
Custom exceptions for Log Analytics.
"""

from typing import Optional


class LogAnalyticsError(Exception):
    """Base exception for all Log Analytics errors."""

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ConfigurationError(LogAnalyticsError):
    """Exception raised for configuration-related errors."""

    pass


class LogParserError(LogAnalyticsError):
    """Exception raised by pipeline parsing operations."""

    pass


class RulePatternError(LogParserError):
    """Exception raised for classification rule pattern errors."""

    def __init__(self, rule_name: str, pattern: str, reason: str = "") -> None:
        message = f"Invalid pattern for rule '{rule_name}': {pattern}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
        self.rule_name = rule_name
        self.pattern = pattern
        self.reason = reason


class SourceUnavailableError(LogParserError):
    """Exception raised when an input source cannot be opened."""

    def __init__(self, source: str, reason: str = "") -> None:
        message = f"Source unavailable: {source}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.source = source
        self.reason = reason


class AggregationError(LogAnalyticsError):
    """Exception raised by aggregator operations."""

    pass


class ReportError(LogAnalyticsError):
    """Exception raised while building or formatting reports."""

    pass
