"""
Report module for ranking aggregates and rendering reports.
"""

from .builder import (
    ReportBuilder,
    SeverityThreshold,
    UNDEFINED,
    classify_severity,
    check_thresholds,
    is_undefined,
    round_half_away,
)
from .formatter import ReportFormatter

__all__ = [
    "ReportBuilder",
    "SeverityThreshold",
    "UNDEFINED",
    "classify_severity",
    "check_thresholds",
    "is_undefined",
    "round_half_away",
    "ReportFormatter",
]
