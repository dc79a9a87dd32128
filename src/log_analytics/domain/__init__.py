"""
Domain types for the log analytics pipeline.
"""

from .records import (
    LogLine,
    ExtractedRecord,
    ReportEntry,
    ReportSection,
    Report,
    SectionKind,
)

__all__ = [
    "LogLine",
    "ExtractedRecord",
    "ReportEntry",
    "ReportSection",
    "Report",
    "SectionKind",
]
