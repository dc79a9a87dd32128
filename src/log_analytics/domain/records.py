"""
Record types flowing through the analytics pipeline.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Hashable, List, Optional


class SectionKind(Enum):
    """How a report section is rendered."""

    RANKED = "ranked"
    HISTOGRAM = "histogram"
    SUMS = "sums"
    FLAGGED = "flagged"


@dataclass(frozen=True)
class LogLine:
    """A raw line and its 1-based position in the stream."""

    number: int
    text: str


@dataclass(frozen=True)
class ExtractedRecord:
    """Fields pulled from one line by one rule."""

    rule_name: str
    line_number: int
    fields: Dict[str, str] = field(default_factory=dict)
    extraction_failed: bool = False

    def get(self, name: str) -> Optional[str]:
        """Return a field value, or None when the field is absent."""
        return self.fields.get(name)


@dataclass(frozen=True)
class ReportEntry:
    """One ranked row of a report section."""

    key: Hashable
    count: int = 0
    total: float = 0.0
    percentage: Optional[float] = None
    bar: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        percentage = self.percentage
        if percentage is not None and math.isnan(percentage):
            percentage = None
        return {
            "key": self.key,
            "count": self.count,
            "total": self.total,
            "percentage": percentage,
        }


@dataclass(frozen=True)
class ReportSection:
    """A labeled block of a report."""

    title: str
    kind: SectionKind
    entries: List[ReportEntry] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "kind": self.kind.value,
            "entries": [entry.to_dict() for entry in self.entries],
            "notes": list(self.notes),
        }


@dataclass(frozen=True)
class Report:
    """Read-only snapshot of aggregates, ready for formatting."""

    title: str
    sections: List[ReportSection] = field(default_factory=list)
    summary: Dict[str, Any] = field(default_factory=dict)

    def section(self, title: str) -> Optional[ReportSection]:
        """Find a section by title."""
        for section in self.sections:
            if section.title == title:
                return section
        return None

    def to_dict(self) -> Dict[str, Any]:
        summary = {}
        for key, value in self.summary.items():
            if isinstance(value, float) and math.isnan(value):
                value = None
            summary[key] = value
        return {
            "title": self.title,
            "summary": summary,
            "sections": [section.to_dict() for section in self.sections],
        }
