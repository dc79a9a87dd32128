"""
Report formatting for terminal and machine consumption.
"""

import json
import re
from typing import Any, List

from ..domain.records import Report, ReportSection, SectionKind
from ..utils.exceptions import ReportError
from ..utils.helpers import format_number
from .builder import is_undefined


HEADER_WIDTH = 60
FORMATS = ("text", "json", "kv")


def _format_value(value: Any) -> str:
    if is_undefined(value):
        return "n/a"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return format_number(value)
    return str(value)


def _format_percentage(value: Any) -> str:
    if value is None or is_undefined(value):
        return "n/a"
    return f"{value:.2f}%"


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", text.lower()).strip("_")


class ReportFormatter:
    """Renders reports as plain text, JSON or key=value records."""

    def format(self, report: Report, output_format: str = "text") -> str:
        """
        Render a report.

        Raises:
            ReportError: If the format is unknown
        """
        if output_format == "text":
            return self.format_text(report)
        if output_format == "json":
            return self.format_json(report)
        if output_format == "kv":
            return self.format_kv(report)
        raise ReportError(f"Unknown output format '{output_format}'", {"available": list(FORMATS)})

    def format_text(self, report: Report) -> str:
        lines = [f"# {report.title}", "=" * HEADER_WIDTH]

        for key, value in report.summary.items():
            if key.endswith("_severity"):
                continue
            label = key.replace("_", " ").capitalize()
            severity_key = f"{key}_severity"
            if severity_key in report.summary:
                # Rates carry a severity label; totals are plain figures
                text = _format_percentage(value)
                severity = report.summary[severity_key]
                if severity:
                    text += f" [{severity}]"
            else:
                text = _format_value(value)
            lines.append(f"- {label}: {text}")

        for section in report.sections:
            lines.append("")
            lines.append(f"## {section.title}")
            lines.extend(self._section_lines(section))

        return "\n".join(lines)

    def _section_lines(self, section: ReportSection) -> List[str]:
        lines = []

        if not section.entries:
            lines.append("  (no data)")

        if section.kind is SectionKind.HISTOGRAM:
            key_width = max((len(str(entry.key)) for entry in section.entries), default=0)
            for entry in section.entries:
                lines.append(f"  {str(entry.key).rjust(key_width)}: {entry.bar} {entry.count}")
        elif section.kind is SectionKind.SUMS:
            for entry in section.entries:
                lines.append(
                    f"  {entry.key}: {_format_value(entry.total)} "
                    f"({_format_percentage(entry.percentage)}, {entry.count} records)"
                )
        elif section.kind is SectionKind.FLAGGED:
            for entry in section.entries:
                lines.append(f"  {entry.key}: {entry.count}")
        else:
            for entry in section.entries:
                lines.append(
                    f"  {entry.key}: {entry.count} ({_format_percentage(entry.percentage)})"
                )

        for note in section.notes:
            lines.append(f"  * {note}")

        return lines

    def format_json(self, report: Report) -> str:
        return json.dumps(report.to_dict(), indent=2, ensure_ascii=False, default=str)

    def format_kv(self, report: Report) -> str:
        """One `name=value` record per line."""
        lines = []

        for key, value in report.summary.items():
            lines.append(f"summary.{key}={'nan' if is_undefined(value) else value}")

        for section in report.sections:
            prefix = _slug(section.title)
            for entry in section.entries:
                lines.append(f"{prefix}.{entry.key}.count={entry.count}")
                if section.kind is SectionKind.SUMS:
                    lines.append(f"{prefix}.{entry.key}.sum={entry.total:g}")

        return "\n".join(lines)
