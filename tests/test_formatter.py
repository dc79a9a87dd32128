"""
Tests for ReportFormatter.
"""

import json

import pytest

from log_analytics.domain.records import Report, ReportEntry, ReportSection, SectionKind
from log_analytics.report.builder import UNDEFINED
from log_analytics.report.formatter import ReportFormatter
from log_analytics.utils.exceptions import ReportError


@pytest.fixture
def report():
    return Report(
        title="Access Log Analysis Report",
        summary={
            "total_lines": 1500,
            "matched_lines": 3,
            "error_rate": 7.5,
            "error_rate_severity": "WARNING",
        },
        sections=[
            ReportSection(
                title="HTTP Status Codes",
                kind=SectionKind.RANKED,
                entries=[
                    ReportEntry(key=200, count=2, percentage=66.67),
                    ReportEntry(key=404, count=1, percentage=33.33),
                ],
            ),
            ReportSection(
                title="Hourly Traffic",
                kind=SectionKind.HISTOGRAM,
                entries=[
                    ReportEntry(key=9, count=1, bar="██"),
                    ReportEntry(key=10, count=2, bar="████"),
                ],
                notes=["Peak: 10 (2)"],
            ),
            ReportSection(
                title="Bytes by Path",
                kind=SectionKind.SUMS,
                entries=[ReportEntry(key="/a", count=3, total=35, percentage=100.0)],
            ),
            ReportSection(title="Suspicious IPs", kind=SectionKind.FLAGGED, notes=["No keys above 100"]),
        ],
    )


@pytest.fixture
def formatter():
    return ReportFormatter()


class TestTextFormat:
    """Test plain text rendering."""

    def test_header_and_summary(self, formatter, report):
        text = formatter.format(report)
        lines = text.splitlines()

        assert lines[0] == "# Access Log Analysis Report"
        assert lines[1] == "=" * 60
        assert "- Total lines: 1,500" in lines
        assert "- Error rate: 7.50% [WARNING]" in lines

    def test_ranked_section(self, formatter, report):
        text = formatter.format_text(report)

        assert "## HTTP Status Codes" in text
        assert "  200: 2 (66.67%)" in text
        assert "  404: 1 (33.33%)" in text

    def test_histogram_section(self, formatter, report):
        text = formatter.format_text(report)

        assert "   9: ██ 1" in text
        assert "  10: ████ 2" in text
        assert "  * Peak: 10 (2)" in text

    def test_sums_and_empty_sections(self, formatter, report):
        text = formatter.format_text(report)

        assert "  /a: 35 (100.00%, 3 records)" in text
        assert "  (no data)" in text
        assert "  * No keys above 100" in text

    def test_undefined_rate(self, formatter):
        report = Report(
            title="Empty",
            summary={"total_lines": 0, "error_rate": UNDEFINED, "error_rate_severity": "OK"},
        )

        assert "- Error rate: n/a [OK]" in formatter.format_text(report)

    def test_totals_are_not_percentages(self, formatter):
        report = Report(
            title="Totals",
            summary={
                "unique_ips": 1234,
                "transfer_mb": 1.5,
                "avg_request_kb": UNDEFINED,
                "error_rate": 2.0,
                "error_rate_severity": "OK",
            },
        )
        lines = formatter.format_text(report).splitlines()

        assert "- Unique ips: 1,234" in lines
        assert "- Transfer mb: 1.50" in lines
        assert "- Avg request kb: n/a" in lines
        assert "- Error rate: 2.00% [OK]" in lines


class TestStructuredFormats:
    """Test JSON and key=value rendering."""

    def test_json(self, formatter, report):
        data = json.loads(formatter.format(report, "json"))

        assert data["title"] == "Access Log Analysis Report"
        assert data["summary"]["error_rate"] == 7.5
        assert data["sections"][0]["entries"][0] == {
            "key": 200,
            "count": 2,
            "total": 0.0,
            "percentage": 66.67,
        }

    def test_json_undefined_is_null(self, formatter):
        report = Report(title="Empty", summary={"error_rate": UNDEFINED})
        data = json.loads(formatter.format_json(report))
        assert data["summary"]["error_rate"] is None

    def test_kv(self, formatter, report):
        lines = formatter.format(report, "kv").splitlines()

        assert "summary.total_lines=1500" in lines
        assert "http_status_codes.200.count=2" in lines
        assert "bytes_by_path./a.sum=35" in lines

    def test_unknown_format(self, formatter, report):
        with pytest.raises(ReportError):
            formatter.format(report, "xml")
