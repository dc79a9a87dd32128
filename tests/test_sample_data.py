"""
Tests for practice data generation.
"""

from datetime import datetime

import pytest

from log_analytics.log_parser.parser import LogPipeline
from log_analytics.sample_data import DataGenerator, SAMPLE_ACCESS_LINES, sample_lines


@pytest.fixture
def generator():
    return DataGenerator(seed=42, now=datetime(2024, 1, 15, 12, 0, 0))


class TestDataGenerator:
    """Test generated log lines."""

    def test_reproducible(self):
        now = datetime(2024, 1, 15, 12, 0, 0)
        first = list(DataGenerator(seed=7, now=now).access_log_lines(20))
        second = list(DataGenerator(seed=7, now=now).access_log_lines(20))

        assert first == second

    @pytest.mark.parametrize(
        "preset, method",
        [
            ("access", "access_log_lines"),
            ("app", "app_log_lines"),
        ],
    )
    def test_generated_lines_are_recognized(self, generator, preset, method):
        """Every generated line is picked up by its matching preset."""
        lines = list(getattr(generator, method)(50))
        pipeline = LogPipeline(preset=preset)

        stats = pipeline.process_lines(lines)

        assert stats["total_lines"] == 50
        assert stats["unmatched_lines"] == 0
        assert stats["extraction_failures"] == 0

    def test_generated_app_errors_have_hours(self, generator):
        pipeline = LogPipeline(preset="app")
        pipeline.process_lines(generator.app_log_lines(100))

        error_hours = pipeline.aggregator.get("error_hours")
        assert error_hours.missing == 0
        assert all(0 <= hour < 24 for hour in error_hours.keys())

    def test_syslog_lines_keep_message(self, generator):
        for line in generator.syslog_lines(10):
            assert line.split(" ")[3] == "server1"

    def test_write_all(self, generator, tmp_path):
        written = generator.write_all(tmp_path / "out", lines=3)

        assert [path.name for path in written] == ["access.log", "error.log", "syslog.log"]
        assert all(len(path.read_text().splitlines()) == 3 for path in written)


class TestSampleLines:
    """Test fallback samples."""

    def test_known_preset(self):
        assert sample_lines("access") == SAMPLE_ACCESS_LINES

    def test_unknown_preset_uses_access(self):
        assert sample_lines("nginx") == SAMPLE_ACCESS_LINES

    def test_returns_copy(self):
        lines = sample_lines("access")
        lines.append("extra")

        assert len(sample_lines("access")) == len(SAMPLE_ACCESS_LINES)
