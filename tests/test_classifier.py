"""
Tests for LineClassifier.
"""

import pytest

from log_analytics.domain.records import LogLine
from log_analytics.log_parser.classifier import LineClassifier
from log_analytics.log_parser.patterns import ClassificationRule


@pytest.fixture
def classifier():
    """Classifier with overlapping rules."""
    return LineClassifier(
        [
            ClassificationRule("error", r"ERROR", extract=r"ERROR[:\]] ?(?P<message>.+)$"),
            ClassificationRule("database", r"database", flags=0),
            ClassificationRule("blank", r"^$"),
        ]
    )


class TestLineClassifier:
    """Test classification semantics."""

    def test_line_matches_multiple_rules(self, classifier):
        """Every matching rule produces its own record."""
        line = LogLine(1, "ERROR: lost database connection")

        records = classifier.classify(line)

        assert [r.rule_name for r in records] == ["error", "database"]
        assert records[0].fields == {"message": "lost database connection"}
        assert all(r.line_number == 1 for r in records)

    def test_no_match(self, classifier):
        assert classifier.classify(LogLine(3, "all good")) == []

    def test_empty_line_is_evaluated(self, classifier):
        """Empty lines still go through the same pattern semantics."""
        records = classifier.classify(LogLine(2, ""))
        assert [r.rule_name for r in records] == ["blank"]

    def test_substring_of_larger_token(self, classifier):
        records = classifier.classify(LogLine(4, "MYERRORS"))
        assert [r.rule_name for r in records] == ["error"]

    def test_extraction_failure_is_distinct(self, classifier):
        """A rule can match while its extractor does not."""
        records = classifier.classify(LogLine(5, "ERRORS everywhere"))

        assert len(records) == 1
        assert records[0].extraction_failed is True
        assert records[0].fields == {}

    def test_rule_order_only_affects_output_order(self):
        """Reordering rules changes record order, not which rules match."""
        rules = [
            ClassificationRule("a", "x"),
            ClassificationRule("b", "y"),
        ]
        forward = LineClassifier(rules).classify(LogLine(1, "xy"))
        backward = LineClassifier(list(reversed(rules))).classify(LogLine(1, "xy"))

        assert [r.rule_name for r in forward] == ["a", "b"]
        assert [r.rule_name for r in backward] == ["b", "a"]

    def test_classification_is_pure(self, classifier):
        """Classifying the same line twice gives identical records."""
        line = LogLine(7, "ERROR: database down")
        assert classifier.classify(line) == classifier.classify(line)

    def test_matches(self, classifier):
        assert classifier.matches("database", "database") is True
        assert classifier.matches("database", "unknown") is False
