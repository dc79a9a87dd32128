"""
Tests for classification rules and the rule table.
"""

import re

import pytest

from log_analytics.config import RuleConfig
from log_analytics.log_parser.patterns import ClassificationRule, RuleManager, parse_regex_flags
from log_analytics.utils.exceptions import RulePatternError


class TestClassificationRule:
    """Test single rule behavior."""

    def test_match_is_substring_search(self):
        """A pattern matches inside a larger token."""
        rule = ClassificationRule("error", r"ERROR")

        assert rule.match("2024-01-01 ERRORS happened")
        assert rule.match("ERROR")
        assert rule.match("no problems here") is None

    def test_case_sensitivity_is_preserved(self):
        """Patterns are case sensitive unless IGNORECASE is given."""
        strict = ClassificationRule("error", r"ERROR")
        relaxed = ClassificationRule("error", r"ERROR", flags=re.IGNORECASE)

        assert strict.match("error in module") is None
        assert relaxed.match("error in module")

    def test_anchoring_is_preserved(self):
        """Anchored patterns only match at the anchor."""
        rule = ClassificationRule("starts", r"^GET")

        assert rule.match("GET /index")
        assert rule.match("POST /GET") is None

    def test_invalid_pattern(self):
        """Invalid regex raises RulePatternError."""
        with pytest.raises(RulePatternError) as exc_info:
            ClassificationRule("broken", r"(unclosed")

        assert exc_info.value.rule_name == "broken"

    def test_fields_default_to_named_groups(self):
        """Without a field list every named group is reported."""
        rule = ClassificationRule("req", r"(?P<method>GET|POST) (?P<path>\S+)")
        assert rule.fields == ["method", "path"]

    def test_fields_come_from_extract_pattern(self):
        """With an extract pattern its named groups are used."""
        rule = ClassificationRule("error", r"ERROR", extract=r"ERROR: (?P<message>.+)")
        assert rule.fields == ["message"]
        assert rule.extractor is not None

    def test_declared_field_without_group(self):
        """Declaring a field the pattern cannot capture is an error."""
        with pytest.raises(RulePatternError):
            ClassificationRule("req", r"(?P<path>\S+)", fields=["path", "status"])

    def test_from_config(self):
        """Rules build from configuration entries."""
        config = RuleConfig(
            name="bot", pattern="bot|crawler", flags=["ignorecase"], severity="INFO"
        )

        rule = ClassificationRule.from_config(config)

        assert rule.flags == re.IGNORECASE
        assert rule.severity == "INFO"
        assert rule.match("Googlebot/2.1")
        assert rule.match("CRAWLER")


class TestRuleManager:
    """Test the rule table."""

    @pytest.fixture
    def manager(self):
        return RuleManager(
            [
                RuleConfig(name="error", pattern="ERROR"),
                RuleConfig(name="database", pattern="database", flags=["IGNORECASE"]),
            ]
        )

    def test_rules_keep_order(self, manager):
        """Rules are evaluated in configuration order."""
        assert [rule.name for rule in manager.rules] == ["error", "database"]
        assert len(manager) == 2

    def test_duplicate_rule(self, manager):
        """Adding a rule with an existing name fails."""
        with pytest.raises(RulePatternError):
            manager.add_rule(ClassificationRule("error", "FATAL"))

    def test_remove_rule(self, manager):
        """Rules can be removed by name."""
        assert manager.remove_rule("error") is True
        assert manager.remove_rule("error") is False
        assert manager.get_rule("error") is None

    def test_validate_rules_against_samples(self, manager):
        """Rules that never match the samples are reported."""
        errors = manager.validate_rules(["ERROR: disk full"])

        assert errors == ["Rule 'database' matches none of the sample lines"]

    def test_validate_empty_table(self):
        """An empty rule table is invalid."""
        assert RuleManager().validate_rules() == ["No classification rules defined"]

    def test_rule_stats(self, manager):
        """Rule statistics describe the table."""
        stats = manager.get_rule_stats()

        assert stats["total_rules"] == 2
        assert stats["rules_with_extractors"] == 0
        assert stats["rules"]["database"]["pattern"] == "database"


def test_parse_regex_flags():
    """Known flag names combine, unknown ones are ignored."""
    flags = parse_regex_flags(["IGNORECASE", "MULTILINE", "BOGUS"])
    assert flags == re.IGNORECASE | re.MULTILINE
