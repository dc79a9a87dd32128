"""
Tests for aggregates and the aggregator.
"""

import pytest

from log_analytics.aggregation.aggregator import (
    Aggregate,
    AggregateBinding,
    Aggregator,
    RULE_MATCHES,
)
from log_analytics.domain.records import ExtractedRecord, LogLine
from log_analytics.log_parser.classifier import LineClassifier
from log_analytics.log_parser.patterns import ClassificationRule
from log_analytics.utils.exceptions import AggregationError, ConfigurationError


@pytest.fixture
def request_bindings():
    """Bindings for `path status bytes` lines."""
    return [
        AggregateBinding("status", "request", key_field="status", key_transform="int"),
        AggregateBinding("bytes_by_path", "request", key_field="path", sum_field="bytes"),
    ]


@pytest.fixture
def request_classifier():
    return LineClassifier(
        [ClassificationRule("request", r"^(?P<path>\S+) (?P<status>\d+) (?P<bytes>\S+)$")]
    )


def fold_lines(aggregator, classifier, lines):
    for number, text in enumerate(lines, start=1):
        for record in classifier.classify(LogLine(number, text)):
            aggregator.fold(record)


class TestAggregate:
    """Test a single aggregate."""

    def test_increment_creates_key(self):
        aggregate = Aggregate("status")

        aggregate.increment(200)
        aggregate.increment(200)
        aggregate.increment(404)

        assert aggregate.count(200) == 2
        assert aggregate.count(404) == 1
        assert aggregate.count(500) == 0
        assert aggregate.total_count == 3

    def test_accumulate_is_independent_of_count(self):
        aggregate = Aggregate("bytes")

        aggregate.accumulate("A", 10)
        aggregate.accumulate("A", 25)

        assert aggregate.sum("A") == 35
        assert aggregate.count("A") == 0
        assert "A" in aggregate

    def test_first_occurrence_order(self):
        aggregate = Aggregate("ips")
        for key in ["b", "a", "b", "c"]:
            aggregate.increment(key)

        assert aggregate.keys() == ["b", "a", "c"]
        assert aggregate.order_of("c") == 2

    def test_merge(self):
        left = Aggregate("status")
        right = Aggregate("status")
        left.increment(200)
        left.accumulate(200, 5)
        right.increment(200)
        right.increment(404)
        right.missing = 2

        left.merge(right)

        assert left.count(200) == 2
        assert left.count(404) == 1
        assert left.sum(200) == 5
        assert left.keys() == [200, 404]
        assert left.missing == 2


class TestAggregator:
    """Test the aggregator."""

    def test_increment_and_accumulate(self):
        aggregator = Aggregator()

        aggregator.increment("levels", "ERROR")
        aggregator.accumulate("bytes", "/", 512)

        assert aggregator.get("levels").count("ERROR") == 1
        assert aggregator.get("bytes").sum("/") == 512

    def test_unknown_aggregate(self):
        with pytest.raises(AggregationError):
            Aggregator().get("nope")

    def test_bound_aggregates_exist_up_front(self, request_bindings):
        aggregator = Aggregator(request_bindings)

        assert set(aggregator.names()) == {RULE_MATCHES, "status", "bytes_by_path"}
        assert aggregator.get("status").total_count == 0

    def test_unknown_transform_rejected(self):
        with pytest.raises(ConfigurationError):
            AggregateBinding("x", "rule", key_field="f", key_transform="bogus")

    def test_path_status_bytes_scenario(self, request_bindings, request_classifier):
        """One line updates several aggregates without interference."""
        aggregator = Aggregator(request_bindings)

        fold_lines(aggregator, request_classifier, ["A 200 10", "A 404 20", "A 200 5"])

        status = aggregator.get("status")
        assert {key: status.count(key) for key in status.keys()} == {200: 2, 404: 1}
        assert aggregator.get("bytes_by_path").sum("A") == 35
        assert aggregator.get(RULE_MATCHES).count("request") == 3

    def test_non_numeric_sum_field_is_excluded(self, request_bindings, request_classifier):
        aggregator = Aggregator(request_bindings)

        fold_lines(aggregator, request_classifier, ["A 200 10", "A 200 -"])

        bytes_by_path = aggregator.get("bytes_by_path")
        assert bytes_by_path.count("A") == 2
        assert bytes_by_path.sum("A") == 10
        assert bytes_by_path.sum_missing == 1

    def test_missing_key_is_tracked(self):
        """Records without the key field are counted as missing, not as ''."""
        aggregator = Aggregator([AggregateBinding("codes", "error", key_field="code")])

        aggregator.fold(ExtractedRecord("error", 1, {"code": "E1"}))
        aggregator.fold(ExtractedRecord("error", 2, {}, extraction_failed=True))

        codes = aggregator.get("codes")
        assert codes.keys() == ["E1"]
        assert codes.missing == 1
        assert codes.total_count + codes.missing == 2

    def test_rule_name_key(self):
        """Without a key field the rule name is the key."""
        aggregator = Aggregator(
            [
                AggregateBinding("levels", "error"),
                AggregateBinding("levels", "warning"),
            ]
        )

        aggregator.fold(ExtractedRecord("error", 1))
        aggregator.fold(ExtractedRecord("warning", 2))
        aggregator.fold(ExtractedRecord("error", 3))

        levels = aggregator.get("levels")
        assert levels.count("error") == 2
        assert levels.count("warning") == 1

    def test_counts_equal_matched_lines(self, request_bindings, request_classifier):
        """Per-key counts plus missing equal the lines the rule matched."""
        lines = ["A 200 10", "B 301 1", "garbage", "C 200 x", "A 500 7"]
        aggregator = Aggregator(request_bindings)

        fold_lines(aggregator, request_classifier, lines)

        matched = aggregator.get(RULE_MATCHES).count("request")
        status = aggregator.get("status")
        assert matched == 4
        assert status.total_count + status.missing == matched

    def test_shard_merge_matches_single_pass(self, request_bindings, request_classifier):
        """Merging shards in either order gives the single-pass totals."""
        lines = ["A 200 10", "B 404 3", "A 200 5", "C 500 1", "B 404 9"]

        single = Aggregator(request_bindings)
        fold_lines(single, request_classifier, lines)

        first = single.new_shard()
        second = single.new_shard()
        fold_lines(first, request_classifier, lines[:2])
        fold_lines(second, request_classifier, lines[2:])

        forward = single.new_shard()
        forward.merge(first)
        forward.merge(second)
        backward = single.new_shard()
        backward.merge(second)
        backward.merge(first)

        for merged in (forward, backward):
            for name in single.names():
                expected = single.get(name)
                actual = merged.get(name)
                assert {k: actual.count(k) for k in actual.keys()} == {
                    k: expected.count(k) for k in expected.keys()
                }
                assert actual.total_sum == expected.total_sum
            assert merged.records_folded == single.records_folded

    def test_finalize_blocks_updates(self):
        aggregator = Aggregator()
        aggregator.finalize()

        assert aggregator.is_finalized
        with pytest.raises(AggregationError):
            aggregator.increment("levels", "ERROR")
        with pytest.raises(AggregationError):
            aggregator.fold(ExtractedRecord("error", 1))

    def test_aggregator_stats(self, request_bindings):
        aggregator = Aggregator(request_bindings)
        aggregator.fold(ExtractedRecord("request", 1, {"status": "200", "path": "/"}))

        stats = aggregator.get_aggregator_stats()

        assert stats["records_folded"] == 1
        assert stats["aggregates"]["status"]["total_count"] == 1
        assert stats["aggregates"]["bytes_by_path"]["keys"] == 1
