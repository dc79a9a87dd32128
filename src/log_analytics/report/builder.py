"""
Report building from aggregates.
"""

import logging
import math
import operator
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Dict, Any, Hashable, List, Optional, Sequence, Tuple, Union

from ..aggregation.aggregator import Aggregate, Aggregator, RULE_MATCHES
from ..config import PipelineConfig, RateConfig, SectionConfig, ThresholdConfig, TotalConfig
from ..domain.records import Report, ReportEntry, ReportSection, SectionKind
from ..utils.exceptions import ReportError


logger = logging.getLogger(__name__)

Number = Union[int, float]

UNDEFINED = float("nan")

BAR_CHAR = "█"

COMPARATORS: Dict[str, Callable[[float, float], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
}


def is_undefined(value: Any) -> bool:
    """Check for the undefined-rate sentinel."""
    return isinstance(value, float) and math.isnan(value)


def round_half_away(value: Number, places: int = 2) -> float:
    """Round with half-away-from-zero semantics (2.345 -> 2.35, -2.345 -> -2.35)."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class SeverityThreshold:
    """A (predicate, label) row of a severity table."""

    label: str
    predicate: Callable[[float], bool]
    operator: Optional[str] = None
    value: Optional[float] = None

    @classmethod
    def compare(cls, op: str, value: float, label: str) -> "SeverityThreshold":
        """Threshold matching when `computed <op> value` holds."""
        if op not in COMPARATORS:
            raise ReportError(f"Unknown comparison operator '{op}'")
        compare = COMPARATORS[op]
        return cls(label=label, predicate=lambda x: compare(x, value), operator=op, value=value)

    @classmethod
    def from_config(cls, config: ThresholdConfig) -> "SeverityThreshold":
        return cls.compare(config.operator, config.value, config.label)

    def matches(self, value: float) -> bool:
        if is_undefined(value):
            return False
        return bool(self.predicate(value))


def classify_severity(
    value: float, thresholds: Sequence[SeverityThreshold], default: str = "OK"
) -> str:
    """
    Label a computed value with the first matching threshold.

    Thresholds are checked strictly in the given order, so a table like
    [> 10 CRITICAL, > 5 WARNING] relies on the higher bound coming first.
    An undefined value matches no threshold.
    """
    for threshold in thresholds:
        if threshold.matches(value):
            return threshold.label
    return default


def _shadows(earlier: SeverityThreshold, later: SeverityThreshold) -> bool:
    upper = (">", ">=")
    lower = ("<", "<=")
    for family in (upper, lower):
        if earlier.operator in family and later.operator in family:
            if earlier.value == later.value:
                # "> v" leaves v itself for a later ">= v"
                return not (earlier.operator in (">", "<") and later.operator in (">=", "<="))
            if family is upper:
                return earlier.value < later.value
            return earlier.value > later.value
    return False


def check_thresholds(thresholds: Sequence[SeverityThreshold]) -> List[str]:
    """
    Find thresholds that can never be selected because an earlier one
    already matches every value they would match.

    Returns:
        List of warnings
    """
    warnings = []
    for j, later in enumerate(thresholds):
        if later.operator is None:
            continue
        for earlier in thresholds[:j]:
            if earlier.operator is not None and _shadows(earlier, later):
                message = (
                    f"Threshold '{later.label}' ({later.operator} {later.value}) is shadowed by "
                    f"'{earlier.label}' ({earlier.operator} {earlier.value})"
                )
                logger.warning(message)
                warnings.append(message)
                break
    return warnings


def _sort_keys(keys: List[Hashable]) -> List[Hashable]:
    try:
        return sorted(keys)
    except TypeError:
        return sorted(keys, key=str)


class ReportBuilder:
    """Turns aggregates into ranked, bounded report sections."""

    def __init__(self, places: int = 2) -> None:
        self.places = places

    def top_n(
        self, aggregate: Aggregate, n: Optional[int] = None, by: str = "count"
    ) -> List[Tuple[Hashable, Number]]:
        """
        Highest-ranked keys of an aggregate.

        Ties are broken by first occurrence, so identical input always gives
        identical output.

        Args:
            aggregate: Aggregate to rank
            n: Number of keys to return (all when None)
            by: Rank by 'count' or 'sum'

        Returns:
            (key, value) pairs, highest first
        """
        if by == "count":
            value_of = aggregate.count
        elif by == "sum":
            value_of = aggregate.sum
        else:
            raise ReportError(f"Cannot rank by '{by}'")

        ranked = sorted(aggregate.keys(), key=lambda key: (-value_of(key), aggregate.order_of(key)))
        if n is not None:
            ranked = ranked[:n]
        return [(key, value_of(key)) for key in ranked]

    def rate(self, numerator: Number, denominator: Number) -> float:
        """Ratio as a percentage, or UNDEFINED when the denominator is zero."""
        if not denominator:
            return UNDEFINED
        return round_half_away(numerator * 100 / denominator, self.places)

    def percentage(
        self, aggregate: Aggregate, key: Hashable, total: Optional[Number] = None
    ) -> float:
        """Share of a key's count in the aggregate total (or a given total)."""
        if total is None:
            total = aggregate.total_count
        return self.rate(aggregate.count(key), total)

    def peak(self, aggregate: Aggregate) -> Optional[Tuple[Hashable, int]]:
        """Key with the highest count, or None for an empty aggregate."""
        top = self.top_n(aggregate, 1)
        return top[0] if top else None

    def above(self, aggregate: Aggregate, limit: Number) -> List[Tuple[Hashable, int]]:
        """Keys whose count exceeds limit, highest first."""
        return [(key, count) for key, count in self.top_n(aggregate) if count > limit]

    def ranked_entries(
        self, aggregate: Aggregate, n: Optional[int] = None, by: str = "count"
    ) -> List[ReportEntry]:
        total = aggregate.total_sum if by == "sum" else aggregate.total_count
        entries = []
        for key, value in self.top_n(aggregate, n, by):
            entries.append(
                ReportEntry(
                    key=key,
                    count=aggregate.count(key),
                    total=aggregate.sum(key),
                    percentage=self.rate(value, total),
                )
            )
        return entries

    def histogram(self, aggregate: Aggregate, width: int = 40) -> List[ReportEntry]:
        """
        Key-ascending bar chart scaled so the largest count fills width.
        """
        keys = _sort_keys(aggregate.keys())
        if not keys:
            return []

        max_count = max(aggregate.count(key) for key in keys)
        entries = []
        for key in keys:
            count = aggregate.count(key)
            length = int(round_half_away(count * width / max_count, 0)) if max_count else 0
            entries.append(ReportEntry(key=key, count=count, bar=BAR_CHAR * length))
        return entries

    def _section(self, aggregator: Aggregator, config: SectionConfig) -> ReportSection:
        aggregate = aggregator.get(config.aggregate)
        kind = SectionKind(config.kind)
        notes = []

        if kind is SectionKind.HISTOGRAM:
            entries = self.histogram(aggregate, config.width)
            peak = self.peak(aggregate)
            if peak:
                notes.append(f"Peak: {peak[0]} ({peak[1]})")
        elif kind is SectionKind.FLAGGED:
            limit = config.limit if config.limit is not None else 0
            entries = [
                ReportEntry(key=key, count=count, total=aggregate.sum(key))
                for key, count in self.above(aggregate, limit)
            ]
            if not entries:
                notes.append(f"No keys above {limit:g}")
        elif kind is SectionKind.SUMS:
            entries = self.ranked_entries(aggregate, config.top, by="sum")
            if aggregate.sum_missing:
                notes.append(f"{aggregate.sum_missing} records without a numeric value")
        else:
            entries = self.ranked_entries(aggregate, config.top, config.by)

        if aggregate.missing:
            notes.append(f"{aggregate.missing} records without a usable key")

        return ReportSection(title=config.title, kind=kind, entries=entries, notes=notes)

    def compute_rate(
        self, aggregator: Aggregator, rate: RateConfig, stats: Dict[str, Any]
    ) -> Tuple[float, str]:
        """
        Evaluate a configured rate and label it.

        Returns:
            (rate, severity label)
        """
        rule_matches = aggregator.get(RULE_MATCHES)
        numerator = rule_matches.count(rate.numerator_rule)

        if rate.denominator in ("total_lines", "matched_lines"):
            denominator = stats.get(rate.denominator, 0)
        else:
            denominator = rule_matches.count(rate.denominator)

        thresholds = [SeverityThreshold.from_config(t) for t in rate.thresholds]
        value = self.rate(numerator, denominator)
        return value, classify_severity(value, thresholds, rate.default_label)

    def compute_total(self, aggregator: Aggregator, total: TotalConfig) -> Number:
        """
        Evaluate a whole-aggregate figure.

        The mean divides the summed field by every record the aggregate
        counted, including those whose field was not numeric. An empty
        aggregate has an undefined mean.
        """
        aggregate = aggregator.get(total.aggregate)

        if total.measure == "distinct":
            return len(aggregate)
        if total.measure == "count":
            return aggregate.total_count
        if total.measure == "sum":
            return round_half_away(aggregate.total_sum / total.scale, self.places)
        if total.measure == "mean":
            if not aggregate.total_count:
                return UNDEFINED
            mean = aggregate.total_sum / aggregate.total_count / total.scale
            return round_half_away(mean, self.places)
        raise ReportError(f"Unknown total measure '{total.measure}'")

    def build(
        self,
        aggregator: Aggregator,
        config: PipelineConfig,
        stats: Optional[Dict[str, Any]] = None,
    ) -> Report:
        """
        Build a read-only report snapshot.

        Args:
            aggregator: Source aggregates (not modified)
            config: Pipeline configuration holding sections, rates and totals
            stats: Pipeline statistics for the summary

        Returns:
            Report
        """
        stats = stats or {}
        summary: Dict[str, Any] = {
            "total_lines": stats.get("total_lines", 0),
            "matched_lines": stats.get("matched_lines", 0),
            "unmatched_lines": stats.get("unmatched_lines", 0),
        }
        if stats.get("decode_errors"):
            summary["decode_errors"] = stats["decode_errors"]
        if stats.get("processing_errors"):
            summary["processing_errors"] = stats["processing_errors"]

        for total in config.totals:
            summary[total.name] = self.compute_total(aggregator, total)

        for rate in config.rates:
            value, label = self.compute_rate(aggregator, rate, stats)
            summary[rate.name] = value
            summary[f"{rate.name}_severity"] = label

        sections = [self._section(aggregator, section) for section in config.sections]
        return Report(title=config.title, sections=sections, summary=summary)
