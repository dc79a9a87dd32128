"""
Incremental aggregation of extracted records.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Any, Hashable, List, Optional

from ..config import BindingConfig
from ..domain.records import ExtractedRecord
from ..log_parser.extractor import get_transform, parse_number
from ..utils.exceptions import AggregationError


logger = logging.getLogger(__name__)

RULE_MATCHES = "rule_matches"


class Aggregate:
    """A named running tally of counts and sums per key."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._counts: Dict[Hashable, int] = {}
        self._sums: Dict[Hashable, float] = {}
        self._order: Dict[Hashable, int] = {}
        # Records routed here that had no usable key / no numeric sum field.
        self.missing = 0
        self.sum_missing = 0

    def _touch(self, key: Hashable) -> None:
        if key not in self._order:
            self._order[key] = len(self._order)

    def increment(self, key: Hashable, amount: int = 1) -> None:
        """Increase the count for a key, creating it on first sight."""
        self._touch(key)
        self._counts[key] = self._counts.get(key, 0) + amount

    def accumulate(self, key: Hashable, amount: float) -> None:
        """Add to the running sum for a key, independent of its count."""
        self._touch(key)
        self._sums[key] = self._sums.get(key, 0) + amount

    def count(self, key: Hashable) -> int:
        return self._counts.get(key, 0)

    def sum(self, key: Hashable) -> float:
        return self._sums.get(key, 0)

    def order_of(self, key: Hashable) -> int:
        """Position of the key's first occurrence."""
        return self._order[key]

    def keys(self) -> List[Hashable]:
        """Keys in first-occurrence order."""
        return list(self._order)

    @property
    def total_count(self) -> int:
        return sum(self._counts.values())

    @property
    def total_sum(self) -> float:
        return sum(self._sums.values())

    def merge(self, other: "Aggregate") -> None:
        """
        Sum-combine another aggregate into this one.

        Keys new to this aggregate are appended after the existing ones, in
        the other aggregate's first-occurrence order.
        """
        for key in other.keys():
            if key in other._counts:
                self.increment(key, other._counts[key])
            if key in other._sums:
                self.accumulate(key, other._sums[key])
            self._touch(key)
        self.missing += other.missing
        self.sum_missing += other.sum_missing

    def __contains__(self, key: Hashable) -> bool:
        return key in self._order

    def __len__(self) -> int:
        return len(self._order)

    def __repr__(self) -> str:
        return f"Aggregate(name='{self.name}', keys={len(self)}, total={self.total_count})"


@dataclass
class AggregateBinding:
    """Routes records of one rule into one aggregate."""

    aggregate: str
    rule: str
    key_field: Optional[str] = None
    key_transform: str = "str"
    sum_field: Optional[str] = None
    _transform: Callable[[str], Optional[Hashable]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._transform = get_transform(self.key_transform)

    @classmethod
    def from_config(cls, config: BindingConfig) -> "AggregateBinding":
        return cls(
            aggregate=config.aggregate,
            rule=config.rule,
            key_field=config.key_field,
            key_transform=config.key_transform,
            sum_field=config.sum_field,
        )

    def key_for(self, record: ExtractedRecord) -> Optional[Hashable]:
        """Group key for a record, or None when the key field is unusable."""
        if self.key_field is None:
            return record.rule_name

        value = record.get(self.key_field)
        if value is None:
            return None
        return self._transform(value)


class Aggregator:
    """Owns the named aggregates of one pipeline run."""

    def __init__(self, bindings: Optional[List[AggregateBinding]] = None) -> None:
        """
        Initialize aggregator.

        Args:
            bindings: Record routing table; every bound aggregate exists from
                the start so empty runs still report it
        """
        self.bindings = list(bindings or [])
        self._aggregates: Dict[str, Aggregate] = {}
        self._bindings_by_rule: Dict[str, List[AggregateBinding]] = {}
        self._finalized = False
        self.records_folded = 0

        self._ensure(RULE_MATCHES)
        for binding in self.bindings:
            self._ensure(binding.aggregate)
            self._bindings_by_rule.setdefault(binding.rule, []).append(binding)

    @classmethod
    def from_config(cls, configs: List[BindingConfig]) -> "Aggregator":
        return cls([AggregateBinding.from_config(config) for config in configs])

    def new_shard(self) -> "Aggregator":
        """Create an empty aggregator with the same routing table."""
        return Aggregator(self.bindings)

    def _ensure(self, name: str) -> Aggregate:
        aggregate = self._aggregates.get(name)
        if aggregate is None:
            aggregate = self._aggregates[name] = Aggregate(name)
        return aggregate

    def _check_open(self) -> None:
        if self._finalized:
            raise AggregationError("Aggregator has been finalized")

    def get(self, name: str) -> Aggregate:
        """
        Get an aggregate by name.

        Raises:
            AggregationError: If no such aggregate exists
        """
        try:
            return self._aggregates[name]
        except KeyError:
            raise AggregationError(
                f"Unknown aggregate '{name}'", {"available": sorted(self._aggregates)}
            )

    def increment(self, aggregate_name: str, key: Hashable) -> None:
        """Increase the count for key in the named aggregate by one."""
        self._check_open()
        self._ensure(aggregate_name).increment(key)

    def accumulate(self, aggregate_name: str, key: Hashable, amount: float) -> None:
        """Add amount to the running sum for key in the named aggregate."""
        self._check_open()
        self._ensure(aggregate_name).accumulate(key, amount)

    def fold(self, record: ExtractedRecord) -> None:
        """
        Fold one record into every aggregate bound to its rule.

        Records without a usable key or numeric sum field are counted as
        missing on the aggregate instead of being dropped silently.
        """
        self._check_open()
        self.records_folded += 1
        self._aggregates[RULE_MATCHES].increment(record.rule_name)

        for binding in self._bindings_by_rule.get(record.rule_name, []):
            aggregate = self._aggregates[binding.aggregate]

            key = binding.key_for(record)
            if key is None:
                aggregate.missing += 1
                continue

            aggregate.increment(key)

            if binding.sum_field is not None:
                amount = parse_number(record.get(binding.sum_field))
                if amount is None:
                    aggregate.sum_missing += 1
                else:
                    aggregate.accumulate(key, amount)

    def merge(self, other: "Aggregator") -> None:
        """Sum-combine a shard's aggregates into this aggregator."""
        self._check_open()
        for name, aggregate in other._aggregates.items():
            self._ensure(name).merge(aggregate)
        self.records_folded += other.records_folded

    def finalize(self) -> None:
        """Close the aggregator at end of stream; further updates raise."""
        if not self._finalized:
            self._finalized = True
            logger.debug(f"Aggregator finalized after {self.records_folded} records")

    @property
    def is_finalized(self) -> bool:
        return self._finalized

    def names(self) -> List[str]:
        return list(self._aggregates)

    def get_aggregator_stats(self) -> Dict[str, Any]:
        """
        Get aggregator statistics.

        Returns:
            Aggregator statistics
        """
        return {
            "records_folded": self.records_folded,
            "finalized": self._finalized,
            "aggregates": {
                name: {
                    "keys": len(aggregate),
                    "total_count": aggregate.total_count,
                    "missing": aggregate.missing,
                }
                for name, aggregate in self._aggregates.items()
            },
        }
