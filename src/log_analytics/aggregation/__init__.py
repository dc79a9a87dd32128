"""
Aggregation module for incremental tallies.
"""

from .aggregator import Aggregate, AggregateBinding, Aggregator, RULE_MATCHES

__all__ = [
    "Aggregate",
    "AggregateBinding",
    "Aggregator",
    "RULE_MATCHES",
]
