"""
Line classifier for tagging lines with rule categories.
"""

import logging
from typing import List, Optional, Union

from ..domain.records import ExtractedRecord, LogLine
from .extractor import FieldExtractor
from .patterns import ClassificationRule, RuleManager


logger = logging.getLogger(__name__)


class LineClassifier:
    """Evaluates every rule against a line and extracts fields for each match."""

    def __init__(
        self,
        rules: Union[RuleManager, List[ClassificationRule]],
        extractor: Optional[FieldExtractor] = None,
    ) -> None:
        """
        Initialize line classifier.

        Args:
            rules: Rule table or ordered list of rules
            extractor: Field extractor instance
        """
        self.rule_manager = rules if isinstance(rules, RuleManager) else None
        self._static_rules = None if self.rule_manager else list(rules)
        self.extractor = extractor or FieldExtractor()

    @property
    def rules(self) -> List[ClassificationRule]:
        if self.rule_manager is not None:
            return self.rule_manager.rules
        return self._static_rules

    def classify(self, line: LogLine) -> List[ExtractedRecord]:
        """
        Classify a single line.

        Every rule is evaluated independently; the result lists the matching
        rules in rule-table order.

        Args:
            line: Line to classify

        Returns:
            One record per matching rule
        """
        records = []
        text = line.text

        for rule in self.rules:
            match = rule.match(text)
            if match is None:
                continue

            if rule.extractor is None:
                fields = self.extractor.from_match(match, rule.fields)
                failed = False
            else:
                fields = self.extractor.extract(text, rule.extractor, rule.fields)
                failed = fields is None

            records.append(
                ExtractedRecord(
                    rule_name=rule.name,
                    line_number=line.number,
                    fields=fields or {},
                    extraction_failed=failed,
                )
            )

        return records

    def matches(self, text: str, rule_name: str) -> bool:
        """Check whether a single named rule matches the text."""
        for rule in self.rules:
            if rule.name == rule_name:
                return rule.match(text) is not None
        return False
