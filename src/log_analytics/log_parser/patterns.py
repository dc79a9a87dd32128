"""
Classification rules and the rule table that holds them.
"""

import re
import logging
from typing import Dict, List, Any, Optional, Pattern

from ..config import RuleConfig
from ..utils.exceptions import RulePatternError


logger = logging.getLogger(__name__)

FLAG_MAPPING = {
    "IGNORECASE": re.IGNORECASE,
    "MULTILINE": re.MULTILINE,
    "DOTALL": re.DOTALL,
    "VERBOSE": re.VERBOSE,
}


def parse_regex_flags(flags_list: List[str]) -> int:
    """Parse regex flags from string list."""
    flags = 0
    for flag_name in flags_list:
        if flag_name in FLAG_MAPPING:
            flags |= FLAG_MAPPING[flag_name]
    return flags


def _compile(rule_name: str, regex: str, flags: int) -> Pattern:
    try:
        return re.compile(regex, flags)
    except re.error as e:
        raise RulePatternError(rule_name, regex, str(e))


class ClassificationRule:
    """A named matcher with an optional field extractor."""

    def __init__(
        self,
        name: str,
        pattern: str,
        flags: int = 0,
        extract: Optional[str] = None,
        fields: Optional[List[str]] = None,
        description: str = "",
        severity: Optional[str] = None,
    ) -> None:
        """
        Initialize classification rule.

        Args:
            name: Rule name, used as the category label
            pattern: Regular expression searched anywhere in the line
            flags: Regex flags, applied to both matcher and extractor
            extract: Regular expression with named groups for field extraction;
                the matcher's own named groups are used when omitted
            fields: Named groups to report (all named groups when omitted)
            description: Human readable description
            severity: Optional monitoring severity label

        Raises:
            RulePatternError: If a pattern does not compile or a declared
                field has no matching named group
        """
        self.name = name
        self.pattern_str = pattern
        self.extract_str = extract
        self.flags = flags
        self.description = description
        self.severity = severity

        self.matcher = _compile(name, pattern, flags)
        self.extractor = _compile(name, extract, flags) if extract else None

        available = list((self.extractor or self.matcher).groupindex)
        if fields is None:
            self.fields = available
        else:
            missing = [f for f in fields if f not in available]
            if missing:
                raise RulePatternError(
                    name,
                    extract or pattern,
                    f"declared fields without named groups: {', '.join(missing)}",
                )
            self.fields = list(fields)

    @classmethod
    def from_config(cls, config: RuleConfig) -> "ClassificationRule":
        """Build a rule from its configuration entry."""
        return cls(
            name=config.name,
            pattern=config.pattern,
            flags=parse_regex_flags(config.flags),
            extract=config.extract,
            fields=config.fields,
            description=config.description,
            severity=config.severity,
        )

    def match(self, text: str) -> Optional[re.Match]:
        """
        Search the line for this rule's pattern.

        Args:
            text: Line text

        Returns:
            Match object, or None if the rule does not apply
        """
        return self.matcher.search(text)

    def __repr__(self) -> str:
        return f"ClassificationRule(name='{self.name}', pattern='{self.pattern_str}')"


class RuleManager:
    """Holds the ordered rule table used by the classifier."""

    def __init__(self, rule_configs: Optional[List[RuleConfig]] = None) -> None:
        """
        Initialize rule manager.

        Args:
            rule_configs: Rule entries in evaluation order
        """
        self._rules: Dict[str, ClassificationRule] = {}
        for config in rule_configs or []:
            self.add_rule(ClassificationRule.from_config(config))

    @property
    def rules(self) -> List[ClassificationRule]:
        """Rules in evaluation order."""
        return list(self._rules.values())

    def get_rule(self, name: str) -> Optional[ClassificationRule]:
        return self._rules.get(name)

    def add_rule(self, rule: ClassificationRule) -> None:
        """
        Append a rule to the table.

        Raises:
            RulePatternError: If a rule with the same name already exists
        """
        if rule.name in self._rules:
            raise RulePatternError(rule.name, rule.pattern_str, "duplicate rule name")

        self._rules[rule.name] = rule
        logger.debug(f"Added classification rule {rule.name}: {rule.pattern_str}")

    def remove_rule(self, name: str) -> bool:
        """
        Remove a rule.

        Returns:
            True if the rule was removed
        """
        if name not in self._rules:
            return False

        del self._rules[name]
        logger.debug(f"Removed classification rule {name}")
        return True

    def validate_rules(self, samples: Optional[List[str]] = None) -> List[str]:
        """
        Validate the rule table, optionally against sample lines.

        A rule that never matches any of the samples is reported, since that
        usually means a typo in the pattern.

        Returns:
            List of validation errors
        """
        errors = []

        if not self._rules:
            errors.append("No classification rules defined")

        if samples:
            for rule in self._rules.values():
                if not any(rule.match(line) for line in samples):
                    errors.append(f"Rule '{rule.name}' matches none of the sample lines")

        return errors

    def get_rule_stats(self) -> Dict[str, Any]:
        """
        Get statistics about loaded rules.

        Returns:
            Rule statistics
        """
        return {
            "total_rules": len(self._rules),
            "rules_with_extractors": sum(
                1 for rule in self._rules.values() if rule.extractor is not None
            ),
            "rules": {
                rule.name: {
                    "pattern": rule.pattern_str,
                    "fields": list(rule.fields),
                    "severity": rule.severity,
                }
                for rule in self._rules.values()
            },
        }

    def __len__(self) -> int:
        return len(self._rules)
