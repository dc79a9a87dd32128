"""
Pipeline configuration models and built-in presets.
"""

import copy
import logging
from pathlib import Path
from typing import Dict, Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from .utils.exceptions import ConfigurationError
from .utils.helpers import load_config


logger = logging.getLogger(__name__)

REGEX_FLAG_NAMES = ("IGNORECASE", "MULTILINE", "DOTALL", "VERBOSE")
OPERATORS = (">", ">=", "<", "<=", "==")


class RuleConfig(BaseModel):
    """A classification rule entry."""

    name: str = Field(..., description="Rule name, used as the category label")
    pattern: str = Field(..., description="Regex searched anywhere in the line")
    flags: List[str] = Field(default_factory=list, description="Regex flag names")
    extract: Optional[str] = Field(None, description="Extraction regex with named groups")
    fields: Optional[List[str]] = Field(None, description="Named groups to report")
    description: str = Field("", description="Human readable description")
    severity: Optional[str] = Field(None, description="Monitoring severity label")

    @field_validator("flags")
    @classmethod
    def _known_flags(cls, value: List[str]) -> List[str]:
        unknown = [flag for flag in value if flag.upper() not in REGEX_FLAG_NAMES]
        if unknown:
            raise ValueError(f"unknown regex flags: {', '.join(unknown)}")
        return [flag.upper() for flag in value]


class BindingConfig(BaseModel):
    """Routes records of one rule into a named aggregate."""

    aggregate: str
    rule: str
    key_field: Optional[str] = Field(None, description="Field to group by; rule name if omitted")
    key_transform: str = Field("str", description="Transform applied to the key value")
    sum_field: Optional[str] = Field(None, description="Numeric field to accumulate")


class SectionConfig(BaseModel):
    """A report section drawn from one aggregate."""

    title: str
    aggregate: str
    kind: Literal["ranked", "histogram", "sums", "flagged"] = "ranked"
    top: Optional[int] = Field(10, ge=1)
    by: Literal["count", "sum"] = "count"
    limit: Optional[float] = Field(None, description="Flag keys whose count exceeds this")
    width: int = Field(40, ge=1, description="Histogram bar width")


class ThresholdConfig(BaseModel):
    """One (predicate, label) row of a severity table."""

    label: str
    operator: str = ">"
    value: float

    @field_validator("operator")
    @classmethod
    def _known_operator(cls, value: str) -> str:
        if value not in OPERATORS:
            raise ValueError(f"operator must be one of {', '.join(OPERATORS)}")
        return value


class RateConfig(BaseModel):
    """A ratio of rule matches against a denominator, with severity labels."""

    name: str
    numerator_rule: str
    denominator: str = Field(
        "total_lines",
        description="'total_lines', 'matched_lines' or the name of a rule",
    )
    thresholds: List[ThresholdConfig] = Field(default_factory=list)
    default_label: str = "OK"


class TotalConfig(BaseModel):
    """A whole-aggregate summary figure, such as distinct keys or mean size."""

    name: str
    aggregate: str
    measure: Literal["distinct", "count", "sum", "mean"] = "distinct"
    scale: float = Field(1, gt=0, description="Divisor applied to sum and mean, e.g. 1024 for KB")


class PipelineConfig(BaseModel):
    """Complete declarative description of a pipeline and its report."""

    title: str = "Log Analysis Report"
    rules: List[RuleConfig]
    aggregates: List[BindingConfig] = Field(default_factory=list)
    sections: List[SectionConfig] = Field(default_factory=list)
    rates: List[RateConfig] = Field(default_factory=list)
    totals: List[TotalConfig] = Field(default_factory=list)

    def validate_references(self) -> List[str]:
        """
        Check that bindings, sections, rates and totals refer to known names.

        Returns:
            List of validation errors
        """
        errors = []
        rule_names = {rule.name for rule in self.rules}
        aggregate_names = {binding.aggregate for binding in self.aggregates}
        aggregate_names.add("rule_matches")

        seen = set()
        for rule in self.rules:
            if rule.name in seen:
                errors.append(f"Duplicate rule name: {rule.name}")
            seen.add(rule.name)

        for binding in self.aggregates:
            if binding.rule not in rule_names:
                errors.append(
                    f"Aggregate '{binding.aggregate}' refers to unknown rule '{binding.rule}'"
                )

        for section in self.sections:
            if section.aggregate not in aggregate_names:
                errors.append(
                    f"Section '{section.title}' refers to unknown aggregate '{section.aggregate}'"
                )

        for rate in self.rates:
            if rate.numerator_rule not in rule_names:
                errors.append(f"Rate '{rate.name}' refers to unknown rule '{rate.numerator_rule}'")
            if (
                rate.denominator not in ("total_lines", "matched_lines")
                and rate.denominator not in rule_names
            ):
                errors.append(
                    f"Rate '{rate.name}' has unknown denominator '{rate.denominator}'"
                )

        for total in self.totals:
            if total.aggregate not in aggregate_names:
                errors.append(
                    f"Total '{total.name}' refers to unknown aggregate '{total.aggregate}'"
                )

        return errors


ERROR_RATE_THRESHOLDS = [
    {"label": "CRITICAL", "operator": ">", "value": 10},
    {"label": "WARNING", "operator": ">", "value": 5},
]

ACCESS_LOG_PRESET: Dict[str, Any] = {
    "title": "Access Log Analysis Report",
    "rules": [
        {
            "name": "request",
            "pattern": (
                r'^(?P<ip>\S+) \S+ \S+ \[(?P<timestamp>[^\]]+)\] '
                r'"(?P<method>[A-Z]+) (?P<path>[^" ]+)[^"]*" (?P<status>\d{3}) (?P<bytes>\S+)'
            ),
            "description": "Common/combined log format request line",
        },
        {
            "name": "error",
            "pattern": r'" [45]\d{2} ',
            "description": "4xx and 5xx responses",
        },
        {
            "name": "not_found",
            "pattern": r'"(?:GET|POST|PUT|DELETE|HEAD|PATCH) (?P<path>[^" ]+)[^"]*" 404 ',
            "description": "404 responses",
        },
        {
            "name": "bot",
            "pattern": r"bot|crawler|spider",
            "flags": ["IGNORECASE"],
            "description": "Bot and crawler traffic",
        },
    ],
    "aggregates": [
        {"aggregate": "status", "rule": "request", "key_field": "status", "key_transform": "int"},
        {
            "aggregate": "status_class",
            "rule": "request",
            "key_field": "status",
            "key_transform": "status_class",
        },
        {"aggregate": "hourly", "rule": "request", "key_field": "timestamp", "key_transform": "hour"},
        {"aggregate": "paths", "rule": "request", "key_field": "path", "key_transform": "path"},
        {"aggregate": "ips", "rule": "request", "key_field": "ip"},
        {"aggregate": "methods", "rule": "request", "key_field": "method"},
        {
            "aggregate": "bytes_by_path",
            "rule": "request",
            "key_field": "path",
            "key_transform": "path",
            "sum_field": "bytes",
        },
        {"aggregate": "not_found_paths", "rule": "not_found", "key_field": "path"},
        {"aggregate": "bots", "rule": "bot", "key_field": None},
    ],
    "sections": [
        {"title": "HTTP Status Codes", "aggregate": "status", "top": 10},
        {"title": "Status Classes", "aggregate": "status_class", "top": None},
        {"title": "HTTP Methods", "aggregate": "methods", "top": None},
        {"title": "Hourly Traffic", "aggregate": "hourly", "kind": "histogram"},
        {"title": "Top Paths", "aggregate": "paths", "top": 10},
        {"title": "Top IPs", "aggregate": "ips", "top": 5},
        {"title": "Bytes by Path", "aggregate": "bytes_by_path", "kind": "sums", "by": "sum"},
        {"title": "Suspicious IPs", "aggregate": "ips", "kind": "flagged", "limit": 100},
        {"title": "404 Paths", "aggregate": "not_found_paths", "top": 3},
    ],
    "rates": [
        {
            "name": "error_rate",
            "numerator_rule": "error",
            "denominator": "request",
            "thresholds": ERROR_RATE_THRESHOLDS,
        }
    ],
    "totals": [
        {"name": "unique_ips", "aggregate": "ips", "measure": "distinct"},
        {"name": "transfer_mb", "aggregate": "bytes_by_path", "measure": "sum", "scale": 1024 * 1024},
        {"name": "avg_request_kb", "aggregate": "bytes_by_path", "measure": "mean", "scale": 1024},
    ],
}

APP_LOG_PRESET: Dict[str, Any] = {
    "title": "Application Log Analysis Report",
    "rules": [
        {
            "name": "level",
            "pattern": r"(?:\[|\] )(?P<level>ERROR|WARNING|WARN|INFO|DEBUG|FATAL)(?:\]|:)",
            "description": "Log level marker",
        },
        {
            "name": "error",
            "pattern": r"ERROR",
            "extract": (
                r"^\[?(?P<timestamp>\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}:\d{2})?\]?"
                r".*?ERROR\]?:? (?P<message>.+)$"
            ),
            "description": "Error lines",
        },
        {
            "name": "database",
            "pattern": r"database",
            "flags": ["IGNORECASE"],
            "description": "Database related lines",
        },
        {
            "name": "connectivity",
            "pattern": r"timeout|connection|deadlock",
            "flags": ["IGNORECASE"],
            "description": "Timeouts and connection problems",
        },
    ],
    "aggregates": [
        {"aggregate": "levels", "rule": "level", "key_field": "level", "key_transform": "upper"},
        {"aggregate": "error_messages", "rule": "error", "key_field": "message"},
        {"aggregate": "error_hours", "rule": "error", "key_field": "timestamp", "key_transform": "hour"},
        {"aggregate": "topics", "rule": "database", "key_field": None},
        {"aggregate": "topics", "rule": "connectivity", "key_field": None},
    ],
    "sections": [
        {"title": "Log Levels", "aggregate": "levels", "top": None},
        {"title": "Top Error Messages", "aggregate": "error_messages", "top": 5},
        {"title": "Errors by Hour", "aggregate": "error_hours", "kind": "histogram"},
        {"title": "Topics", "aggregate": "topics", "top": None},
    ],
    "rates": [
        {
            "name": "error_rate",
            "numerator_rule": "error",
            "denominator": "total_lines",
            "thresholds": ERROR_RATE_THRESHOLDS,
        }
    ],
    "totals": [
        {"name": "distinct_errors", "aggregate": "error_messages", "measure": "distinct"},
    ],
}

SYSLOG_PRESET: Dict[str, Any] = {
    "title": "System Log Analysis Report",
    "rules": [
        {"name": "critical", "pattern": r"CRITICAL|critical|FATAL|fatal|Out of memory"},
        {
            "name": "error",
            "pattern": r"ERROR|error|Failed|FAIL",
            "extract": (
                r"^(?P<timestamp>[A-Z][a-z]{2}\s+\d{1,2} \d{2}:\d{2}:\d{2})?"
                r".*?(?:ERROR|Failed|FAIL)[:\s]+(?P<error_text>\S+)"
            ),
        },
        {"name": "warning", "pattern": r"WARN|warning|deprecated"},
        {"name": "info", "pattern": r"INFO|info|Started|Accepted"},
        {
            "name": "security",
            "pattern": r"Failed password|authentication failure|sudo:|Invalid user",
            "extract": r"(?P<ip>\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})",
        },
        {"name": "failed_password", "pattern": r"Failed password", "severity": "HIGH"},
        {"name": "out_of_memory", "pattern": r"Out of memory", "severity": "CRITICAL"},
        {"name": "disk_full", "pattern": r"disk.*full", "severity": "CRITICAL"},
        {"name": "connection_refused", "pattern": r"Connection refused", "severity": "MEDIUM"},
        {"name": "sudo_command", "pattern": r"sudo:.*command", "severity": "INFO"},
    ],
    "aggregates": [
        {"aggregate": "levels", "rule": "critical"},
        {"aggregate": "levels", "rule": "error"},
        {"aggregate": "levels", "rule": "warning"},
        {"aggregate": "levels", "rule": "info"},
        {"aggregate": "error_types", "rule": "error", "key_field": "error_text", "key_transform": "prefix"},
        {"aggregate": "error_hours", "rule": "error", "key_field": "timestamp", "key_transform": "hour"},
        {"aggregate": "attacker_ips", "rule": "security", "key_field": "ip"},
        {"aggregate": "monitoring_events", "rule": "failed_password"},
        {"aggregate": "monitoring_events", "rule": "out_of_memory"},
        {"aggregate": "monitoring_events", "rule": "disk_full"},
        {"aggregate": "monitoring_events", "rule": "connection_refused"},
        {"aggregate": "monitoring_events", "rule": "sudo_command"},
    ],
    "sections": [
        {"title": "Log Levels", "aggregate": "levels", "top": None},
        {"title": "Top Errors", "aggregate": "error_types", "top": 3},
        {"title": "Errors by Hour", "aggregate": "error_hours", "kind": "histogram"},
        {"title": "Suspicious IPs", "aggregate": "attacker_ips", "top": 5},
        {"title": "Monitoring Events", "aggregate": "monitoring_events", "top": None},
    ],
    "rates": [
        {
            "name": "error_rate",
            "numerator_rule": "error",
            "denominator": "total_lines",
            "thresholds": ERROR_RATE_THRESHOLDS,
        }
    ],
    "totals": [
        {"name": "unique_attacker_ips", "aggregate": "attacker_ips", "measure": "distinct"},
    ],
}

PRESETS: Dict[str, Dict[str, Any]] = {
    "access": ACCESS_LOG_PRESET,
    "app": APP_LOG_PRESET,
    "syslog": SYSLOG_PRESET,
}


def parse_pipeline_config(data: Dict[str, Any]) -> PipelineConfig:
    """
    Validate a raw configuration mapping.

    Raises:
        ConfigurationError: If the mapping does not describe a valid pipeline
    """
    try:
        config = PipelineConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid pipeline configuration", {"errors": e.errors(include_url=False)}
        )

    errors = config.validate_references()
    if errors:
        raise ConfigurationError("Inconsistent pipeline configuration", {"errors": errors})

    return config


def load_pipeline_config(
    config_path: Optional[Union[str, Path]] = None, preset: str = "access"
) -> PipelineConfig:
    """
    Load a pipeline configuration from a file, or fall back to a preset.

    Args:
        config_path: Path to a YAML or JSON configuration file
        preset: Built-in preset name used when no file is given

    Returns:
        Validated pipeline configuration
    """
    if config_path is not None:
        data = load_config(config_path)
        config = parse_pipeline_config(data)
        logger.info(f"Loaded pipeline configuration from {config_path}")
        return config

    if preset not in PRESETS:
        raise ConfigurationError(
            f"Unknown preset '{preset}'", {"available": sorted(PRESETS)}
        )

    logger.debug(f"Using built-in preset '{preset}'")
    return parse_pipeline_config(copy.deepcopy(PRESETS[preset]))
