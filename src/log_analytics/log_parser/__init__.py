"""
Log Parser module for classifying lines and extracting fields.
"""

from .patterns import ClassificationRule, RuleManager
from .extractor import FieldExtractor, parse_number, parse_hour
from .classifier import LineClassifier

__all__ = [
    "ClassificationRule",
    "RuleManager",
    "FieldExtractor",
    "parse_number",
    "parse_hour",
    "LineClassifier",
]
