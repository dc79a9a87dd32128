"""
Log Analytics - streaming classification, aggregation and reporting for log lines.
"""

from .config import PipelineConfig, load_pipeline_config
from .log_parser.parser import LogPipeline
from .report.formatter import ReportFormatter

__version__ = "0.1.0"

__all__ = [
    "PipelineConfig",
    "load_pipeline_config",
    "LogPipeline",
    "ReportFormatter",
]
