"""
Main entry point for Log Analytics.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

import click

from .config import PRESETS, PipelineConfig, load_pipeline_config
from .log_parser.parser import LogPipeline
from .report.builder import SeverityThreshold, check_thresholds
from .report.formatter import FORMATS, ReportFormatter
from .sample_data import DataGenerator, sample_lines
from .utils.exceptions import LogAnalyticsError, SourceUnavailableError
from .utils.helpers import iter_file_lines, iter_raw_lines


# Reports go to stdout, logs to stderr
logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)

logger = logging.getLogger(__name__)


def _open_source(source: str) -> Iterable[bytes]:
    if source == "-":
        return click.get_binary_stream("stdin")
    return iter_raw_lines(source)


def _with_top(config: PipelineConfig, top: Optional[int]) -> PipelineConfig:
    if top is None:
        return config
    sections = [
        section.model_copy(update={"top": top}) if section.kind in ("ranked", "sums") else section
        for section in config.sections
    ]
    return config.model_copy(update={"sections": sections})


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default="WARNING",
    help="Logging level",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Pipeline configuration file (YAML or JSON)",
)
@click.option(
    "--preset",
    type=click.Choice(sorted(PRESETS)),
    default="access",
    help="Built-in rule preset used when no --config is given",
)
@click.pass_context
def cli(ctx, log_level: str, config_path: Optional[Path], preset: str):
    """Log Analytics - streaming log classification and reporting."""
    logging.getLogger().setLevel(getattr(logging, log_level))

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["preset"] = preset


def _load(ctx) -> PipelineConfig:
    try:
        return load_pipeline_config(ctx.obj["config_path"], ctx.obj["preset"])
    except LogAnalyticsError as e:
        click.echo(f"Configuration error: {str(e)}", err=True)
        sys.exit(2)


@cli.command()
@click.argument("source")
@click.option("--format", "output_format", type=click.Choice(FORMATS), default="text")
@click.option("--top", type=click.IntRange(min=1), default=None, help="Entries per ranked section")
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=1,
    help="Process in sharded chunks on this many worker threads",
)
@click.option(
    "--fallback-sample",
    is_flag=True,
    help="Analyze built-in sample lines when the source is unavailable",
)
@click.pass_context
def analyze(ctx, source: str, output_format: str, top: Optional[int], workers: int, fallback_sample: bool):
    """Analyze SOURCE (a file path, or - for stdin) and print a report."""
    config = _with_top(_load(ctx), top)
    pipeline = LogPipeline(config)

    lines = _open_source(source)
    try:
        if workers > 1:
            asyncio.run(pipeline.process_in_shards(lines, max_workers=workers))
        else:
            pipeline.process_lines(lines)
    except SourceUnavailableError as e:
        if not fallback_sample:
            click.echo(f"Error: {str(e)}", err=True)
            sys.exit(1)
        logger.warning(f"{str(e)}; using built-in sample data")
        click.echo(f"{source} not found, analyzing sample data", err=True)
        pipeline.process_lines(sample_lines(ctx.obj["preset"]))

    pipeline.finalize()
    report = pipeline.build_report()
    click.echo(ReportFormatter().format(report, output_format))


@cli.command()
@click.argument("source")
@click.option("--rule", "rule_name", default=None, help="Only show lines matching this rule")
@click.option("--limit", type=click.IntRange(min=1), default=None, help="Stop after N matches")
@click.pass_context
def grep(ctx, source: str, rule_name: Optional[str], limit: Optional[int]):
    """Print lines of SOURCE matching the rule table."""
    pipeline = LogPipeline(_load(ctx))

    try:
        for line, records in pipeline.iter_matches(_open_source(source), rule_name, limit):
            names = ",".join(record.rule_name for record in records)
            click.echo(f"{line.number}:[{names}] {line.text}")
    except LogAnalyticsError as e:
        click.echo(f"Error: {str(e)}", err=True)
        sys.exit(1)


@cli.command()
@click.pass_context
def rules(ctx):
    """List the active classification rules."""
    pipeline = LogPipeline(_load(ctx))

    for rule in pipeline.rule_manager.rules:
        severity = f" [{rule.severity}]" if rule.severity else ""
        click.echo(f"{rule.name}{severity}: {rule.pattern_str}")
        if rule.fields:
            click.echo(f"  fields: {', '.join(rule.fields)}")
        if rule.description:
            click.echo(f"  {rule.description}")


@cli.command()
@click.option(
    "--sample",
    "sample_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Check that every rule matches at least one line of this file",
)
@click.pass_context
def validate(ctx, sample_path: Optional[Path]):
    """Validate the pipeline configuration."""
    pipeline = LogPipeline(_load(ctx))

    samples = None
    if sample_path:
        samples = [line.rstrip("\r\n") for line in iter_file_lines(sample_path)]
    errors = pipeline.validate_configuration(samples)

    warnings = []
    for rate in pipeline.config.rates:
        thresholds = [SeverityThreshold.from_config(t) for t in rate.thresholds]
        warnings.extend(check_thresholds(thresholds))

    for warning in warnings:
        click.echo(f"Warning: {warning}")

    if errors:
        click.echo("Configuration validation errors:")
        for error in errors:
            click.echo(f"  - {error}")
        sys.exit(1)

    click.echo("Configuration validation passed")


@cli.command()
@click.argument("output_dir", type=click.Path(file_okay=False, path_type=Path))
@click.option("--lines", type=click.IntRange(min=1), default=500, help="Lines per file")
@click.option("--seed", type=int, default=None, help="Random seed")
def generate(output_dir: Path, lines: int, seed: Optional[int]):
    """Generate practice log files into OUTPUT_DIR."""
    written = DataGenerator(seed=seed).write_all(output_dir, lines)
    for path in written:
        click.echo(f"  - {path}")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
