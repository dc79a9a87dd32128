"""
Streaming log analytics pipeline.
"""

import asyncio
import logging
from datetime import datetime
from itertools import islice
from pathlib import Path
from typing import Dict, Any, Callable, Iterable, Iterator, List, Optional, Tuple, Union

import psutil

from ..aggregation.aggregator import Aggregator
from ..config import PipelineConfig, load_pipeline_config
from ..domain.records import ExtractedRecord, LogLine, Report
from ..report.builder import ReportBuilder
from ..utils.exceptions import AggregationError, LogParserError
from ..utils.helpers import decode_line, iter_raw_lines
from .classifier import LineClassifier
from .patterns import RuleManager


logger = logging.getLogger(__name__)

RecordCallback = Callable[[ExtractedRecord], None]
RawLine = Union[str, bytes]


def _new_stats() -> Dict[str, Any]:
    return {
        "total_lines": 0,
        "matched_lines": 0,
        "unmatched_lines": 0,
        "records": 0,
        "extraction_failures": 0,
        "decode_errors": 0,
        "processing_errors": 0,
    }


class LogPipeline:
    """Reads lines one at a time, classifies them and folds the results."""

    def __init__(self, config: Optional[PipelineConfig] = None, preset: str = "access") -> None:
        """
        Initialize log pipeline.

        Args:
            config: Pipeline configuration
            preset: Built-in preset used when no configuration is given
        """
        self.config = config or load_pipeline_config(preset=preset)
        self.rule_manager = RuleManager(self.config.rules)
        self.classifier = LineClassifier(self.rule_manager)
        self.aggregator = Aggregator.from_config(self.config.aggregates)

        self._callbacks: List[RecordCallback] = []
        self._processing_stats = _new_stats()
        self._start_time = datetime.now()
        self._end_time: Optional[datetime] = None

    def _classify_into(
        self,
        line: LogLine,
        aggregator: Aggregator,
        stats: Dict[str, Any],
        decode_error: bool = False,
    ) -> List[ExtractedRecord]:
        stats["total_lines"] += 1
        if decode_error:
            stats["decode_errors"] += 1

        try:
            records = self.classifier.classify(line)
            for record in records:
                aggregator.fold(record)
        except Exception:
            # Failed lines count as unmatched: matched + unmatched == total
            stats["unmatched_lines"] += 1
            stats["processing_errors"] += 1
            raise

        for record in records:
            if record.extraction_failed:
                stats["extraction_failures"] += 1

        stats["records"] += len(records)
        if records:
            stats["matched_lines"] += 1
        else:
            stats["unmatched_lines"] += 1

        return records

    def process_line(self, raw_line: RawLine, number: Optional[int] = None) -> List[ExtractedRecord]:
        """
        Classify a single line and fold its records into the aggregates.

        A line that fails is still counted, as unmatched and as a processing
        error.

        Args:
            raw_line: Line text or undecoded bytes, with or without its
                trailing newline
            number: Line ordinal; defaults to the next position in the stream

        Returns:
            Records produced for the line

        Raises:
            AggregationError: If the pipeline has already been finalized
            LogParserError: If the line could not be processed
        """
        if self.aggregator.is_finalized:
            raise AggregationError("Cannot process lines after the pipeline is finalized")

        if number is None:
            number = self._processing_stats["total_lines"] + 1
        text, decode_error = decode_line(raw_line)
        line = LogLine(number=number, text=text.rstrip("\r\n"))

        try:
            records = self._classify_into(
                line, self.aggregator, self._processing_stats, decode_error
            )
        except Exception as e:
            logger.error(f"Error processing line {number}: {str(e)}")
            raise LogParserError(f"Failed to process line {number}: {str(e)}")

        self._notify_callbacks(records)
        return records

    def process_lines(self, lines: Iterable[RawLine]) -> Dict[str, Any]:
        """
        Process a stream of lines in a single pass.

        A line that fails is counted and skipped; processing continues with
        the next line.

        Returns:
            Processing statistics
        """
        for line in lines:
            try:
                self.process_line(line)
            except LogParserError as e:
                logger.warning(f"Skipping line: {str(e)}")
                continue

        return self.get_pipeline_stats()

    def process_file(self, path: Union[str, Path]) -> Dict[str, Any]:
        """
        Stream a file through the pipeline.

        Raises:
            SourceUnavailableError: If the file cannot be opened
        """
        logger.info(f"Processing {path}")
        return self.process_lines(iter_raw_lines(path))

    async def parse_log_stream(self, log_stream: asyncio.StreamReader) -> Dict[str, Any]:
        """
        Process lines from an async stream (e.g. a subprocess's stdout).

        Args:
            log_stream: Async stream reader

        Returns:
            Processing statistics
        """
        try:
            while True:
                line = await log_stream.readline()
                if not line:
                    break

                try:
                    self.process_line(line)
                except LogParserError as e:
                    logger.warning(f"Skipping stream line: {str(e)}")
                    continue

        except asyncio.CancelledError:
            logger.info("Log stream processing cancelled")

        return self.get_pipeline_stats()

    def iter_matches(
        self,
        lines: Iterable[RawLine],
        rule_name: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Iterator[Tuple[LogLine, List[ExtractedRecord]]]:
        """
        Lazily yield matching lines without touching the aggregates.

        Input is consumed only as far as needed: with a limit, iteration
        stops right after the limit-th match.

        Args:
            lines: Line source
            rule_name: Only report records of this rule
            limit: Stop after this many matching lines
        """
        if rule_name is not None and self.rule_manager.get_rule(rule_name) is None:
            raise LogParserError(f"Unknown rule '{rule_name}'")

        def matching() -> Iterator[Tuple[LogLine, List[ExtractedRecord]]]:
            for number, raw_line in enumerate(lines, start=1):
                text, _ = decode_line(raw_line)
                line = LogLine(number=number, text=text.rstrip("\r\n"))
                records = self.classifier.classify(line)
                if rule_name is not None:
                    records = [r for r in records if r.rule_name == rule_name]
                if records:
                    yield line, records

        return islice(matching(), limit)

    def _process_shard(
        self, first_number: int, chunk: List[RawLine]
    ) -> Tuple[Aggregator, Dict[str, Any]]:
        shard = self.aggregator.new_shard()
        stats = _new_stats()

        for offset, raw_line in enumerate(chunk):
            text, decode_error = decode_line(raw_line)
            line = LogLine(number=first_number + offset, text=text.rstrip("\r\n"))
            try:
                self._classify_into(line, shard, stats, decode_error)
            except Exception as e:
                logger.error(f"Error processing line {line.number}: {str(e)}")

        return shard, stats

    async def process_in_shards(
        self, lines: Iterable[RawLine], shard_size: int = 1000, max_workers: int = 4
    ) -> Dict[str, Any]:
        """
        Process lines in bounded chunks on worker threads.

        Each chunk is folded into its own shard aggregator; shards are then
        sum-merged into the pipeline's aggregator, so the result equals a
        single-pass run. At most shard_size * max_workers lines are held in
        memory at once. Callbacks are not invoked for sharded runs.

        Returns:
            Processing statistics
        """
        if shard_size < 1 or max_workers < 1:
            raise ValueError("shard_size and max_workers must be positive")
        if self.aggregator.is_finalized:
            raise AggregationError("Cannot process lines after the pipeline is finalized")

        iterator = iter(lines)
        next_number = self._processing_stats["total_lines"] + 1

        while True:
            group = []
            for _ in range(max_workers):
                chunk = list(islice(iterator, shard_size))
                if not chunk:
                    break
                group.append((next_number, chunk))
                next_number += len(chunk)

            if not group:
                break

            results = await asyncio.gather(
                *(asyncio.to_thread(self._process_shard, start, chunk) for start, chunk in group)
            )

            for shard, stats in results:
                self.aggregator.merge(shard)
                for key, value in stats.items():
                    self._processing_stats[key] += value

            logger.debug(f"Merged {len(results)} shards, next line {next_number}")

        return self.get_pipeline_stats()

    def add_callback(self, callback: RecordCallback) -> None:
        """
        Add a callback for extracted records.

        Args:
            callback: Callback function that receives each record
        """
        self._callbacks.append(callback)
        logger.debug(f"Added pipeline callback: {getattr(callback, '__name__', callback)}")

    def remove_callback(self, callback: RecordCallback) -> None:
        """Remove a callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)
            logger.debug(f"Removed pipeline callback: {getattr(callback, '__name__', callback)}")

    def _notify_callbacks(self, records: List[ExtractedRecord]) -> None:
        for record in records:
            for callback in self._callbacks:
                try:
                    callback(record)
                except Exception as e:
                    logger.error(
                        f"Error in pipeline callback {getattr(callback, '__name__', callback)}: {str(e)}"
                    )

    def finalize(self) -> None:
        """Mark the end of the stream."""
        if self._end_time is None:
            self._end_time = datetime.now()
        self.aggregator.finalize()

    def build_report(self) -> Report:
        """Build a report snapshot from the current aggregates."""
        builder = ReportBuilder()
        return builder.build(self.aggregator, self.config, self.get_pipeline_stats())

    def get_pipeline_stats(self) -> Dict[str, Any]:
        """
        Get pipeline statistics.

        Returns:
            Pipeline statistics
        """
        end_time = self._end_time or datetime.now()
        elapsed = (end_time - self._start_time).total_seconds()

        stats = self._processing_stats.copy()
        stats.update(
            {
                "start_time": self._start_time.isoformat(),
                "elapsed_seconds": elapsed,
                "processing_rate": stats["total_lines"] / elapsed if elapsed > 0 else 0.0,
                "memory_rss_mb": round(psutil.Process().memory_info().rss / 1024 / 1024, 2),
                "finalized": self.aggregator.is_finalized,
            }
        )
        return stats

    def reset(self) -> None:
        """Discard aggregates and statistics."""
        self.aggregator = self.aggregator.new_shard()
        self._processing_stats = _new_stats()
        self._start_time = datetime.now()
        self._end_time = None
        logger.info("Pipeline state reset")

    def validate_configuration(self, samples: Optional[List[str]] = None) -> List[str]:
        """
        Validate pipeline configuration.

        Returns:
            List of validation errors
        """
        errors = self.config.validate_references()
        errors.extend(self.rule_manager.validate_rules(samples))
        return errors
