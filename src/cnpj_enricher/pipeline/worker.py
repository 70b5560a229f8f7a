"""
Batch enrichment worker.

Drives one run: load the input, resume after the checkpoint, look up each
remaining CNPJ in order, checkpoint it, buffer its record, and flush the
buffer periodically and at the end.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
import threading
import time
from typing import Callable, Protocol

from cnpj_enricher.config import EnrichmentConfig
from cnpj_enricher.lookup import (
    Found,
    LookupClient,
    LookupOutcome,
    NotFound,
    PermanentFailure,
)
from cnpj_enricher.pacing import Clock, FixedIntervalPacer, SystemClock

from .checkpoint import CheckpointStore, resume_index
from .coordinator import load_identifiers
from .output import RecordWriter, ResultBuffer, writer_for
from .records import EnrichmentRecord, build_record

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str, EnrichmentRecord], None]


class Lookup(Protocol):
    """Anything with a `lookup(cnpj) -> LookupOutcome` method."""

    def lookup(self, cnpj: str) -> LookupOutcome:
        ...


@dataclass
class EnrichmentResult:
    """
    Statistics for one run.

    Attributes:
        total: CNPJs in the input
        start_index: Position the run resumed from
        processed: CNPJs processed in this run (not cumulative)
        found: Successful lookups
        not_found: Lookups answered with HTTP 404
        failed: Timeout and error records
        flushes: Successful output flushes
        failed_flushes: Output flushes that raised
        dropped: Records never written because flushes kept failing
        checkpoint_failures: Checkpoint writes that failed
        cancelled: Whether the run was stopped before the end of the input
        elapsed_seconds: Wall time of the run
    """

    total: int = 0
    start_index: int = 0
    processed: int = 0
    found: int = 0
    not_found: int = 0
    failed: int = 0
    flushes: int = 0
    failed_flushes: int = 0
    dropped: int = 0
    checkpoint_failures: int = 0
    cancelled: bool = False
    elapsed_seconds: float = 0.0

    @property
    def remaining(self) -> int:
        return self.total - self.start_index - self.processed


class BatchOrchestrator:
    """
    Sequential, resumable enrichment of a CNPJ list.

    Parameters:
        config: Run configuration
        lookup: Lookup client
        writer: Output writer
        checkpoint: Checkpoint store
        pacer: Spacing between lookups
        progress: Called after each CNPJ with (current, total, cnpj, record)
        now: Source of record timestamps
        cancel_event: Set to stop the run before the next CNPJ

    Example:
        >>> config = EnrichmentConfig(Path("in.csv"), Path("out.csv"))
        >>> with LookupClient() as client:
        ...     result = BatchOrchestrator.from_config(config, lookup=client).run()
        >>> print(f"Processed {result.processed} CNPJs")
    """

    def __init__(
        self,
        config: EnrichmentConfig,
        *,
        lookup: Lookup,
        writer: RecordWriter,
        checkpoint: CheckpointStore,
        pacer: FixedIntervalPacer,
        progress: ProgressCallback | None = None,
        now: Callable[[], datetime] = datetime.now,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.config = config
        self.lookup = lookup
        self.writer = writer
        self.checkpoint = checkpoint
        self.pacer = pacer
        self.progress = progress
        self.now = now
        self.cancel_event = cancel_event or threading.Event()

    @classmethod
    def from_config(
        cls,
        config: EnrichmentConfig,
        *,
        lookup: Lookup,
        clock: Clock | None = None,
        **kwargs,
    ) -> BatchOrchestrator:
        """
        Build an orchestrator with the writer, checkpoint and pacer for `config`.

        The caller owns `lookup` and is responsible for closing it.
        """
        clock = clock or SystemClock()
        return cls(
            config,
            lookup=lookup,
            writer=writer_for(
                config.output_path,
                config.resolved_format,
                delimiter=config.delimiter,
            ),
            checkpoint=CheckpointStore(config.checkpoint_path),
            pacer=FixedIntervalPacer(config.pace_interval, clock),
            **kwargs,
        )

    def cancel(self) -> None:
        self.cancel_event.set()

    def run(self) -> EnrichmentResult:
        """
        Process every CNPJ after the checkpoint.

        Returns:
            EnrichmentResult for this run

        Raises:
            OSError, csv.Error, UnicodeDecodeError: If the input cannot be read.
            This is the only error that aborts a run.
        """
        start_time = time.perf_counter()
        result = EnrichmentResult()

        identifiers = load_identifiers(
            self.config.input_path, delimiter=self.config.delimiter
        )
        result.total = len(identifiers)

        last = self.checkpoint.load()
        result.start_index = resume_index(identifiers, last)
        if last and result.start_index == 0:
            logger.warning(
                "checkpoint_not_in_input",
                extra={"checkpoint": last, "input": str(self.config.input_path)},
            )
        logger.info(
            "run_started",
            extra={"total": result.total, "start_index": result.start_index},
        )

        buffer = ResultBuffer(
            self.writer,
            flush_every=self.config.flush_every,
            max_retained=self.config.max_retained,
        )
        pending = identifiers[result.start_index:]

        try:
            for i, cnpj in enumerate(pending):
                if self._stop_requested(result):
                    break
                self.pacer.wait(self.cancel_event)
                if self._stop_requested(result):
                    break

                outcome = self._lookup(cnpj)
                record = build_record(cnpj, outcome, self.now())
                self.pacer.mark()
                self._count(result, outcome)

                buffer.add(record)
                if not self.checkpoint.save(cnpj):
                    result.checkpoint_failures += 1
                result.processed += 1

                if buffer.due:
                    buffer.flush()

                if self.progress is not None:
                    current = result.start_index + i + 1
                    self.progress(current, result.total, cnpj, record)
        finally:
            buffer.flush()
            # the checkpoint is already past anything still pending
            lost = len(buffer)
            if lost:
                logger.error("records_lost", extra={"count": lost})
            result.flushes = buffer.flushes
            result.failed_flushes = buffer.failed_flushes
            result.dropped = buffer.dropped + lost
            result.elapsed_seconds = time.perf_counter() - start_time
            logger.info(
                "run_finished",
                extra={
                    "processed": result.processed,
                    "found": result.found,
                    "not_found": result.not_found,
                    "failed": result.failed,
                    "cancelled": result.cancelled,
                },
            )

        return result

    def _stop_requested(self, result: EnrichmentResult) -> bool:
        if not self.cancel_event.is_set():
            return False
        result.cancelled = True
        logger.info("run_cancelled", extra={"processed": result.processed})
        return True

    def _lookup(self, cnpj: str) -> LookupOutcome:
        try:
            return self.lookup.lookup(cnpj)
        except Exception as e:
            logger.exception("lookup_crashed", extra={"cnpj": cnpj})
            return PermanentFailure(f"{type(e).__name__}: {e}")

    @staticmethod
    def _count(result: EnrichmentResult, outcome: LookupOutcome) -> None:
        if isinstance(outcome, Found):
            result.found += 1
        elif isinstance(outcome, NotFound):
            result.not_found += 1
        else:
            result.failed += 1


def run_enrichment(
    config: EnrichmentConfig,
    *,
    progress: ProgressCallback | None = None,
    cancel_event: threading.Event | None = None,
    clock: Clock | None = None,
) -> EnrichmentResult:
    """
    Run a full enrichment with a LookupClient owned by this call.

    Parameters:
        config: Run configuration
        progress: Optional per-CNPJ callback
        cancel_event: Optional stop signal
        clock: Time source for pacing and cooldowns

    Returns:
        EnrichmentResult
    """
    clock = clock or SystemClock()
    with LookupClient(
        base_url=config.base_url,
        timeout=config.request_timeout,
        max_attempts=config.max_attempts,
        cooldown=config.cooldown_interval,
        clock=clock,
    ) as client:
        orchestrator = BatchOrchestrator.from_config(
            config,
            lookup=client,
            clock=clock,
            progress=progress,
            cancel_event=cancel_event,
        )
        return orchestrator.run()
