"""
Output writers and the flush buffer.

Records are buffered in memory and flushed every few records. Two output
formats are supported:

- CSV: rows are appended; the header is written only when the file is empty.
- XLSX: the workbook is rewritten on every flush, keeping the rows of earlier
  flushes and runs.
"""

from __future__ import annotations

import csv
import logging
import os
from pathlib import Path
from typing import Protocol, Sequence

from openpyxl import Workbook, load_workbook

from cnpj_enricher.config import DEFAULT_FLUSH_EVERY, DEFAULT_MAX_RETAINED

from .records import OUTPUT_COLUMNS, EnrichmentRecord

logger = logging.getLogger(__name__)

SHEET_NAME = "Sheet1"


class RecordWriter(Protocol):
    """Durable destination for enrichment records."""

    path: Path

    def write(self, records: Sequence[EnrichmentRecord]) -> None:
        ...


class CsvAppendWriter:
    """
    Appends records to a CSV file.

    Never rereads or rewrites earlier content, so it is safe across restarts.

    Parameters:
        path: Destination CSV file
        delimiter: Column separator
    """

    def __init__(self, path: Path, *, delimiter: str = ",") -> None:
        self.path = Path(path)
        self.delimiter = delimiter

    def write(self, records: Sequence[EnrichmentRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        write_header = not self.path.exists() or self.path.stat().st_size == 0
        with self.path.open("a", encoding="utf-8", newline="") as f:
            writer = csv.writer(f, delimiter=self.delimiter)
            if write_header:
                writer.writerow(OUTPUT_COLUMNS)
            for record in records:
                writer.writerow(record.as_row())
            f.flush()


class WorkbookWriter:
    """
    Writes records to a single-sheet XLSX workbook.

    The whole file is rewritten on each call. Rows already in the workbook are
    kept and the new ones appended after them.

    Parameters:
        path: Destination .xlsx file
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def write(self, records: Sequence[EnrichmentRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

        if self.path.exists() and self.path.stat().st_size > 0:
            wb = load_workbook(self.path)
            ws = wb.active
        else:
            wb = Workbook()
            ws = wb.active
            ws.title = SHEET_NAME
            ws.append(list(OUTPUT_COLUMNS))

        for record in records:
            ws.append(list(record.as_row()))

        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            wb.save(tmp_path)
            os.replace(tmp_path, self.path)
        finally:
            wb.close()
            if tmp_path.exists():
                tmp_path.unlink()


def writer_for(path: Path, fmt: str | None = None, *, delimiter: str = ",") -> RecordWriter:
    """
    Pick a writer for the output path.

    Parameters:
        path: Output file
        fmt: "csv" or "xlsx"; inferred from the suffix when None
        delimiter: CSV separator

    Raises:
        ValueError: If fmt is not a supported format
    """
    path = Path(path)
    if fmt is None:
        fmt = "xlsx" if path.suffix.lower() == ".xlsx" else "csv"
    if fmt == "xlsx":
        return WorkbookWriter(path)
    if fmt == "csv":
        return CsvAppendWriter(path, delimiter=delimiter)
    raise ValueError(f"Unsupported output format: {fmt}")


class ResultBuffer:
    """
    In-memory buffer of records awaiting a flush.

    A flush is due every `flush_every` records added. When a flush fails the
    records stay buffered for the next one, up to `max_retained`; beyond that
    the oldest are dropped and counted.

    Parameters:
        writer: Destination writer
        flush_every: Records added between flushes
        max_retained: Maximum records kept after failed flushes
    """

    def __init__(
        self,
        writer: RecordWriter,
        *,
        flush_every: int = DEFAULT_FLUSH_EVERY,
        max_retained: int = DEFAULT_MAX_RETAINED,
    ) -> None:
        self.writer = writer
        self.flush_every = flush_every
        self.max_retained = max_retained
        self.pending: list[EnrichmentRecord] = []
        self.added = 0
        self.flushes = 0
        self.failed_flushes = 0
        self.dropped = 0

    def __len__(self) -> int:
        return len(self.pending)

    def add(self, record: EnrichmentRecord) -> None:
        self.pending.append(record)
        self.added += 1

    @property
    def due(self) -> bool:
        return self.added > 0 and self.added % self.flush_every == 0

    def flush(self) -> bool:
        """
        Write pending records.

        Returns:
            True if nothing was pending or the write succeeded
        """
        if not self.pending:
            return True

        try:
            self.writer.write(self.pending)
        except Exception as e:
            self.failed_flushes += 1
            overflow = len(self.pending) - self.max_retained
            if overflow > 0:
                del self.pending[:overflow]
                self.dropped += overflow
            logger.error(
                "flush_failed",
                extra={
                    "path": str(self.writer.path),
                    "retained": len(self.pending),
                    "dropped": max(overflow, 0),
                    "error": str(e),
                },
            )
            return False

        logger.debug(
            "flushed",
            extra={"path": str(self.writer.path), "records": len(self.pending)},
        )
        self.flushes += 1
        self.pending.clear()
        return True
