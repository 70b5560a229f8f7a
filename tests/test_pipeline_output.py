"""Tests for pipeline output writers, records and the flush buffer."""

from datetime import datetime
from pathlib import Path
import csv
import tempfile

from openpyxl import load_workbook
import pytest

from cnpj_enricher.lookup import EMAIL_PLACEHOLDER, NotFound, PermanentFailure, TransientFailure
from cnpj_enricher.pipeline.output import (
    CsvAppendWriter,
    ResultBuffer,
    WorkbookWriter,
    writer_for,
)
from cnpj_enricher.pipeline.records import OUTPUT_COLUMNS, build_record

from conftest import RecordingWriter, found


WHEN = datetime(2024, 5, 17, 14, 30, 0)


def make_records(n: int, start: int = 1):
    return [
        build_record(str(start + i).zfill(14), found(f"EMPRESA {start + i}"), WHEN)
        for i in range(n)
    ]


class TestBuildRecord:
    """Tests for build_record() function."""

    def test_found_record(self):
        """Test that a successful lookup fills every column."""
        record = build_record("11222333000181", found("ACME LTDA"), WHEN)

        assert record.cnpj == "11.222.333/0001-81"
        assert record.name == "ACME LTDA"
        assert record.state == "SP"
        assert record.city == "Campinas"
        assert record.link == "https://cnpj.biz/11222333000181"
        assert record.activity_code == "4744-0/01"
        assert record.timestamp == "2024-05-17 14:30:00"

    def test_not_found_record(self):
        """Test the placeholder row for a 404."""
        record = build_record("11222333000181", NotFound(), WHEN)

        assert record.name == "404 - Não encontrado"
        assert record.state == "N/D"
        assert record.email == EMAIL_PLACEHOLDER
        assert record.link == "https://cnpj.biz/11222333000181"

    def test_timeout_record(self):
        """Test the marker row after exhausted attempts."""
        record = build_record("11222333000181", TransientFailure(3, "rate limited"), WHEN)

        assert record.name == "Falha"
        assert record.state == "Timeout"
        assert record.city == "Timeout"
        assert record.activity_code == "Timeout"
        assert record.activity_description == "Timeout"
        assert record.email == EMAIL_PLACEHOLDER

    def test_error_record(self):
        """Test the marker row for a permanent failure."""
        record = build_record("11222333000181", PermanentFailure("status 500"), WHEN)

        assert record.name == "Erro"
        assert record.city == "Erro"
        assert record.email == EMAIL_PLACEHOLDER

    def test_row_matches_columns(self):
        """Test that as_row() lines up with the header."""
        row = build_record("11222333000181", found(), WHEN).as_row()

        assert len(row) == len(OUTPUT_COLUMNS)
        assert row[0] == "11.222.333/0001-81"
        assert row[-1] == "2024-05-17 14:30:00"

    def test_over_long_identifier_still_builds(self):
        """Test that a 15-digit identifier yields a row with its raw value."""
        record = build_record("112223330001810", PermanentFailure("status 400"), WHEN)

        assert record.cnpj == "112223330001810"
        assert record.link == "https://cnpj.biz/112223330001810"
        assert record.name == "Erro"


class TestCsvAppendWriter:
    """Tests for CsvAppendWriter."""

    def test_creates_file_with_header(self):
        """Test that the header is written to a new file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "out" / "resultado.csv"
            CsvAppendWriter(path).write(make_records(2))

            with path.open(encoding="utf-8", newline="") as f:
                rows = list(csv.reader(f))

            assert rows[0] == list(OUTPUT_COLUMNS)
            assert len(rows) == 3

    def test_appends_without_repeating_header(self):
        """Test that later writes append rows only."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "resultado.csv"
            writer = CsvAppendWriter(path)

            writer.write(make_records(2, start=1))
            writer.write(make_records(3, start=3))

            with path.open(encoding="utf-8", newline="") as f:
                rows = list(csv.reader(f))

            assert rows.count(list(OUTPUT_COLUMNS)) == 1
            assert len(rows) == 6
            assert rows[1][1] == "EMPRESA 1"
            assert rows[5][1] == "EMPRESA 5"

    def test_header_written_when_existing_file_empty(self):
        """Test that an empty pre-existing file gets a header."""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".csv", delete=False) as f:
            temp_path = Path(f.name)

        try:
            CsvAppendWriter(temp_path).write(make_records(1))
            with temp_path.open(encoding="utf-8", newline="") as f:
                rows = list(csv.reader(f))
            assert rows[0] == list(OUTPUT_COLUMNS)
        finally:
            temp_path.unlink()

    def test_custom_delimiter(self):
        """Test that the delimiter is honored."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "resultado.csv"
            CsvAppendWriter(path, delimiter=";").write(make_records(1))

            first_line = path.read_text(encoding="utf-8").splitlines()[0]
            assert first_line.startswith("CNPJ;Nome;UF")


class TestWorkbookWriter:
    """Tests for WorkbookWriter."""

    def test_writes_header_and_rows(self):
        """Test that a new workbook has a header and the records."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "resultado.xlsx"
            WorkbookWriter(path).write(make_records(2))

            ws = load_workbook(path).active
            rows = list(ws.iter_rows(values_only=True))

            assert rows[0] == OUTPUT_COLUMNS
            assert len(rows) == 3
            assert rows[1][0] == "00.000.000/0000-01"

    def test_later_flushes_keep_earlier_rows(self):
        """Test that rewriting the workbook preserves previously flushed rows."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "resultado.xlsx"
            writer = WorkbookWriter(path)

            writer.write(make_records(10, start=1))
            writer.write(make_records(3, start=11))

            rows = list(load_workbook(path).active.iter_rows(values_only=True))

            assert len(rows) == 14
            assert rows[1][1] == "EMPRESA 1"
            assert rows[13][1] == "EMPRESA 13"
            assert not (Path(tmpdir) / "resultado.xlsx.tmp").exists()


class TestWriterFor:
    """Tests for writer_for() function."""

    def test_infers_xlsx_from_suffix(self):
        assert isinstance(writer_for(Path("out.xlsx")), WorkbookWriter)

    def test_defaults_to_csv(self):
        assert isinstance(writer_for(Path("out.csv")), CsvAppendWriter)
        assert isinstance(writer_for(Path("out.txt")), CsvAppendWriter)

    def test_explicit_format_wins(self):
        assert isinstance(writer_for(Path("out.dat"), "xlsx"), WorkbookWriter)

    def test_unknown_format_raises(self):
        with pytest.raises(ValueError, match="Unsupported"):
            writer_for(Path("out.csv"), "parquet")


class TestResultBuffer:
    """Tests for ResultBuffer."""

    def test_due_every_n_records(self):
        """Test that a flush is due after each flush_every records."""
        buffer = ResultBuffer(RecordingWriter(), flush_every=3)
        due = []
        for record in make_records(7):
            buffer.add(record)
            due.append(buffer.due)

        assert due == [False, False, True, False, False, True, False]

    def test_flush_writes_and_clears(self):
        """Test that a successful flush empties the buffer."""
        writer = RecordingWriter()
        buffer = ResultBuffer(writer, flush_every=10)
        for record in make_records(4):
            buffer.add(record)

        assert buffer.flush() is True
        assert len(buffer) == 0
        assert len(writer.batches) == 1
        assert buffer.flushes == 1

    def test_empty_flush_does_not_call_writer(self):
        """Test that flushing nothing is a no-op."""
        writer = RecordingWriter()
        assert ResultBuffer(writer).flush() is True
        assert writer.batches == []

    def test_failed_flush_retains_records(self):
        """Test that records survive a failed flush and go out with the next one."""
        writer = RecordingWriter(fail_times=1)
        buffer = ResultBuffer(writer, flush_every=2)
        records = make_records(4)

        buffer.add(records[0])
        buffer.add(records[1])
        assert buffer.flush() is False
        assert len(buffer) == 2

        buffer.add(records[2])
        buffer.add(records[3])
        assert buffer.flush() is True

        assert writer.rows == records
        assert buffer.failed_flushes == 1
        assert buffer.dropped == 0

    def test_retention_is_bounded(self):
        """Test that the oldest records are dropped beyond max_retained."""
        writer = RecordingWriter(fail_times=2)
        buffer = ResultBuffer(writer, flush_every=3, max_retained=4)
        records = make_records(6)

        for record in records[:3]:
            buffer.add(record)
        buffer.flush()
        for record in records[3:]:
            buffer.add(record)
        buffer.flush()

        assert len(buffer) == 4
        assert buffer.dropped == 2
        assert buffer.pending == records[2:]

        assert buffer.flush() is True
        assert writer.rows == records[2:]
