"""
cnpj-enricher CLI

Commands:
- run: Enrich a CNPJ list, resuming from the checkpoint
- status: Show where the next run would resume
- reset: Delete the checkpoint
- format: Print normalized and display forms of CNPJs
- lookup: Look up a single CNPJ
"""

from __future__ import annotations

import csv
import signal
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

import typer

from cnpj_enricher.cnpj import display_cnpj, format_cnpj, normalize_cnpj
from cnpj_enricher.config import (
    DEFAULT_BASE_URL,
    DEFAULT_CHECKPOINT_PATH,
    DEFAULT_COOLDOWN_INTERVAL,
    DEFAULT_DELIMITER,
    DEFAULT_FLUSH_EVERY,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_RETAINED,
    DEFAULT_PACE_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    EnrichmentConfig,
)
from cnpj_enricher.lookup import LookupClient
from cnpj_enricher.log import setup_logging
from cnpj_enricher.pipeline.checkpoint import CheckpointStore, resume_index
from cnpj_enricher.pipeline.coordinator import load_identifiers
from cnpj_enricher.pipeline.records import OUTPUT_COLUMNS, EnrichmentRecord, build_record
from cnpj_enricher.pipeline.worker import Lookup, run_enrichment

app = typer.Typer(add_completion=False, help="Resumable CNPJ enrichment")


def echo_progress(current: int, total: int, cnpj: str, record: EnrichmentRecord) -> None:
    typer.echo(f"🔎 [{current}/{total}] {display_cnpj(cnpj)} - {record.name}")


def describe_cnpj(cnpj: str, lookup: Lookup, when: datetime) -> list[str]:
    """Look up one CNPJ and render its output record as "column: value" lines."""
    record = build_record(cnpj, lookup.lookup(cnpj), when)
    return [f"{column:>15}: {value}" for column, value in zip(OUTPUT_COLUMNS, record.as_row())]


def install_stop_handlers(stop: threading.Event) -> dict[int, Any]:
    """
    First SIGINT/SIGTERM asks the run to stop; a second one aborts.

    Returns the previous handlers so they can be restored.
    """
    def _handler(signum, _frame) -> None:
        if stop.is_set():
            raise KeyboardInterrupt
        stop.set()
        typer.echo("\n⏹️  Stopping after the current CNPJ (Ctrl+C again to abort)", err=True)

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.getsignal(signum)
        signal.signal(signum, _handler)
    return previous


@app.command("run")
def run_cmd(
    input_path: Path = typer.Argument(..., help="Delimited file with CNPJs in the second column"),
    output_path: Path = typer.Argument(..., help="Output file (.csv appends, .xlsx is rewritten)"),
    checkpoint: Path = typer.Option(
        DEFAULT_CHECKPOINT_PATH, "--checkpoint", help="Checkpoint file"
    ),
    fmt: str | None = typer.Option(
        None, "--format", help="Output format: csv or xlsx (default: from output suffix)"
    ),
    delimiter: str = typer.Option(DEFAULT_DELIMITER, "--delimiter", help="Input column delimiter"),
    pace: float = typer.Option(DEFAULT_PACE_INTERVAL, "--pace", help="Seconds between lookups"),
    cooldown: float = typer.Option(
        DEFAULT_COOLDOWN_INTERVAL, "--cooldown", help="Seconds to wait after HTTP 429"
    ),
    max_attempts: int = typer.Option(
        DEFAULT_MAX_ATTEMPTS, "--max-attempts", help="Attempts per CNPJ"
    ),
    timeout: float = typer.Option(
        DEFAULT_REQUEST_TIMEOUT, "--timeout", help="Per-request timeout in seconds"
    ),
    flush_every: int = typer.Option(
        DEFAULT_FLUSH_EVERY, "--flush-every", help="Records buffered between output flushes"
    ),
    max_retained: int = typer.Option(
        DEFAULT_MAX_RETAINED, "--max-retained", help="Records kept in memory after failed flushes"
    ),
    base_url: str = typer.Option(DEFAULT_BASE_URL, "--base-url", help="Lookup API base URL"),
    restart: bool = typer.Option(
        False, "--restart", help="Ignore and delete the checkpoint before starting"
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level"),
) -> None:
    """
    Enrich a list of CNPJs, one lookup at a time.

    Progress is checkpointed after every CNPJ; rerunning the same command
    resumes after the last processed one.

    Example:
        cnpj-enricher run empresas.csv resultado.xlsx --pace 21
    """
    setup_logging(log_level)

    try:
        config = EnrichmentConfig(
            input_path=input_path.expanduser(),
            output_path=output_path.expanduser(),
            checkpoint_path=checkpoint.expanduser(),
            output_format=fmt,
            delimiter=delimiter,
            pace_interval=pace,
            max_attempts=max_attempts,
            cooldown_interval=cooldown,
            request_timeout=timeout,
            flush_every=flush_every,
            max_retained=max_retained,
            base_url=base_url,
        )
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e

    if restart and CheckpointStore(config.checkpoint_path).clear():
        typer.echo(f"Checkpoint removed: {config.checkpoint_path}")

    stop = threading.Event()
    previous = install_stop_handlers(stop)

    try:
        result = run_enrichment(config, progress=echo_progress, cancel_event=stop)
    except (OSError, csv.Error, UnicodeDecodeError) as e:
        typer.echo(f"❌ Could not read input {config.input_path}: {e}", err=True)
        raise typer.Exit(code=1)
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)

    # Final summary
    typer.echo(f"\n{'='*60}")
    typer.echo(f"📊 Summary:")
    typer.echo(f"  CNPJs in input: {result.total}")
    typer.echo(f"  Resumed at: {result.start_index}")
    typer.echo(f"  Processed this run: {result.processed}")
    typer.echo(f"  Found: {result.found}")
    typer.echo(f"  Not found: {result.not_found}")
    typer.echo(f"  Failed: {result.failed}")
    typer.echo(f"  Elapsed: {result.elapsed_seconds:.1f}s")
    typer.echo(f"  Output: {config.output_path}")

    if result.checkpoint_failures:
        typer.echo(f"⚠️  Checkpoint writes failed: {result.checkpoint_failures}", err=True)
    if result.failed_flushes:
        typer.echo(f"⚠️  Output flushes failed: {result.failed_flushes}", err=True)
    if result.dropped:
        typer.echo(f"❌ Records lost after failed flushes: {result.dropped}", err=True)
    if result.cancelled:
        typer.echo(f"⏹️  Stopped early; {result.remaining} CNPJ(s) left. Rerun to resume.")


@app.command("status")
def status_cmd(
    input_path: Path = typer.Argument(..., help="Delimited file with CNPJs in the second column"),
    checkpoint: Path = typer.Option(
        DEFAULT_CHECKPOINT_PATH, "--checkpoint", help="Checkpoint file"
    ),
    delimiter: str = typer.Option(DEFAULT_DELIMITER, "--delimiter", help="Input column delimiter"),
) -> None:
    """Show the checkpoint and where the next run would resume."""
    try:
        identifiers = load_identifiers(input_path.expanduser(), delimiter=delimiter)
    except (OSError, csv.Error, UnicodeDecodeError) as e:
        typer.echo(f"❌ Could not read input {input_path}: {e}", err=True)
        raise typer.Exit(code=1)

    last = CheckpointStore(checkpoint.expanduser()).load()
    start = resume_index(identifiers, last)

    typer.echo(f"CNPJs in input: {len(identifiers)}")
    if last is None:
        typer.echo("Checkpoint: none")
    elif start == 0:
        typer.echo(f"Checkpoint: {last} (not in input, next run starts over)")
    else:
        typer.echo(f"Checkpoint: {format_cnpj(last)} (position {start})")
    typer.echo(f"Remaining: {len(identifiers) - start}")


@app.command("reset")
def reset_cmd(
    checkpoint: Path = typer.Option(
        DEFAULT_CHECKPOINT_PATH, "--checkpoint", help="Checkpoint file"
    ),
) -> None:
    """Delete the checkpoint so the next run starts from the beginning."""
    if CheckpointStore(checkpoint.expanduser()).clear():
        typer.echo(f"✅ Checkpoint removed: {checkpoint}")
    else:
        typer.echo(f"No checkpoint at {checkpoint}")


@app.command("format")
def format_cmd(
    cnpjs: list[str] = typer.Argument(..., help="CNPJs, punctuated or not"),
) -> None:
    """Print the normalized and display form of each CNPJ."""
    invalid = 0
    for raw in cnpjs:
        try:
            typer.echo(f"{normalize_cnpj(raw)}\t{format_cnpj(raw)}")
        except ValueError as e:
            invalid += 1
            typer.echo(f"❌ {raw}: {e}", err=True)
    if invalid:
        raise typer.Exit(code=2)


@app.command("lookup")
def lookup_cmd(
    cnpj: str = typer.Argument(..., help="CNPJ to look up"),
    max_attempts: int = typer.Option(
        DEFAULT_MAX_ATTEMPTS, "--max-attempts", help="Attempts before giving up"
    ),
    cooldown: float = typer.Option(
        DEFAULT_COOLDOWN_INTERVAL, "--cooldown", help="Seconds to wait after HTTP 429"
    ),
    timeout: float = typer.Option(
        DEFAULT_REQUEST_TIMEOUT, "--timeout", help="Per-request timeout in seconds"
    ),
    base_url: str = typer.Option(DEFAULT_BASE_URL, "--base-url", help="Lookup API base URL"),
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level"),
) -> None:
    """Look up a single CNPJ and print the record the batch would write."""
    setup_logging(log_level)

    normalized = normalize_cnpj(cnpj)
    try:
        format_cnpj(normalized)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e

    with LookupClient(
        base_url=base_url,
        timeout=timeout,
        max_attempts=max_attempts,
        cooldown=cooldown,
    ) as client:
        lines = describe_cnpj(normalized, client, datetime.now())

    for line in lines:
        typer.echo(line)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
