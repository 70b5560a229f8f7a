"""
Run configuration.

Defaults reproduce the pacing the public API tolerates: one request every
21 seconds, a 25 second cooldown after HTTP 429, and three attempts per CNPJ.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

DEFAULT_BASE_URL = "https://publica.cnpj.ws/cnpj/"
DEFAULT_CHECKPOINT_PATH = Path("checkpoint.txt")
DEFAULT_PACE_INTERVAL = 21.0
DEFAULT_COOLDOWN_INTERVAL = 25.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_REQUEST_TIMEOUT = 35.0
DEFAULT_FLUSH_EVERY = 10
DEFAULT_MAX_RETAINED = 1000
DEFAULT_DELIMITER = ","

OUTPUT_FORMATS = ("csv", "xlsx")


@dataclass(frozen=True)
class EnrichmentConfig:
    """
    Settings for one enrichment run.

    Attributes:
        input_path: Delimited file with CNPJs in the second column
        output_path: CSV or XLSX destination
        checkpoint_path: Text file holding the last processed CNPJ
        output_format: "csv" or "xlsx"; inferred from output_path when None
        delimiter: Input column delimiter
        pace_interval: Seconds between consecutive lookups
        max_attempts: Attempts per CNPJ before giving up
        cooldown_interval: Seconds to wait after an HTTP 429
        request_timeout: Per-request timeout in seconds
        flush_every: Records buffered between output flushes
        max_retained: Upper bound on records kept after failed flushes
        base_url: Lookup endpoint; the CNPJ is appended
    """

    input_path: Path
    output_path: Path
    checkpoint_path: Path = DEFAULT_CHECKPOINT_PATH
    output_format: str | None = None
    delimiter: str = DEFAULT_DELIMITER
    pace_interval: float = DEFAULT_PACE_INTERVAL
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    cooldown_interval: float = DEFAULT_COOLDOWN_INTERVAL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    flush_every: int = DEFAULT_FLUSH_EVERY
    max_retained: int = DEFAULT_MAX_RETAINED
    base_url: str = DEFAULT_BASE_URL

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.flush_every < 1:
            raise ValueError("flush_every must be at least 1")
        if self.max_retained < self.flush_every:
            raise ValueError("max_retained must be at least flush_every")
        if self.pace_interval < 0 or self.cooldown_interval < 0:
            raise ValueError("intervals must not be negative")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if len(self.delimiter) != 1:
            raise ValueError("delimiter must be a single character")
        if self.output_format is not None and self.output_format not in OUTPUT_FORMATS:
            raise ValueError(
                f"output_format must be one of {', '.join(OUTPUT_FORMATS)}"
            )

    @property
    def resolved_format(self) -> str:
        """Output format, falling back to the output file suffix."""
        if self.output_format:
            return self.output_format
        return "xlsx" if self.output_path.suffix.lower() == ".xlsx" else "csv"
