"""
Input loading.

Reads the list of CNPJs to enrich from a delimited file whose first row is a
header and whose second column holds the CNPJ.
"""

from __future__ import annotations

import csv
from pathlib import Path

from cnpj_enricher.cnpj import normalize_cnpj

CNPJ_COLUMN = 1


def load_identifiers(input_path: Path, *, delimiter: str = ",") -> list[str]:
    """
    Read and normalize CNPJs from the input file.

    The header row is discarded and rows with fewer than two columns are
    skipped. Duplicates are kept in input order.

    Parameters:
        input_path: Delimited input file
        delimiter: Column separator

    Returns:
        Normalized CNPJs in file order

    Raises:
        OSError: If the file cannot be opened
        csv.Error: If the file is not valid delimited text
        UnicodeDecodeError: If the file is not UTF-8

    Example:
        >>> cnpjs = load_identifiers(Path("data/empresas.csv"))
        >>> print(f"{len(cnpjs)} CNPJs to process")
    """
    identifiers: list[str] = []
    with Path(input_path).open("r", encoding="utf-8-sig", newline="") as f:
        reader = csv.reader(f, delimiter=delimiter)
        next(reader, None)  # header
        for row in reader:
            if len(row) <= CNPJ_COLUMN:
                continue
            identifiers.append(normalize_cnpj(row[CNPJ_COLUMN]))
    return identifiers
