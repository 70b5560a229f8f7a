"""
Enrichment output records.

Every CNPJ that reaches processing produces exactly one record, whatever the
lookup outcome. Failures are written as rows with marker values so the output
keeps one line per processed identifier.
"""

from __future__ import annotations

from dataclasses import dataclass, astuple
from datetime import datetime

from cnpj_enricher.cnpj import cnpj_link, display_cnpj
from cnpj_enricher.lookup import (
    EMAIL_PLACEHOLDER,
    Found,
    LookupOutcome,
    NotFound,
    TransientFailure,
)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

OUTPUT_COLUMNS = (
    "CNPJ",
    "Nome",
    "UF",
    "Cidade",
    "E-mail",
    "Link",
    "CNAE Código",
    "CNAE Descrição",
    "Data/Hora",
)

NOT_FOUND_NAME = "404 - Não encontrado"
NOT_FOUND_VALUE = "N/D"
TIMEOUT_NAME = "Falha"
TIMEOUT_VALUE = "Timeout"
ERROR_VALUE = "Erro"


@dataclass(frozen=True)
class EnrichmentRecord:
    """
    One output row.

    Attributes:
        cnpj: Display form (AA.AAA.AAA/AAAA-AA)
        name: Registered name (razão social)
        state: State code (UF)
        city: City name
        email: Contact e-mail or placeholder
        link: Reference link built from the CNPJ
        activity_code: Primary CNAE code
        activity_description: Primary CNAE description
        timestamp: When the lookup completed
    """

    cnpj: str
    name: str
    state: str
    city: str
    email: str
    link: str
    activity_code: str
    activity_description: str
    timestamp: str

    def as_row(self) -> tuple[str, ...]:
        """Values in OUTPUT_COLUMNS order."""
        return astuple(self)


def _marker_record(cnpj: str, name: str, value: str, when: datetime) -> EnrichmentRecord:
    return EnrichmentRecord(
        cnpj=display_cnpj(cnpj),
        name=name,
        state=value,
        city=value,
        email=EMAIL_PLACEHOLDER,
        link=cnpj_link(cnpj),
        activity_code=value,
        activity_description=value,
        timestamp=when.strftime(TIMESTAMP_FORMAT),
    )


def build_record(cnpj: str, outcome: LookupOutcome, when: datetime) -> EnrichmentRecord:
    """
    Build the output record for a lookup outcome.

    Parameters:
        cnpj: Normalized CNPJ
        outcome: Result of LookupClient.lookup()
        when: Completion time

    Returns:
        EnrichmentRecord; PermanentFailure and unknown outcomes map to the
        "Erro" marker row
    """
    if isinstance(outcome, Found):
        company = outcome.company
        return EnrichmentRecord(
            cnpj=display_cnpj(cnpj),
            name=company.name,
            state=company.state,
            city=company.city,
            email=company.email,
            link=cnpj_link(cnpj),
            activity_code=company.activity_code,
            activity_description=company.activity_description,
            timestamp=when.strftime(TIMESTAMP_FORMAT),
        )
    if isinstance(outcome, NotFound):
        return _marker_record(cnpj, NOT_FOUND_NAME, NOT_FOUND_VALUE, when)
    if isinstance(outcome, TransientFailure):
        return _marker_record(cnpj, TIMEOUT_NAME, TIMEOUT_VALUE, when)
    return _marker_record(cnpj, ERROR_VALUE, ERROR_VALUE, when)
