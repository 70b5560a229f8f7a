"""
Lookup of company data in the public CNPJ API.

Basic usage:
    >>> from cnpj_enricher.lookup import LookupClient, Found
    >>>
    >>> with LookupClient() as client:
    ...     outcome = client.lookup("11222333000181")
    ...     if isinstance(outcome, Found):
    ...         print(outcome.company.name)
"""

from .models import (
    CnpjResponse,
    CompanyInfo,
    LookupOutcome,
    Found,
    NotFound,
    TransientFailure,
    PermanentFailure,
)
from .client import (
    LookupClient,
    EMAIL_PLACEHOLDER,
    clean_email,
    company_from_response,
)

__all__ = [
    # Models
    "CnpjResponse",
    "CompanyInfo",
    # Outcomes
    "LookupOutcome",
    "Found",
    "NotFound",
    "TransientFailure",
    "PermanentFailure",
    # Client
    "LookupClient",
    "EMAIL_PLACEHOLDER",
    "clean_email",
    "company_from_response",
]
