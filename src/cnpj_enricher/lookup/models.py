"""
Pydantic models for the public CNPJ API response and lookup outcomes.

Only the fields used in the enrichment output are modeled. Missing or null
values decode to empty strings so a sparse response still yields a row.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _ApiModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _none_to_default(cls, value, info):
        if value is None:
            field = cls.model_fields[info.field_name]
            return field.get_default(call_default_factory=True)
        return value


class State(_ApiModel):
    sigla: str = ""


class City(_ApiModel):
    nome: str = ""


class Activity(_ApiModel):
    """Primary economic activity (CNAE)."""

    subclasse: str = ""
    descricao: str = ""


class Establishment(_ApiModel):
    """The `estabelecimento` block of the response."""

    email: str = ""
    estado: State = Field(default_factory=State)
    cidade: City = Field(default_factory=City)
    atividade_principal: Activity = Field(default_factory=Activity)


class CnpjResponse(_ApiModel):
    """
    Response body of GET /cnpj/<cnpj>.

    Example:
        >>> resp = CnpjResponse.model_validate({"razao_social": "ACME LTDA"})
        >>> resp.estabelecimento.cidade.nome
        ''
    """

    razao_social: str = ""
    estabelecimento: Establishment = Field(default_factory=Establishment)


class CompanyInfo(BaseModel):
    """Flattened company data carried by a successful lookup."""

    model_config = ConfigDict(frozen=True)

    name: str
    state: str
    city: str
    email: str
    activity_code: str
    activity_description: str


class LookupOutcome:
    """Base class of the values returned by `LookupClient.lookup()`."""


@dataclass(frozen=True)
class Found(LookupOutcome):
    company: CompanyInfo


@dataclass(frozen=True)
class NotFound(LookupOutcome):
    pass


@dataclass(frozen=True)
class TransientFailure(LookupOutcome):
    """Every attempt was rate limited or hit a transport error."""

    attempts: int
    reason: str


@dataclass(frozen=True)
class PermanentFailure(LookupOutcome):
    """Unexpected status or unusable body; not retried."""

    reason: str
