"""
HTTP client for the public CNPJ API.

One GET per attempt against `<base_url><cnpj>`. HTTP 404 ends the lookup as
NotFound, HTTP 429 and transport errors wait a cooldown and retry, any other
non-200 status is a permanent failure.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from cnpj_enricher.config import (
    DEFAULT_BASE_URL,
    DEFAULT_COOLDOWN_INTERVAL,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_REQUEST_TIMEOUT,
)
from cnpj_enricher.pacing import Clock, SystemClock

from .models import (
    CnpjResponse,
    CompanyInfo,
    Found,
    LookupOutcome,
    NotFound,
    PermanentFailure,
    TransientFailure,
)

logger = logging.getLogger(__name__)

EMAIL_PLACEHOLDER = "e-mail não cadastrado"
# "not registered", "not determinable" and markers echoed from earlier runs
EMAIL_SENTINELS = frozenset({"", "N/D", "Erro", "Timeout"})


def clean_email(email: str | None) -> str:
    """
    Replace empty or sentinel e-mail values with the placeholder.

    Example:
        >>> clean_email("N/D")
        'e-mail não cadastrado'
        >>> clean_email("contato@acme.com.br")
        'contato@acme.com.br'
    """
    if email is None or email in EMAIL_SENTINELS:
        return EMAIL_PLACEHOLDER
    return email


def company_from_response(data: CnpjResponse) -> CompanyInfo:
    """Flatten an API response into the fields used in the output."""
    est = data.estabelecimento
    return CompanyInfo(
        name=data.razao_social,
        state=est.estado.sigla,
        city=est.cidade.nome,
        email=clean_email(est.email),
        activity_code=est.atividade_principal.subclasse,
        activity_description=est.atividade_principal.descricao,
    )


class LookupClient:
    """
    Looks up one CNPJ at a time with bounded retries.

    Parameters:
        base_url: Endpoint prefix; the normalized CNPJ is appended
        timeout: Per-request timeout in seconds
        max_attempts: Requests allowed per CNPJ
        cooldown: Seconds to wait after HTTP 429 or a transport error
        clock: Time source used for cooldowns
        http_client: Optional preconfigured httpx.Client (not closed by us)

    Example:
        >>> with LookupClient() as client:
        ...     outcome = client.lookup("11222333000181")
    """

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        cooldown: float = DEFAULT_COOLDOWN_INTERVAL,
        clock: Clock | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.max_attempts = max_attempts
        self.cooldown = cooldown
        self.clock = clock or SystemClock()
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            headers={"Accept": "application/json"},
        )

    def url_for(self, cnpj: str) -> str:
        return f"{self.base_url}{cnpj}"

    def lookup(self, cnpj: str) -> LookupOutcome:
        """
        Query a single normalized CNPJ.

        Returns:
            Found, NotFound, TransientFailure or PermanentFailure. Network
            problems are reported through the outcome, never raised.
        """
        url = self.url_for(cnpj)
        reason = ""

        for attempt in range(1, self.max_attempts + 1):
            try:
                resp = self._client.get(url)
            except httpx.TransportError as e:
                reason = f"{type(e).__name__}: {e}"
                logger.warning(
                    "lookup_transport_error",
                    extra={"cnpj": cnpj, "attempt": attempt, "error": reason},
                )
            else:
                if resp.status_code == 404:
                    return NotFound()

                if resp.status_code == 429:
                    reason = "rate limited (HTTP 429)"
                    logger.warning(
                        "lookup_rate_limited",
                        extra={"cnpj": cnpj, "attempt": attempt},
                    )
                elif resp.status_code != 200:
                    logger.error(
                        "lookup_unexpected_status",
                        extra={"cnpj": cnpj, "status": resp.status_code},
                    )
                    return PermanentFailure(f"unexpected status: {resp.status_code}")
                else:
                    return self._decode(cnpj, resp)

            if attempt < self.max_attempts:
                self.clock.sleep(self.cooldown)

        logger.error(
            "lookup_attempts_exhausted",
            extra={"cnpj": cnpj, "attempts": self.max_attempts, "reason": reason},
        )
        return TransientFailure(attempts=self.max_attempts, reason=reason)

    def _decode(self, cnpj: str, resp: httpx.Response) -> LookupOutcome:
        try:
            data = CnpjResponse.model_validate_json(resp.content)
        except ValidationError as e:
            logger.error(
                "lookup_invalid_body",
                extra={"cnpj": cnpj, "errors": e.error_count()},
            )
            return PermanentFailure(f"invalid response body: {e.error_count()} error(s)")
        return Found(company_from_response(data))

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> LookupClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
