"""Shared fixtures: virtual clock, scripted lookups and sample inputs."""

from __future__ import annotations

import csv
import json
import threading
from datetime import datetime
from pathlib import Path

import httpx
import pytest

from cnpj_enricher.lookup import CompanyInfo, Found, LookupOutcome


FIXTURES_DIR = Path(__file__).parent / "fixtures"


class FakeClock:
    """Virtual clock: sleeping advances time instantly and is recorded.

    `on_sleep` runs after each sleep or wait, to simulate events that arrive
    while the caller is blocked.
    """

    def __init__(self, start: float = 1000.0, on_sleep=None) -> None:
        self.now = start
        self.sleeps: list[float] = []
        self.on_sleep = on_sleep

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        if self.on_sleep is not None:
            self.on_sleep()

    def wait(self, event: threading.Event, seconds: float) -> bool:
        self.sleep(seconds)
        return event.is_set()

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedLookup:
    """Lookup returning preset outcomes per CNPJ, Found by default."""

    def __init__(self, outcomes: dict[str, LookupOutcome] | None = None) -> None:
        self.outcomes = outcomes or {}
        self.calls: list[str] = []

    def lookup(self, cnpj: str) -> LookupOutcome:
        self.calls.append(cnpj)
        return self.outcomes.get(cnpj, found(f"EMPRESA {cnpj}"))


class RecordingWriter:
    """Writer that keeps every batch it is asked to write."""

    def __init__(self, path: Path = Path("memory.csv"), fail_times: int = 0) -> None:
        self.path = path
        self.batches: list[list] = []
        self.fail_times = fail_times

    def write(self, records) -> None:
        if self.fail_times > 0:
            self.fail_times -= 1
            raise OSError("disk full")
        self.batches.append(list(records))

    @property
    def rows(self) -> list:
        return [r for batch in self.batches for r in batch]


def found(name: str = "ACME LTDA", email: str = "contato@acme.com.br") -> Found:
    return Found(
        CompanyInfo(
            name=name,
            state="SP",
            city="Campinas",
            email=email,
            activity_code="4744-0/01",
            activity_description="Comércio varejista de ferragens",
        )
    )


def write_input(path: Path, cnpjs: list[str]) -> Path:
    """Write an input file in the expected layout (CNPJ in column 2)."""
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["razao_social", "cnpj"])
        for i, cnpj in enumerate(cnpjs):
            writer.writerow([f"Empresa {i}", cnpj])
    return path


def fixed_now() -> datetime:
    return datetime(2024, 5, 17, 14, 30, 0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def api_payload() -> dict:
    return json.loads((FIXTURES_DIR / "cnpj_response.json").read_text(encoding="utf-8"))


def mock_http(statuses: list[int], payload: dict | None = None) -> tuple[httpx.Client, list[httpx.Request]]:
    """httpx.Client answering successive requests with the given statuses."""
    requests: list[httpx.Request] = []
    queue = list(statuses)

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        status = queue.pop(0) if queue else 500
        if status == 200:
            return httpx.Response(200, json=payload or {})
        return httpx.Response(status, json={"status": status})

    return httpx.Client(transport=httpx.MockTransport(handler)), requests
