"""Shared fixtures: sample messages, configuration and a call-counting model client."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest
from pydantic import BaseModel

from mailsift.core.config import Config
from mailsift.pipeline.processor import build_services
from mailsift.pipeline.stages.base import StageServices
from mailsift.schemas.extraction import (
    BillsResponse,
    ClassificationsResponse,
    EventsResponse,
    PeopleResponse,
    RenderedBill,
    RenderedReceipt,
    RenderedSummary,
    TransactionsResponse,
)

DEFAULT_RESPONSES: dict[type[BaseModel], dict[str, Any]] = {
    ClassificationsResponse: {
        "classifications": [
            {"coordinate": ["finance", "bill"], "strength": 0.9, "reason": "Mentions an invoice"}
        ]
    },
    EventsResponse: {"events": []},
    PeopleResponse: {"people": []},
    TransactionsResponse: {"transactions": []},
    BillsResponse: {"bills": []},
    RenderedSummary: {"summary": "# Invoice #123\n\nAlice sent an invoice.\n"},
    RenderedReceipt: {"receipt": "# Receipt\n\n| date | amount |\n"},
    RenderedBill: {"bill": "# Bill from Acme Power\n\nAmount due: 42.00\n"},
}

SAMPLE_BILL = {
    "provider": "Acme Power",
    "kind": "utility",
    "amount_due": 42.0,
    "due_date": "2024-02-01",
    "period": "January 2024",
    "status": "due",
    "description": "Electricity",
    "reason": "Invoice with an amount due",
}

SAMPLE_TRANSACTION = {
    "date": "2024-01-15",
    "amount": 19.99,
    "description": "Books",
    "type": "order",
    "category": "education",
    "status": "completed",
    "due_date": "",
    "merchant_organization": "Bookshop",
    "merchant_type": "other",
    "reason": "Order confirmation",
}


class StubModelClient:
    """Model client double that returns canned responses and records every call."""

    def __init__(self, text: str = "Plain text version") -> None:
        self.responses = dict(DEFAULT_RESPONSES)
        self.text = text
        self.calls: list[tuple[str, str | None]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def complete(
        self,
        messages: Sequence[dict[str, str]],
        response_model: type[BaseModel],
        *,
        model: str | None = None,
    ) -> BaseModel:
        self.calls.append((response_model.__name__, model))
        return response_model.model_validate(self.responses[response_model])

    async def complete_text(
        self, messages: Sequence[dict[str, str]], *, model: str | None = None
    ) -> str:
        self.calls.append(("text", model))
        return self.text


def build_eml(
    subject: str | None = "Invoice #123",
    sender: str = "Alice Example <alice@example.com>",
    to: str = "Bob Example <bob@example.com>",
    date: str | None = "Mon, 15 Jan 2024 10:30:00 +0000",
    body: str = "Your invoice for January. Amount due: $42.00 by 2024-02-01.",
    content_type: str = "text/plain",
) -> bytes:
    """Build a single-part EML message."""
    headers = [f"From: {sender}", f"To: {to}"]
    if subject is not None:
        headers.append(f"Subject: {subject}")
    if date is not None:
        headers.append(f"Date: {date}")
    headers += [
        "Message-ID: <sample@example.com>",
        "X-Mailer: Sample",
        "MIME-Version: 1.0",
        f'Content-Type: {content_type}; charset="utf-8"',
    ]
    return ("\n".join(headers) + "\n\n" + body + "\n").encode("utf-8")


@pytest.fixture
def eml_factory() -> Callable[..., bytes]:
    """Return the EML builder."""
    return build_eml


@pytest.fixture
def write_eml(tmp_path: Path) -> Callable[..., Path]:
    """Return a function writing an EML file into the input directory."""

    def write(name: str = "message.eml", **kwargs: Any) -> Path:
        path = tmp_path / "input" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(build_eml(**kwargs))
        return path

    return write


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Configuration pointing at temporary input and output directories."""
    (tmp_path / "input").mkdir(exist_ok=True)
    return Config(
        input_directory=tmp_path / "input",
        output_directory=tmp_path / "output",
        openai_api_key="sk-test",
    )


@pytest.fixture
def stub_client() -> StubModelClient:
    return StubModelClient()


@pytest.fixture
def services(config: Config, stub_client: StubModelClient) -> StageServices:
    return build_services(config, stub_client)  # type: ignore[arg-type]


@pytest.fixture
def make_services(stub_client: StubModelClient) -> Callable[[Config], StageServices]:
    """Return a function building services for a custom configuration."""

    def make(config: Config) -> StageServices:
        return build_services(config, stub_client)  # type: ignore[arg-type]

    return make


@pytest.fixture
def sample_bill() -> dict[str, Any]:
    return dict(SAMPLE_BILL)


@pytest.fixture
def sample_transaction() -> dict[str, Any]:
    return dict(SAMPLE_TRANSACTION)
