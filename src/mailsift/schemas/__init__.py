"""Pydantic schemas for configuration and model responses."""

from __future__ import annotations

from mailsift.schemas.config import FilterRules, FiltersConfig, SimplifyConfig
from mailsift.schemas.extraction import (
    Bill,
    BillsResponse,
    Classification,
    ClassificationsResponse,
    Event,
    EventsResponse,
    PeopleResponse,
    Person,
    PlainText,
    RenderedBill,
    RenderedReceipt,
    RenderedSummary,
    Transaction,
    TransactionsResponse,
)

__all__ = [
    "Bill",
    "BillsResponse",
    "Classification",
    "ClassificationsResponse",
    "Event",
    "EventsResponse",
    "FilterRules",
    "FiltersConfig",
    "PeopleResponse",
    "Person",
    "PlainText",
    "RenderedBill",
    "RenderedReceipt",
    "RenderedSummary",
    "SimplifyConfig",
    "Transaction",
    "TransactionsResponse",
]
