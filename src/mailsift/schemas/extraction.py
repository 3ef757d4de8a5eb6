"""Schemas for model responses: classifications, extracted entities and renders.

Each `*Response` model wraps a list under the key the pipeline stores it
as in the item context, which is also the top-level key of the cached
response file.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

EventType = Literal["appointment", "deadline", "meeting", "other"]
DateType = Literal["exact", "approximate", "range"]
PersonCategory = Literal["family", "friend", "work", "project", "other"]
TransactionType = Literal["deposit", "withdrawal", "order", "receipt", "transfer", "other"]
TransactionCategory = Literal[
    "food",
    "transportation",
    "housing",
    "utilities",
    "entertainment",
    "education",
    "loan",
    "credit",
    "other",
]
TransactionStatus = Literal["pending", "completed", "failed", "due", "paid", "overdue", "other"]
MerchantType = Literal[
    "bank",
    "delivery_service",
    "transportation",
    "housing",
    "utilities",
    "entertainment",
    "education",
    "loan",
    "credit",
    "other",
]
BillKind = Literal["utility", "insurance", "loan", "rent", "subscription", "other"]
BillStatus = Literal["due", "paid", "overdue", "other"]


class Classification(BaseModel):
    """One taxonomy placement for a message."""

    coordinate: list[str]
    strength: float = Field(ge=0.0, le=1.0)
    reason: str


class Event(BaseModel):
    """Something with a date: appointment, deadline, meeting."""

    name: str
    date: str
    time: str
    eventType: EventType
    dateType: DateType
    location: str
    description: str
    category: str
    reason: str


class Person(BaseModel):
    """A person mentioned in or involved with the message."""

    name: str
    role: str
    category: PersonCategory
    reason: str


class Transaction(BaseModel):
    """A completed or pending money movement, usually from a receipt."""

    date: str
    amount: float
    description: str
    type: TransactionType
    category: TransactionCategory
    status: TransactionStatus
    due_date: str
    merchant_organization: str
    merchant_type: MerchantType
    reason: str


class Bill(BaseModel):
    """An amount owed to a provider."""

    provider: str
    kind: BillKind
    amount_due: float
    due_date: str
    period: str
    status: BillStatus
    description: str
    reason: str


class ClassificationsResponse(BaseModel):
    classifications: list[Classification]


class EventsResponse(BaseModel):
    events: list[Event]


class PeopleResponse(BaseModel):
    people: list[Person]


class TransactionsResponse(BaseModel):
    transactions: list[Transaction]


class BillsResponse(BaseModel):
    bills: list[Bill]


class RenderedSummary(BaseModel):
    summary: str


class RenderedReceipt(BaseModel):
    receipt: str


class RenderedBill(BaseModel):
    bill: str


class PlainText(BaseModel):
    text: str
