"""
Transaction ledger for aggregator payments.

The store is injected (created once in the app factory and handed to the
orchestrator). Writes to the same key are last-write-wins: a callback racing a
verify poll may overwrite it, and no ordering is enforced between them.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Protocol


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    INITIATED = "INITIATED"
    COMPLETED = "COMPLETED"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Optional[str]) -> "TransactionStatus":
        """Map a caller-supplied status string, falling back to UNKNOWN."""
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in (TransactionStatus.COMPLETED, TransactionStatus.SUCCESS, TransactionStatus.FAILED)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Customer:
    name: str
    email: str
    phone: Optional[str] = None


@dataclass(frozen=True)
class PlanSelection:
    ecomm_plan: Optional[str] = None
    hosting_plan: Optional[str] = None

    def labels(self) -> list:
        return [p for p in (self.ecomm_plan, self.hosting_plan) if p]

    def describe(self, brand: str) -> str:
        """'Brand - ecomm + hosting', or just the brand when nothing is selected."""
        labels = " + ".join(self.labels())
        if not labels:
            return brand
        return f"{brand} - {labels}" if brand else labels


@dataclass(frozen=True)
class TransactionRecord:
    transaction_id: str
    amount_minor_units: int
    customer: Customer
    plan_selection: PlanSelection = field(default_factory=PlanSelection)
    status: TransactionStatus = TransactionStatus.PENDING
    provider_order_id: Optional[str] = None
    redirect_url: Optional[str] = None
    simulated: bool = False
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    raw_provider_payload: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if isinstance(self.amount_minor_units, bool) or not isinstance(self.amount_minor_units, int):
            raise TypeError("amount_minor_units must be an int")
        if self.amount_minor_units <= 0:
            raise ValueError("amount_minor_units must be positive")

    def evolve(self, **changes) -> "TransactionRecord":
        """Copy with changes; transaction_id cannot be reassigned."""
        if "transaction_id" in changes and changes["transaction_id"] != self.transaction_id:
            raise ValueError("transaction_id is immutable")
        changes.setdefault("updated_at", utcnow())
        return replace(self, **changes)


class TransactionStore(Protocol):
    def get(self, transaction_id: str) -> Optional[TransactionRecord]:
        ...

    def set(self, record: TransactionRecord) -> None:
        ...

    def delete(self, transaction_id: str) -> None:
        ...


class InMemoryTransactionStore:
    """Dict-backed store. Contents live only as long as the process."""

    def __init__(self):
        self._records: Dict[str, TransactionRecord] = {}

    def get(self, transaction_id: str) -> Optional[TransactionRecord]:
        return self._records.get(transaction_id)

    def set(self, record: TransactionRecord) -> None:
        self._records[record.transaction_id] = record

    def delete(self, transaction_id: str) -> None:
        self._records.pop(transaction_id, None)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, transaction_id: str) -> bool:
        return transaction_id in self._records
