"""Data models for bank transactions, receipts and match provenance."""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class MatchState(Enum):
    """Reconciliation state of a bank transaction."""

    UNMATCHED = "unmatched"
    MATCHED = "matched"
    IGNORED = "ignored"  # Excluded from every matching pass and from unmatched counts


class MatchOrigin(Enum):
    """Which strategy produced a match."""

    DETERMINISTIC = "deterministic"
    SUGGESTED = "suggested"
    MANUAL = "manual"


class MatchAction(Enum):
    """Kind of entry in the match history."""

    LINKED = "linked"
    UNLINKED = "unlinked"


@dataclass(frozen=True)
class MonetaryAmount:
    """An amount in a specific currency."""

    magnitude: Decimal
    currency_code: str

    def __post_init__(self) -> None:
        """Coerce magnitude to Decimal and upper-case the currency code."""
        if not isinstance(self.magnitude, Decimal):
            object.__setattr__(self, "magnitude", Decimal(str(self.magnitude)))
        if not self.magnitude.is_finite():
            raise ValueError(f"Amount must be a finite number, got {self.magnitude}")
        object.__setattr__(self, "currency_code", self.currency_code.strip().upper())

    def __str__(self) -> str:
        return f"{self.magnitude:,.2f} {self.currency_code}"

    def to_dict(self) -> dict[str, Any]:
        return {"magnitude": str(self.magnitude), "currency_code": self.currency_code}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MonetaryAmount":
        return cls(magnitude=Decimal(str(data["magnitude"])), currency_code=data["currency_code"])


@dataclass(frozen=True)
class Receipt:
    """
    Captured expense receipt.

    Receipts are never modified by matching. Whether a receipt is matched is
    derived from the transactions that reference it.
    """

    id: str
    vendor: str
    date: date
    amount: MonetaryAmount
    category: str = ""

    # Pointer to the captured document (file path, URL or storage key)
    document_ref: Optional[str] = None

    # Inline preview of the document; may be dropped by persistence under quota pressure
    image_data: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "vendor": self.vendor,
            "date": self.date.isoformat(),
            "amount": self.amount.to_dict(),
            "category": self.category,
            "document_ref": self.document_ref,
            "image_data": self.image_data,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Receipt":
        return cls(
            id=data["id"],
            vendor=data.get("vendor", ""),
            date=date.fromisoformat(data["date"]),
            amount=MonetaryAmount.from_dict(data["amount"]),
            category=data.get("category", ""),
            document_ref=data.get("document_ref"),
            image_data=data.get("image_data"),
        )


@dataclass(frozen=True)
class Transaction:
    """
    Bank transaction from an ingested statement.

    Amount is signed: negative values are expenses, positive values income.
    Match fields are only ever changed through ``with_match`` / ``without_match``,
    which keep state, receipt id, origin and rationale consistent.
    """

    id: str
    date: date
    description: str
    amount: MonetaryAmount

    # Matching state
    match_state: MatchState = MatchState.UNMATCHED
    matched_receipt_id: Optional[str] = None
    match_origin: Optional[MatchOrigin] = None
    rationale: Optional[str] = None

    # Statement file the transaction was imported from
    source_file: Optional[str] = None

    def __post_init__(self) -> None:
        """Reject partially populated match fields."""
        matched = self.match_state is MatchState.MATCHED
        if matched != (self.matched_receipt_id is not None):
            raise ValueError(
                f"Transaction {self.id}: state {self.match_state.value} "
                f"inconsistent with matched receipt {self.matched_receipt_id!r}"
            )
        if matched != (self.match_origin is not None) or matched != (self.rationale is not None):
            raise ValueError(
                f"Transaction {self.id}: match origin and rationale must be set "
                f"together with a match"
            )

    @property
    def is_expense(self) -> bool:
        return self.amount.magnitude < 0

    @property
    def is_matched(self) -> bool:
        return self.match_state is MatchState.MATCHED

    @property
    def is_available(self) -> bool:
        """Eligible for any matching pass."""
        return self.match_state is MatchState.UNMATCHED

    def with_match(
        self, receipt_id: str, origin: MatchOrigin, rationale: str
    ) -> "Transaction":
        """Return a copy matched to ``receipt_id``."""
        return replace(
            self,
            match_state=MatchState.MATCHED,
            matched_receipt_id=receipt_id,
            match_origin=origin,
            rationale=rationale,
        )

    def without_match(self) -> "Transaction":
        """Return an unmatched copy with all provenance cleared."""
        return replace(
            self,
            match_state=MatchState.UNMATCHED,
            matched_receipt_id=None,
            match_origin=None,
            rationale=None,
        )

    def with_state(self, state: MatchState) -> "Transaction":
        return replace(self, match_state=state)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "description": self.description,
            "amount": self.amount.to_dict(),
            "match_state": self.match_state.value,
            "matched_receipt_id": self.matched_receipt_id,
            "match_origin": self.match_origin.value if self.match_origin else None,
            "rationale": self.rationale,
            "source_file": self.source_file,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Transaction":
        origin = data.get("match_origin")
        return cls(
            id=data["id"],
            date=date.fromisoformat(data["date"]),
            description=data.get("description", ""),
            amount=MonetaryAmount.from_dict(data["amount"]),
            match_state=MatchState(data.get("match_state", MatchState.UNMATCHED.value)),
            matched_receipt_id=data.get("matched_receipt_id"),
            match_origin=MatchOrigin(origin) if origin else None,
            rationale=data.get("rationale"),
            source_file=data.get("source_file"),
        )


@dataclass(frozen=True)
class MatchSuggestion:
    """Candidate pair proposed by the fuzzy-match service, pending human review."""

    transaction_id: str
    receipt_id: str
    confidence: float  # 0.0 to 1.0
    rationale: str = ""

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Suggestion confidence {self.confidence} outside [0, 1]")

    @property
    def key(self) -> tuple[str, str]:
        return self.transaction_id, self.receipt_id


@dataclass(frozen=True)
class MatchEvent:
    """Append-only history entry recording a link or unlink."""

    transaction_id: str
    action: MatchAction
    receipt_id: str
    origin: Optional[MatchOrigin]
    rationale: str

    # Timestamp for audit
    recorded_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "action": self.action.value,
            "receipt_id": self.receipt_id,
            "origin": self.origin.value if self.origin else None,
            "rationale": self.rationale,
            "recorded_at": self.recorded_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MatchEvent":
        origin = data.get("origin")
        return cls(
            transaction_id=data["transaction_id"],
            action=MatchAction(data["action"]),
            receipt_id=data["receipt_id"],
            origin=MatchOrigin(origin) if origin else None,
            rationale=data.get("rationale", ""),
            recorded_at=datetime.fromisoformat(data["recorded_at"]),
        )
