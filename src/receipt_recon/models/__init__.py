"""Data models for reconciliation."""

from .ledger import (
    MatchAction,
    MatchEvent,
    MatchOrigin,
    MatchState,
    MatchSuggestion,
    MonetaryAmount,
    Receipt,
    Transaction,
)
from .working_set import LedgerWorkingSet

__all__ = [
    "MatchAction",
    "MatchEvent",
    "MatchOrigin",
    "MatchState",
    "MatchSuggestion",
    "MonetaryAmount",
    "Receipt",
    "Transaction",
    "LedgerWorkingSet",
]
