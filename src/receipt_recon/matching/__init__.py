"""Deterministic, suggested and manual matching."""

from .currency import CurrencyNormalizer, normalize
from .deterministic import DeterministicMatcher
from .engine import ReconciliationEngine, SuggestionReport
from .manual import ManualMatchController
from .suggestions import (
    FuzzyMatcher,
    ReceiptProjection,
    SuggestionOrchestrator,
    TransactionProjection,
)

__all__ = [
    "CurrencyNormalizer",
    "normalize",
    "DeterministicMatcher",
    "ReconciliationEngine",
    "SuggestionReport",
    "ManualMatchController",
    "FuzzyMatcher",
    "ReceiptProjection",
    "SuggestionOrchestrator",
    "TransactionProjection",
]
