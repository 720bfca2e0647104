"""Reconciliation of bank transactions against expense receipts."""

from .matching import ReconciliationEngine

__version__ = "0.1.0"

__all__ = ["ReconciliationEngine", "__version__"]
