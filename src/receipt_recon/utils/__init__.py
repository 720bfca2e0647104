"""Utility modules."""

from .exceptions import (
    ReconciliationError,
    InputError,
    UnknownRecordError,
    SelectionError,
    MatchStateError,
    SuggestionRequestInProgress,
    UnknownSuggestionError,
    ConsistencyConflict,
    ServiceError,
    SuggestionServiceError,
    StorageQuotaError,
    ConfigurationError,
    ImportParseError,
    ReportGenerationError,
)
from .logging_config import setup_logging, parse_level

__all__ = [
    "ReconciliationError",
    "InputError",
    "UnknownRecordError",
    "SelectionError",
    "MatchStateError",
    "SuggestionRequestInProgress",
    "UnknownSuggestionError",
    "ConsistencyConflict",
    "ServiceError",
    "SuggestionServiceError",
    "StorageQuotaError",
    "ConfigurationError",
    "ImportParseError",
    "ReportGenerationError",
    "setup_logging",
    "parse_level",
]
