"""Custom exceptions for the reconciliation engine."""


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""

    pass


class InputError(ReconciliationError):
    """Caller supplied an invalid request. No state was changed."""

    pass


class UnknownRecordError(InputError):
    """A transaction, receipt or suggestion id does not exist."""

    pass


class SelectionError(InputError):
    """Manual link requested without exactly one transaction and one receipt."""

    pass


class MatchStateError(InputError):
    """Operation is not valid for the record's current match state."""

    pass


class SuggestionRequestInProgress(MatchStateError):
    """A suggestion request is already awaiting the fuzzy-match service."""

    pass


class UnknownSuggestionError(UnknownRecordError):
    """Suggestion is not in the pending review list."""

    pass


class ConsistencyConflict(ReconciliationError):
    """Change would break a matching invariant, usually because of a stale suggestion."""

    pass


class ServiceError(ReconciliationError):
    """An external capability failed."""

    pass


class SuggestionServiceError(ServiceError):
    """The fuzzy-match service failed or returned an unusable response."""

    pass


class StorageQuotaError(ReconciliationError):
    """Working set could not be persisted within the storage quota."""

    pass


class ConfigurationError(ReconciliationError):
    """Error in configuration."""

    pass


class ImportParseError(ReconciliationError):
    """Error parsing a statement or receipt CSV file."""

    pass


class ReportGenerationError(ReconciliationError):
    """Error generating Excel report."""

    pass
