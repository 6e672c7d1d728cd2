"""Custom exceptions for source adapters."""


class SourceError(Exception):
    """Base source adapter exception."""


class SourceUnavailableError(SourceError):
    """Raised when a source's hardware or binary is not present."""


class AcquisitionError(SourceError):
    """Raised when a present source fails to produce a sample."""
