"""
Error taxonomy for the ingestion pipeline.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced by the pipeline."""

    SOURCE_UNAVAILABLE = "source_unavailable"
    ROW_REJECTED = "row_rejected"
    PERSISTENCE_FAILED = "persistence_failed"
    MALFORMED_PAYLOAD = "malformed_payload"
    NOTIFICATION_FAILED = "notification_failed"


class PipelineError(Exception):
    """Base exception carrying an error kind and a human-readable message."""

    kind: ErrorKind = ErrorKind.PERSISTENCE_FAILED

    def __init__(self, message: str, kind: ErrorKind = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class SourceUnavailableError(PipelineError):
    """The object source could not be read or decoded. Fatal for a batch."""

    kind = ErrorKind.SOURCE_UNAVAILABLE


class PersistenceError(PipelineError):
    """The record store rejected or failed an operation."""

    kind = ErrorKind.PERSISTENCE_FAILED


class NotificationError(PipelineError):
    """Publishing an outcome notification failed."""

    kind = ErrorKind.NOTIFICATION_FAILED


class InvalidPatchError(ValueError):
    """A record patch named unknown fields or carried invalid values."""


class ConfigurationError(ValueError):
    """Runtime configuration is missing or invalid."""
