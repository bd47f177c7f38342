"""Custom exceptions for the matter-opening pipeline."""

from __future__ import annotations

from typing import Optional

from matter_opening.core.models import FailureKind


class MatterOpeningError(Exception):
    """Base error for pipeline failures."""

    kind = FailureKind.INTERNAL


class ValidationError(MatterOpeningError):
    """Raised when inputs are invalid or incomplete."""


class MissingPreconditionError(MatterOpeningError):
    """Raised when a step needs a credential or identifier that is not in the context."""

    kind = FailureKind.MISSING_PRECONDITION


class ProviderError(MatterOpeningError):
    """Raised when an external provider rejects a call."""

    kind = FailureKind.EXTERNAL_REJECTION

    def __init__(self, operation: str, status_code: Optional[int] = None, detail: Optional[str] = None) -> None:
        self.operation = operation
        self.status_code = status_code
        self.detail = detail
        message = f"{operation} failed"
        if status_code is not None:
            message += f" (HTTP {status_code})"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class TransportError(MatterOpeningError):
    """Raised when a call to a provider could not complete."""

    kind = FailureKind.TRANSPORT


class StepTimeoutError(TransportError):
    """Raised when a step exceeds its deadline."""


class RunCancelled(MatterOpeningError):
    """Raised when a run is cancelled before it finishes."""

    kind = FailureKind.CANCELLED


class StepFailedError(MatterOpeningError):
    """Raised when a pipeline step fails."""

    def __init__(self, label: str, index: int, message: str, kind: FailureKind = FailureKind.INTERNAL) -> None:
        self.label = label
        self.index = index
        self.kind = kind
        super().__init__(f"{label}: {message}")


def classify(exc: BaseException) -> FailureKind:
    if isinstance(exc, MatterOpeningError):
        return exc.kind
    return FailureKind.INTERNAL
