from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    TEMPLATE = "TEMPLATE"
    CONNECTION = "CONNECTION"
    SAVE = "SAVE"
    CACHE_IO = "CACHE_IO"
    CANCELED = "CANCELED"


class TemplateManagerError(Exception):
    """Base error. `kind` tells callers where the failure originated."""

    kind: ErrorKind = ErrorKind.TEMPLATE

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
        }


class TemplateError(TemplateManagerError):
    """Malformed/unsupported package, or a rule that does not fit the model shape."""

    kind = ErrorKind.TEMPLATE


class DataConnectionError(TemplateManagerError):
    """Failure of the external data engine (apply or preview)."""

    kind = ErrorKind.CONNECTION


class SaveError(TemplateManagerError):
    kind = ErrorKind.SAVE


class CacheIOError(TemplateManagerError):
    kind = ErrorKind.CACHE_IO


class OperationCanceled(TemplateManagerError):
    kind = ErrorKind.CANCELED

    def __init__(self, message: str = "operation canceled", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)


# Faults that go through the diagnostics hook. Cancellation is a caller signal, not a fault.
REPORTABLE_ERRORS = (TemplateError, DataConnectionError, SaveError, CacheIOError)
