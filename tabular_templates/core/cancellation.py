from __future__ import annotations

import threading
from typing import Optional

from .errors import OperationCanceled


class CancelToken:
    """Cooperative cancellation signal checked between discrete steps."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        self._reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCanceled(self._reason or "operation canceled")


class _NeverCancelled(CancelToken):
    def cancel(self, reason: Optional[str] = None) -> None:
        raise RuntimeError("NONE token cannot be cancelled")


NONE = _NeverCancelled()
