from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Callable, List, Optional

from .errors import TemplateManagerError
from .metrics import DIAGNOSTICS_REPORTS

log = logging.getLogger("tabular_templates.diagnostics")

DiagnosticsSink = Callable[[BaseException], None]

_REPORTED_ATTR = "_diagnostics_reported"

# set per HTTP request by RequestContextMiddleware
REQUEST_ID: ContextVar[Optional[str]] = ContextVar("tabular_templates_request_id", default=None)


class DiagnosticsReporter:
    """
    Fire-and-forget exception reporting.

    - report() never raises and never suppresses: callers re-raise afterwards
    - an exception object is recorded at most once, even when workflows nest
    """

    def __init__(self, sinks: List[DiagnosticsSink] | None = None):
        self._sinks: List[DiagnosticsSink] = list(sinks or [])

    def add_sink(self, sink: DiagnosticsSink) -> None:
        self._sinks.append(sink)

    @staticmethod
    def was_reported(exc: BaseException) -> bool:
        return bool(getattr(exc, _REPORTED_ATTR, False))

    def report(self, exc: BaseException) -> None:
        if self.was_reported(exc):
            return
        setattr(exc, _REPORTED_ATTR, True)

        kind = exc.kind.value if isinstance(exc, TemplateManagerError) else type(exc).__name__
        log.error("Template operation failed kind=%s rid=%s: %s", kind, REQUEST_ID.get(), exc, exc_info=exc)
        DIAGNOSTICS_REPORTS.labels(kind=kind).inc()

        for sink in self._sinks:
            try:
                sink(exc)
            except Exception as sink_exc:
                log.warning("Diagnostics sink %r failed: %s", sink, sink_exc)


DEFAULT_DIAGNOSTICS = DiagnosticsReporter()
