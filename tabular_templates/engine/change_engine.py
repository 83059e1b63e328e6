from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from ..core.cancellation import CancelToken, NONE
from ..core.diagnostics import DEFAULT_DIAGNOSTICS, DiagnosticsReporter
from ..core.errors import REPORTABLE_ERRORS, OperationCanceled, SaveError
from ..core.metrics import WORKFLOWS
from ..model.session import ModelSession, SaveResult
from ..templates.cache import TemplateCache
from ..templates.configuration import DateConfiguration
from ..templates.engine import TemplateEngine
from ..templates.models import Package
from ..templates.store import PackageStore
from .changes import ChangeType, ModelChanges
from .state_machine import EngineState, ensure_transition, is_terminal

log = logging.getLogger("tabular_templates.engine")

EngineFactory = Callable[[Package], TemplateEngine]


class ChangeEngine:
    """
    Applies template packages to a model session.

    One engine drives one session at a time; `state` follows the last
    workflow step. Errors are reported to diagnostics once and re-raised.
    """

    def __init__(
        self,
        *,
        store: Optional[PackageStore] = None,
        cache: Optional[TemplateCache] = None,
        diagnostics: DiagnosticsReporter = DEFAULT_DIAGNOSTICS,
        engine_factory: EngineFactory = TemplateEngine,
        rollback_on_save_failure: bool = False,
    ):
        self._store = store
        self._cache = cache
        self._diagnostics = diagnostics
        self._engine_factory = engine_factory
        self.rollback_on_save_failure = rollback_on_save_failure
        self.state = EngineState.CLEAN

    def _transition(self, dst: EngineState) -> None:
        ensure_transition(self.state, dst)
        self.state = dst
        if is_terminal(dst):
            log.info("Template workflow finished state=%s", dst.value)

    @contextmanager
    def _reported(self) -> Iterator[None]:
        try:
            yield
        except REPORTABLE_ERRORS as exc:
            self._diagnostics.report(exc)
            raise

    @contextmanager
    def local_changes(self, session: ModelSession) -> Iterator[ModelSession]:
        """Local-change scope that is rolled back on every exit path."""
        try:
            yield session
        finally:
            self.rollback(session)

    def rollback(self, session: ModelSession) -> None:
        session.rollback()
        self._transition(EngineState.CLEAN)

    # ------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------
    def apply(self, package: Package, session: ModelSession, cancel_token: CancelToken = NONE) -> None:
        self._transition(EngineState.APPLYING)
        log.debug("Applying package %s to model %s", package.name, session.name)
        with self._reported():
            self._engine_factory(package).apply_templates(session, cancel_token)
        self._transition(EngineState.APPLIED)

    def diff(self, session: ModelSession, cancel_token: CancelToken = NONE) -> ModelChanges:
        with self._reported():
            changes = session.compute_diff(cancel_token)
        if self.state == EngineState.APPLIED:
            self._transition(EngineState.DIFFED)
        return changes

    def preview(
        self,
        changes: ModelChanges,
        session: ModelSession,
        sample_row_count: int,
        cancel_token: CancelToken = NONE,
    ) -> ModelChanges:
        """Attach up to `sample_row_count` rows to each added or modified table."""
        if sample_row_count <= 0:
            return changes
        if not changes.is_current_for(session):
            raise ValueError("change set is stale for this session; recompute the diff first")

        with self._reported():
            with session.create_query_connection() as connection:
                for table in changes.tables:
                    cancel_token.raise_if_cancelled()
                    if table.change_type == ChangeType.REMOVED:
                        continue
                    table.preview_rows = connection.query_top(table.name, sample_row_count)

        if self.state == EngineState.DIFFED:
            self._transition(EngineState.PREVIEW_POPULATED)
        return changes

    def _save(self, session: ModelSession) -> SaveResult:
        with self._reported():
            try:
                result = session.save()
                result.raise_on_error()
            except SaveError:
                self._transition(EngineState.FAILED)
                if self.rollback_on_save_failure:
                    self.rollback(session)
                raise
        self._transition(EngineState.COMMITTED)
        return result

    # ------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------
    def preview_workflow(
        self,
        package: Package,
        session: ModelSession,
        sample_row_count: int,
        cancel_token: CancelToken = NONE,
    ) -> ModelChanges:
        """apply -> diff -> optional preview; the session is always rolled back."""
        self._transition(EngineState.CLEAN)
        outcome = "failed"
        try:
            with self.local_changes(session):
                self.apply(package, session, cancel_token)
                changes = self.diff(session, cancel_token)
                self.preview(changes, session, sample_row_count, cancel_token)
            outcome = "ok"
            return changes
        except OperationCanceled:
            outcome = "canceled"
            raise
        finally:
            WORKFLOWS.labels(workflow="preview", outcome=outcome).inc()

    def commit_workflow(
        self,
        package: Package,
        session: ModelSession,
        configuration: DateConfiguration,
        cancel_token: CancelToken = NONE,
    ) -> SaveResult:
        """apply -> write configuration -> save. A failed save is not retried."""
        self._transition(EngineState.CLEAN)
        outcome = "failed"
        try:
            try:
                self.apply(package, session, cancel_token)
                cancel_token.raise_if_cancelled()
                with self._reported():
                    configuration.serialize_to(session)
            except Exception:
                self.rollback(session)
                raise

            result = self._save(session)
            outcome = "ok"
            log.info("Committed package %s to model %s", package.name, session.name)
            return result
        except OperationCanceled:
            outcome = "canceled"
            raise
        finally:
            WORKFLOWS.labels(workflow="commit", outcome=outcome).inc()

    # ------------------------------------------------------------
    # Configuration-driven entry points
    # ------------------------------------------------------------
    def _load_configured_package(self, configuration: DateConfiguration) -> Package:
        if self._store is None or self._cache is None:
            raise RuntimeError("configuration workflows need a package store and a template cache")
        cache_dir = self._cache.ensure_initialized()
        with self._reported():
            return configuration.load_package(self._store, cache_dir)

    def preview_configuration(
        self,
        configuration: DateConfiguration,
        session: ModelSession,
        sample_row_count: int,
        cancel_token: CancelToken = NONE,
    ) -> ModelChanges:
        package = self._load_configured_package(configuration)
        return self.preview_workflow(package, session, sample_row_count, cancel_token)

    def apply_configuration(
        self,
        configuration: DateConfiguration,
        session: ModelSession,
        cancel_token: CancelToken = NONE,
    ) -> SaveResult:
        package = self._load_configured_package(configuration)
        return self.commit_workflow(package, session, configuration, cancel_token)
