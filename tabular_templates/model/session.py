from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Protocol, runtime_checkable

from ..core.cancellation import CancelToken, NONE
from ..core.errors import DataConnectionError, SaveError
from ..engine.changes import ModelChanges, compute_model_changes
from .tabular import TabularModel

ModelMutation = Callable[[TabularModel], None]


@dataclass
class SaveResult:
    ok: bool = True
    errors: List[str] = field(default_factory=list)
    # objects that were persisted before the failure (partial save)
    saved_objects: List[str] = field(default_factory=list)

    def raise_on_error(self) -> None:
        if self.ok:
            return
        partial = bool(self.saved_objects)
        raise SaveError(
            "model save {}: {}".format("partially failed" if partial else "failed", "; ".join(self.errors) or "unknown error"),
            details={"errors": list(self.errors), "saved_objects": list(self.saved_objects), "partial": partial},
        )


class QueryConnection(Protocol):
    def query_top(self, table_name: str, row_count: int) -> List[Dict[str, Any]]:
        ...

    def close(self) -> None:
        ...

    def __enter__(self) -> "QueryConnection":
        ...

    def __exit__(self, exc_type, exc, tb) -> None:
        ...


@runtime_checkable
class ModelSession(Protocol):
    """Live handle to a tabular model with a local (uncommitted) change scope."""

    name: str

    @property
    def revision(self) -> int:
        ...

    def apply_local_mutation(self, mutation: ModelMutation) -> None:
        ...

    def compute_diff(self, cancel_token: CancelToken = NONE) -> ModelChanges:
        ...

    def save(self) -> SaveResult:
        ...

    def rollback(self) -> None:
        ...

    def create_query_connection(self) -> QueryConnection:
        ...

    def read_local(self) -> TabularModel:
        ...

    def read_committed(self) -> TabularModel:
        ...


class InMemoryQueryConnection:
    """Reads rows of the session's local state; usable as a context manager."""

    def __init__(self, session: "InMemoryModelSession"):
        self._session = session
        self.closed = False
        session.open_connections += 1

    def query_top(self, table_name: str, row_count: int) -> List[Dict[str, Any]]:
        if self.closed:
            raise DataConnectionError("query connection is closed", details={"table": table_name})
        self._session._ensure_connected()
        table = self._session.read_local().find_table(table_name)
        if table is None:
            raise DataConnectionError(f"table not found: {table_name}", details={"table": table_name})
        return [dict(r) for r in table.rows[: max(0, row_count)]]

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._session.open_connections -= 1

    def __enter__(self) -> "InMemoryQueryConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class InMemoryModelSession:
    """
    Session over a model held by a ModelCatalog.

    Local mutations apply to a working copy; save() publishes it to the catalog,
    rollback() restores the last committed state.
    """

    def __init__(self, catalog: "ModelCatalog", name: str):
        self.name = name
        self._catalog = catalog
        self._committed = catalog.get(name)
        self._local = self._committed.clone()
        self._revision = 0
        self.connected = True
        self.open_connections = 0

    @property
    def revision(self) -> int:
        return self._revision

    def _ensure_connected(self) -> None:
        if not self.connected:
            raise DataConnectionError(f"model '{self.name}' is disconnected", details={"model": self.name})

    def disconnect(self) -> None:
        self.connected = False

    def read_local(self) -> TabularModel:
        return self._local

    def read_committed(self) -> TabularModel:
        return self._committed.clone()

    def has_local_changes(self) -> bool:
        if self._committed.annotations != self._local.annotations:
            return True
        return not compute_model_changes(self._committed, self._local).is_empty

    def apply_local_mutation(self, mutation: ModelMutation) -> None:
        self._ensure_connected()
        self._revision += 1
        mutation(self._local)

    def compute_diff(self, cancel_token: CancelToken = NONE) -> ModelChanges:
        self._ensure_connected()
        changes = compute_model_changes(self._committed, self._local, cancel_token)
        changes.session_revision = self._revision
        return changes

    def create_query_connection(self) -> InMemoryQueryConnection:
        self._ensure_connected()
        return InMemoryQueryConnection(self)

    def save(self) -> SaveResult:
        self._ensure_connected()
        result = self._catalog.publish(self.name, self._local)
        if result.ok:
            self._committed = self._local.clone()
            self._revision += 1
        return result

    def rollback(self) -> None:
        # works while disconnected: local state lives client-side
        self._local = self._committed.clone()
        self._revision += 1


class ModelCatalog:
    """Durable store of models; stands in for the analytical server."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._models: Dict[str, TabularModel] = {}
        self._save_faults: Dict[str, SaveResult] = {}

    def register(self, model: TabularModel) -> None:
        with self._lock:
            self._models[model.name] = model.clone()

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._models.keys())

    def get(self, name: str) -> TabularModel:
        with self._lock:
            model = self._models.get(name)
            if model is None:
                raise KeyError(name)
            return model.clone()

    def open_session(self, name: str) -> InMemoryModelSession:
        return InMemoryModelSession(self, name)

    def fail_next_save(self, name: str, result: SaveResult) -> None:
        """Make the next publish of `name` report `result` instead of persisting."""
        with self._lock:
            self._save_faults[name] = result

    def publish(self, name: str, model: TabularModel) -> SaveResult:
        with self._lock:
            fault = self._save_faults.pop(name, None)
            if fault is not None:
                return fault
            self._models[name] = model.clone()
            return SaveResult(ok=True, saved_objects=sorted(model.tables.keys()))
