from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from ..core.cancellation import CancelToken, NONE

if TYPE_CHECKING:
    from ..model.tabular import Table, TabularModel


class ChangeType(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


@dataclass
class ObjectChange:
    name: str
    change_type: ChangeType
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "change_type": self.change_type.value,
            "before": self.before,
            "after": self.after,
        }


@dataclass
class TableChanges:
    name: str
    change_type: ChangeType
    columns: List[ObjectChange] = field(default_factory=list)
    measures: List[ObjectChange] = field(default_factory=list)
    source_changed: bool = False
    preview_rows: Optional[List[Dict[str, Any]]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "change_type": self.change_type.value,
            "columns": [c.to_dict() for c in self.columns],
            "measures": [m.to_dict() for m in self.measures],
            "source_changed": self.source_changed,
            "preview_rows": self.preview_rows,
        }


@dataclass
class ModelChanges:
    """
    Structural diff between the committed and the local state of a session.

    Only valid for the session revision it was computed against.
    """

    tables: List[TableChanges] = field(default_factory=list)
    session_revision: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return not self.tables

    @property
    def count(self) -> int:
        return len(self.tables)

    def find(self, table_name: str) -> Optional[TableChanges]:
        for t in self.tables:
            if t.name == table_name:
                return t
        return None

    def is_current_for(self, session: Any) -> bool:
        return self.session_revision is not None and self.session_revision == session.revision

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tables": [t.to_dict() for t in self.tables],
            "count": self.count,
            "is_empty": self.is_empty,
        }


def _diff_objects(before: Mapping[str, Any], after: Mapping[str, Any]) -> List[ObjectChange]:
    out: List[ObjectChange] = []
    for name in sorted(set(before) | set(after)):
        a = before.get(name)
        b = after.get(name)
        if a is None:
            out.append(ObjectChange(name=name, change_type=ChangeType.ADDED, after=b.signature()))
        elif b is None:
            out.append(ObjectChange(name=name, change_type=ChangeType.REMOVED, before=a.signature()))
        elif a.signature() != b.signature():
            out.append(
                ObjectChange(name=name, change_type=ChangeType.MODIFIED, before=a.signature(), after=b.signature())
            )
    return out


def _diff_table(before: Optional["Table"], after: Optional["Table"]) -> Optional[TableChanges]:
    if before is None and after is None:
        return None

    if before is None:
        return TableChanges(
            name=after.name,
            change_type=ChangeType.ADDED,
            columns=_diff_objects({}, after.columns),
            measures=_diff_objects({}, after.measures),
        )

    if after is None:
        return TableChanges(
            name=before.name,
            change_type=ChangeType.REMOVED,
            columns=_diff_objects(before.columns, {}),
            measures=_diff_objects(before.measures, {}),
        )

    columns = _diff_objects(before.columns, after.columns)
    measures = _diff_objects(before.measures, after.measures)
    source_changed = before.source != after.source
    if not columns and not measures and not source_changed:
        return None

    return TableChanges(
        name=after.name,
        change_type=ChangeType.MODIFIED,
        columns=columns,
        measures=measures,
        source_changed=source_changed,
    )


def compute_model_changes(
    before: "TabularModel",
    after: "TabularModel",
    cancel_token: CancelToken = NONE,
) -> ModelChanges:
    """Compare tables, columns and measures; row content is not compared."""
    tables: List[TableChanges] = []
    for name in sorted(set(before.tables) | set(after.tables)):
        cancel_token.raise_if_cancelled()
        change = _diff_table(before.tables.get(name), after.tables.get(name))
        if change is not None:
            tables.append(change)
    return ModelChanges(tables=tables)
