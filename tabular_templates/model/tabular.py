from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Column:
    name: str
    data_type: str = "string"
    expression: Optional[str] = None
    annotations: Dict[str, str] = field(default_factory=dict)

    def signature(self) -> Dict[str, Any]:
        return {"data_type": self.data_type, "expression": self.expression}


@dataclass
class Measure:
    name: str
    expression: str
    format_string: Optional[str] = None
    annotations: Dict[str, str] = field(default_factory=dict)

    def signature(self) -> Dict[str, Any]:
        return {"expression": self.expression, "format_string": self.format_string}


@dataclass
class Table:
    name: str
    columns: Dict[str, Column] = field(default_factory=dict)
    measures: Dict[str, Measure] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    # parameters the table content was generated from (year range, country, ...)
    source: Dict[str, Any] = field(default_factory=dict)
    rows: List[Dict[str, Any]] = field(default_factory=list)

    def add_column(self, column: Column) -> None:
        self.columns[column.name] = column

    def add_measure(self, measure: Measure) -> None:
        self.measures[measure.name] = measure


@dataclass
class TabularModel:
    name: str
    tables: Dict[str, Table] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)

    def add_table(self, table: Table) -> Table:
        self.tables[table.name] = table
        return table

    def find_table(self, name: str) -> Optional[Table]:
        return self.tables.get(name)

    def clone(self) -> "TabularModel":
        return copy.deepcopy(self)
