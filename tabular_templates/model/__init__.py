from .tabular import Column, Measure, Table, TabularModel
from .session import InMemoryModelSession, ModelCatalog, ModelSession, QueryConnection, SaveResult

__all__ = [
    "Column",
    "Measure",
    "Table",
    "TabularModel",
    "InMemoryModelSession",
    "ModelCatalog",
    "ModelSession",
    "QueryConnection",
    "SaveResult",
]
