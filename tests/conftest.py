from pathlib import Path

import pytest

from tabular_templates.core.diagnostics import DiagnosticsReporter
from tabular_templates.core.settings import TemplateSettings
from tabular_templates.engine.change_engine import ChangeEngine
from tabular_templates.model.session import ModelCatalog
from tabular_templates.model.tabular import Column, Table, TabularModel
from tabular_templates.templates.cache import TemplateCache
from tabular_templates.templates.store import PackageStore


@pytest.fixture()
def reported():
    """Exceptions that reached the diagnostics sink, in order."""
    return []


@pytest.fixture()
def diagnostics(reported):
    return DiagnosticsReporter(sinks=[reported.append])


@pytest.fixture()
def settings(tmp_path: Path):
    return TemplateSettings(temp_dir=tmp_path / "temp", data_dir=tmp_path / "data")


@pytest.fixture()
def cache(settings, diagnostics):
    return TemplateCache.from_settings(settings, diagnostics=diagnostics)


@pytest.fixture()
def store(diagnostics):
    return PackageStore(diagnostics=diagnostics)


@pytest.fixture()
def engine(store, cache, diagnostics):
    return ChangeEngine(store=store, cache=cache, diagnostics=diagnostics)


def make_sales_model(name: str = "Contoso") -> TabularModel:
    model = TabularModel(name=name)
    sales = Table(name="Sales")
    sales.add_column(Column(name="Order Date", data_type="date"))
    sales.add_column(Column(name="Amount", data_type="decimal"))
    sales.rows = [
        {"Order Date": "2023-01-02", "Amount": 10.5},
        {"Order Date": "2023-01-03", "Amount": 7.25},
    ]
    model.add_table(sales)
    return model


@pytest.fixture()
def catalog():
    c = ModelCatalog()
    c.register(make_sales_model())
    return c


@pytest.fixture()
def session(catalog):
    return catalog.open_session("Contoso")


@pytest.fixture()
def cache_dir(cache):
    return cache.ensure_initialized()


@pytest.fixture()
def standard_package(store, cache_dir):
    return store.load_one(cache_dir / "Standard.package.json")


@pytest.fixture()
def holidays_package(store, cache_dir):
    return store.load_one(cache_dir / "Holidays.package.json")
