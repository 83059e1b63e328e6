from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from tabular_templates.core.errors import ErrorKind, TemplateError
from tabular_templates.core.policy import PolicyStatus, TemplatePolicies
from tabular_templates.templates.store import PackageStore, find_template_files


def _write_package(path: Path, **overrides) -> Path:
    payload = {
        "name": path.name.split(".")[0],
        "version": 1,
        "templates": [
            {
                "kind": "calendar",
                "table": "Date",
                "columns": [{"name": "Date", "attribute": "date", "data_type": "date"}],
            }
        ],
    }
    payload.update(overrides)
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def _forced(enabled: bool):
    return lambda: TemplatePolicies(
        built_in_templates_enabled=enabled,
        built_in_templates_enabled_policy=PolicyStatus.FORCED,
    )


def test_load_one_builtin_package(standard_package, cache_dir):
    assert standard_package.name == "Standard"
    assert standard_package.source == str(cache_dir / "Standard.package.json")
    assert standard_package.templates[0].kind == "calendar"
    assert standard_package.config.first_year <= standard_package.config.last_year


def test_loaded_package_is_immutable(standard_package):
    with pytest.raises(ValidationError):
        standard_package.name = "changed"

    derived = standard_package.with_config(first_year=2024, last_year=2024)
    assert derived is not standard_package
    assert derived.config.first_year == 2024
    assert standard_package.config.first_year == 2020


def test_malformed_json_raises_template_error_and_reports_once(tmp_path, store, reported):
    bad = tmp_path / "Broken.package.json"
    bad.write_text("{ not json", encoding="utf-8")

    with pytest.raises(TemplateError) as ei:
        store.load_one(bad)

    assert ei.value.kind == ErrorKind.TEMPLATE
    assert ei.value.details["path"] == str(bad)
    assert reported == [ei.value]


def test_unsupported_version_is_rejected(tmp_path, store):
    p = _write_package(tmp_path / "Future.package.json", version=2)
    with pytest.raises(TemplateError, match="unsupported package"):
        store.load_one(p)


def test_unknown_column_attribute_is_rejected(tmp_path, store):
    p = _write_package(
        tmp_path / "Odd.package.json",
        templates=[{"kind": "calendar", "table": "Date", "columns": [{"name": "X", "attribute": "moon_phase"}]}],
    )
    with pytest.raises(TemplateError):
        store.load_one(p)


def test_missing_file_raises_template_error(tmp_path, store):
    with pytest.raises(TemplateError, match="cannot read package"):
        store.load_one(tmp_path / "Nope.package.json")


def test_find_template_files_uses_package_suffix(tmp_path):
    _write_package(tmp_path / "B.package.json")
    _write_package(tmp_path / "A.package.json")
    (tmp_path / "notes.json").write_text("{}", encoding="utf-8")
    (tmp_path / "README.md").write_text("x", encoding="utf-8")

    assert [p.name for p in find_template_files(tmp_path)] == ["A.package.json", "B.package.json"]
    assert find_template_files(tmp_path / "missing") == []


def test_load_all_returns_every_package(tmp_path, diagnostics):
    _write_package(tmp_path / "A.package.json")
    _write_package(tmp_path / "B.package.json")

    packages = PackageStore(diagnostics=diagnostics).load_all(tmp_path)
    assert [p.name for p in packages] == ["A", "B"]


def test_load_all_returns_empty_when_policy_forces_builtins_off(tmp_path, diagnostics, reported):
    _write_package(tmp_path / "A.package.json")
    (tmp_path / "Broken.package.json").write_text("{", encoding="utf-8")

    store = PackageStore(policies=_forced(False), diagnostics=diagnostics)

    assert store.load_all(tmp_path) == []
    assert reported == []


def test_load_all_with_policy_forced_on(tmp_path, diagnostics):
    _write_package(tmp_path / "A.package.json")
    store = PackageStore(policies=_forced(True), diagnostics=diagnostics)
    assert len(store.load_all(tmp_path)) == 1


def test_load_all_fails_when_any_file_is_bad(tmp_path, diagnostics, reported):
    _write_package(tmp_path / "A.package.json")
    (tmp_path / "B.package.json").write_text("[]", encoding="utf-8")

    with pytest.raises(TemplateError, match="expected a JSON object"):
        PackageStore(diagnostics=diagnostics).load_all(tmp_path)
    assert len(reported) == 1


def test_load_all_on_builtin_cache(store, cache_dir):
    names = {p.name for p in store.load_all(cache_dir)}
    assert names == {"Standard", "Holidays"}
