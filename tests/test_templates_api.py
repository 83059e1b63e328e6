import pytest
from fastapi.testclient import TestClient

from tabular_templates.api.deps import TemplateServices, get_services
from tabular_templates.api.main import app
from tabular_templates.core.errors import CacheIOError, TemplateError
from tabular_templates.core.policy import PolicyStatus, TemplatePolicies
from tabular_templates.model.session import SaveResult
from tabular_templates.templates.cache import TemplateCache
from tabular_templates.templates.configuration import CONFIGURATION_ANNOTATION
from tabular_templates.templates.store import PackageStore


@pytest.fixture()
def services(settings, cache, store, catalog, diagnostics):
    return TemplateServices(settings=settings, cache=cache, store=store, catalog=catalog, diagnostics=diagnostics)


@pytest.fixture()
def client(services):
    app.dependency_overrides[get_services] = lambda: services
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_list_templates(client):
    r = client.get("/api/v1/templates")
    assert r.status_code == 200, r.text
    body = r.json()
    assert {t["template_uri"] for t in body["templates"]} == {"Standard.package.json", "Holidays.package.json"}


def test_list_templates_respects_policy(services, client):
    services.store = PackageStore(
        policies=lambda: TemplatePolicies(
            built_in_templates_enabled=False,
            built_in_templates_enabled_policy=PolicyStatus.FORCED,
        )
    )
    r = client.get("/api/v1/templates")
    assert r.status_code == 200
    assert r.json() == {"templates": []}


def test_preview_then_apply_then_read_configuration(client, catalog):
    cfg = {"template_uri": "Standard.package.json", "first_year": 2024, "last_year": 2024}

    r = client.post("/api/v1/models/Contoso/templates/preview", json={"configuration": cfg, "preview_rows": 2})
    assert r.status_code == 200, r.text
    changes = r.json()["changes"]
    assert changes["count"] == 1
    assert changes["tables"][0]["name"] == "Date"
    assert len(changes["tables"][0]["preview_rows"]) == 2
    assert "Date" not in catalog.get("Contoso").tables

    r = client.get("/api/v1/models/Contoso/templates/configuration")
    assert r.status_code == 404

    r = client.post("/api/v1/models/Contoso/templates/apply", json={"configuration": cfg})
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "committed"
    assert "Date" in catalog.get("Contoso").tables

    r = client.get("/api/v1/models/Contoso/templates/configuration")
    assert r.status_code == 200
    assert r.json()["first_year"] == 2024


def test_default_preview_rows_from_settings(client):
    r = client.post("/api/v1/models/Contoso/templates/preview", json={})
    assert r.status_code == 200, r.text
    assert r.json()["preview_rows"] == 10
    assert len(r.json()["changes"]["tables"][0]["preview_rows"]) == 10


def test_unknown_model_and_bad_uri(client):
    assert client.get("/api/v1/models").json() == {"models": ["Contoso"]}

    r = client.post("/api/v1/models/Nope/templates/preview", json={})
    assert r.status_code == 404

    r = client.post(
        "/api/v1/models/Contoso/templates/preview",
        json={"configuration": {"template_uri": "../../etc/passwd"}},
    )
    assert r.status_code == 400


def test_template_errors_are_shaped(client):
    r = client.post(
        "/api/v1/models/Contoso/templates/preview",
        json={"configuration": {"template_uri": "Missing.package.json"}},
        headers={"X-Request-Id": "rid-123"},
    )
    assert r.status_code == 422
    body = r.json()
    assert body["error"]["kind"] == "TEMPLATE"
    assert body["request_id"] == "rid-123"
    assert "Traceback" not in r.text


def test_save_failure_maps_to_conflict(client, catalog):
    catalog.fail_next_save("Contoso", SaveResult(ok=False, errors=["locked"]))
    r = client.post("/api/v1/models/Contoso/templates/apply", json={})
    assert r.status_code == 409
    assert r.json()["error"]["kind"] == "SAVE"


def test_health_ready_and_metrics(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/api/v1/health/ready").json() == {"status": "ready"}

    client.get("/api/v1/templates")
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "templates_packages_loaded_total" in r.text


def test_startup_warms_template_cache(services):
    app.dependency_overrides[get_services] = lambda: services
    try:
        assert not services.cache.initialized
        with TestClient(app) as c:
            assert services.cache.initialized
            assert c.get("/api/v1/health/ready").json() == {"status": "ready"}
    finally:
        app.dependency_overrides.clear()


def test_readiness_reports_unavailable_cache(services, settings, diagnostics, reported, client):
    def broken():
        raise OSError("disk full")

    services.cache = TemplateCache.from_settings(settings, resources=broken, diagnostics=diagnostics)
    r = client.get("/api/v1/health/ready")
    assert r.status_code == 503
    assert r.json()["problems"] == ["template_cache_unavailable"]
    assert [type(e) for e in reported] == [CacheIOError]


def test_malformed_stored_configuration_is_reported(client, catalog, reported):
    session = catalog.open_session("Contoso")
    session.apply_local_mutation(lambda m: m.annotations.__setitem__(CONFIGURATION_ANNOTATION, "{bad"))
    session.save().raise_on_error()

    r = client.get("/api/v1/models/Contoso/templates/configuration")
    assert r.status_code == 422
    assert r.json()["error"]["kind"] == "TEMPLATE"
    assert len(reported) == 1
    assert isinstance(reported[0], TemplateError)


def test_request_id_header_roundtrip(client):
    r = client.get("/health")
    assert len(r.headers["X-Request-Id"]) > 10
    r = client.get("/health", headers={"X-Request-Id": "abc"})
    assert r.headers["X-Request-Id"] == "abc"
