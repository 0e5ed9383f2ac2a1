"""
API endpoint tests
"""

import uuid

import pytest

from core.config import settings
from models.base import ModuleStatus


@pytest.mark.asyncio
async def test_health_endpoint_database_connected(client):
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["database_connected"] is True
    assert data["status"] == "healthy"
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_catalog_list_and_get(client):
    response = await client.get("/catalog")
    assert response.status_code == 200
    assert len(response.json()) == 8

    response = await client.get("/catalog/seo-toolkit")
    assert response.status_code == 200
    assert response.json()["id"] == "mod_seo_toolkit"


@pytest.mark.asyncio
async def test_catalog_missing_entry_is_404(client):
    response = await client.get("/catalog/does-not-exist")

    assert response.status_code == 404
    body = response.json()
    assert body["error"] == "NotFoundError"
    assert body["error_code"] == "NOT_FOUND"
    assert body["context"]["module_id"] == "does-not-exist"


@pytest.mark.asyncio
async def test_install_conflict_and_uninstall(client):
    response = await client.post("/sites/42/installations", json={"module_id": "google-analytics"})
    assert response.status_code == 201
    assert response.json()["settings"] == {}
    assert response.json()["module_id"] == "mod_analytics_google"

    response = await client.post("/sites/42/installations", json={"module_id": "mod_analytics_google"})
    assert response.status_code == 409
    assert response.json()["error_code"] == "CONFLICT"

    response = await client.delete("/sites/42/installations/google-analytics")
    assert response.status_code == 204

    response = await client.get("/sites/42/installations")
    assert response.json() == []


@pytest.mark.asyncio
async def test_install_unknown_module_is_404(client):
    response = await client.post("/sites/42/installations", json={"module_id": "nope"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_install_bad_settings_is_422(client, make_source):
    source = await make_source(status=ModuleStatus.TESTING)

    response = await client.post(
        "/sites/42/installations",
        json={"module_id": source.slug, "settings": {"layout": "sidebar"}},
    )

    assert response.status_code == 422
    body = response.json()
    assert body["error_code"] == "SETTINGS_INVALID"
    assert "layout" in body["context"]["field_errors"]


@pytest.mark.asyncio
async def test_update_and_toggle_installation(client, make_source):
    source = await make_source(status=ModuleStatus.TESTING)
    await client.post("/sites/42/installations", json={"module_id": source.slug})

    response = await client.put(
        f"/sites/42/installations/{source.slug}/settings",
        json={"settings": {"headline": "Hello"}},
    )
    assert response.status_code == 200
    assert response.json()["settings"] == {"headline": "Hello"}

    response = await client.patch(f"/sites/42/installations/{source.slug}", json={"is_enabled": False})
    assert response.status_code == 200
    assert response.json()["is_enabled"] is False


@pytest.mark.asyncio
async def test_deploy_then_render(client, make_source):
    source = await make_source(slug="loyalty-points")

    response = await client.post(f"/modules/{source.id}/deploy", json={"changelog": "Initial release"})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["version"] == "1.0.0"
    assert body["sync"]["action"] == "created"

    response = await client.post(
        "/sites/42/installations",
        json={"module_id": "loyalty-points", "settings": {"headline": "Hi"}},
    )
    assert response.status_code == 201

    response = await client.get("/sites/42/modules")
    assert response.status_code == 200
    modules = response.json()
    assert [m["id"] for m in modules] == [str(source.id)]
    assert modules[0]["merged_settings"]["headline"] == "Hi"

    response = await client.get("/sites/42/page")
    assert response.status_code == 200
    page = response.json()
    assert page[0]["status"] == "ok"
    assert page[0]["document"]["iframe_attributes"]["sandbox"] == "allow-scripts"

    response = await client.get("/sites/42/render-health")
    assert response.json()["total_successes"] == 1


@pytest.mark.asyncio
async def test_deploy_undeployable_is_422(client, make_source):
    source = await make_source(render_code="function NoExport() { return null; }")

    response = await client.post(f"/modules/{source.id}/deploy", json={"changelog": "Initial release"})

    assert response.status_code == 422
    body = response.json()
    assert body["error_code"] == "VALIDATION_ERROR"
    assert "Module must have a default export" in body["context"]["errors"]


@pytest.mark.asyncio
async def test_deploy_duplicate_version_is_409(client, make_source):
    source = await make_source()
    url = f"/modules/{source.id}/deploy"

    assert (await client.post(url, json={"changelog": "one", "version": "1.0.0"})).status_code == 200
    response = await client.post(url, json={"changelog": "two", "version": "1.0.0"})

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_deploy_unknown_source_is_404(client):
    response = await client.post(f"/modules/{uuid.uuid4()}/deploy", json={"changelog": "x"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_sync_dry_run_and_rollback(client, make_source):
    source = await make_source()

    response = await client.post(f"/modules/{source.id}/sync", params={"dry_run": True})
    assert response.status_code == 200
    assert response.json()["action"] == "skipped"

    deployed = (await client.post(f"/modules/{source.id}/deploy", json={"changelog": "one"})).json()

    response = await client.get(f"/modules/{source.id}/deployments")
    assert [d["status"] for d in response.json()] == ["success"]

    response = await client.post(f"/deployments/{deployed['deployment_id']}/rollback")
    assert response.status_code == 200
    assert response.json()["status"] == "testing"

    response = await client.post(f"/deployments/{deployed['deployment_id']}/rollback")
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_sync_all_endpoint(client, make_source):
    await make_source(status=ModuleStatus.PUBLISHED, published_version="1.0.0")

    response = await client.post("/sync")

    assert response.status_code == 200
    assert response.json()["created"] == 1


@pytest.mark.asyncio
async def test_admin_routes_require_api_key(client, monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", "secret")

    response = await client.post("/sync")
    assert response.status_code == 403
    assert response.json()["error_code"] == "NOT_AUTHORIZED"

    response = await client.post("/sync", headers={"X-API-Key": "secret"})
    assert response.status_code == 200

    # Site-facing routes stay open
    assert (await client.get("/catalog")).status_code == 200


@pytest.mark.asyncio
async def test_render_health_report(client):
    response = await client.post(
        "/sites/42/render-health",
        json={"module_id": "hotjar", "status": "error", "error": "ReferenceError: x is not defined"},
    )
    assert response.status_code == 202

    response = await client.get("/sites/42/render-health")
    body = response.json()
    assert body["total_failures"] == 1
    assert body["modules"][0]["last_error"] == "ReferenceError: x is not defined"


@pytest.mark.asyncio
async def test_render_health_rejects_unknown_status(client):
    response = await client.post("/sites/42/render-health", json={"module_id": "hotjar", "status": "exploded"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_cors_allows_host_pages(client):
    response = await client.get("/catalog", headers={"Origin": "https://shop.example.com"})

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
