# tests/unit/test_api.py
"""HTTP API tests over httpx's ASGI transport."""

from pathlib import Path

import httpx
import pytest
import pytest_asyncio

from conftest import make_config, make_form, make_theme, make_workflow, wait_terminal
from tool_exporter.api import create_app
from tool_exporter.background.lifecycle import ServiceLifecycle
from tool_exporter.models.jobs import ExportJob
from tool_exporter.snapshots.source import InMemorySnapshotSource


@pytest_asyncio.fixture
async def lifecycle(tmp_path: Path):
    snapshots = InMemorySnapshotSource(
        [
            make_form(tmp_path),
            make_form(tmp_path, tool_id="old-form", status="archived"),
            make_form(tmp_path, tool_id="broken-form", schema="text"),
            make_workflow(),
            make_theme(),
        ]
    )
    lifecycle = ServiceLifecycle(make_config(tmp_path), snapshots=snapshots)
    await lifecycle.startup()
    yield lifecycle
    await lifecycle.shutdown()


@pytest_asyncio.fixture
async def client(lifecycle: ServiceLifecycle):
    app = create_app(lifecycle, manage_lifecycle=False)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def _completed_job(client: httpx.AsyncClient, lifecycle: ServiceLifecycle) -> ExportJob:
    response = await client.post("/tools/contact-form/export")
    assert response.status_code == 201
    return await wait_terminal(lifecycle.store, response.json()["job_id"])


@pytest.mark.asyncio
async def test_start_export_returns_201(client: httpx.AsyncClient, lifecycle: ServiceLifecycle):
    response = await client.post("/tools/onboarding/export")

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending"
    assert body["tool_type"] == "workflows"
    assert body["next_steps"] == f"Poll GET /exports/{body['job_id']} to monitor progress"
    await wait_terminal(lifecycle.store, body["job_id"])


@pytest.mark.asyncio
async def test_start_export_unknown_tool_404(client: httpx.AsyncClient, lifecycle: ServiceLifecycle):
    response = await client.post("/tools/ghost/export")

    assert response.status_code == 404
    assert response.json()["detail"]["reasons"] == ["Tool 'ghost' not found"]
    assert await lifecycle.store.list_jobs() == []


@pytest.mark.asyncio
async def test_start_export_blocked_tool_400(client: httpx.AsyncClient):
    response = await client.post("/tools/old-form/export")

    assert response.status_code == 400
    assert response.json()["detail"]["errors"][0]["code"] == "tool_not_exportable"


@pytest.mark.asyncio
async def test_preflight_endpoint(client: httpx.AsyncClient):
    ok = await client.get("/tools/brand-theme/export/preflight")
    missing = await client.get("/tools/ghost/export/preflight")

    assert ok.status_code == 200
    assert ok.json()["exportable"] is True
    assert missing.status_code == 200
    assert missing.json()["exportable"] is False


@pytest.mark.asyncio
async def test_status_of_completed_job(client: httpx.AsyncClient, lifecycle: ServiceLifecycle):
    job = await _completed_job(client, lifecycle)

    response = await client.get(f"/exports/{job.job_id}")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["steps_completed"] == body["steps_total"] == 4
    assert body["package_checksum"] == job.package_checksum
    assert body["error_message"] is None


@pytest.mark.asyncio
@pytest.mark.parametrize("job_id", ["0" * 32, "bad"])
async def test_status_unknown_job_404(client: httpx.AsyncClient, job_id: str):
    response = await client.get(f"/exports/{job_id}")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_exports(client: httpx.AsyncClient, lifecycle: ServiceLifecycle):
    job = await _completed_job(client, lifecycle)

    response = await client.get("/exports", params={"status": "completed", "tool_id": "contact-form"})
    bad = await client.get("/exports", params={"status": "done"})

    assert response.status_code == 200
    assert [e["job_id"] for e in response.json()["exports"]] == [job.job_id]
    assert bad.status_code == 422


@pytest.mark.asyncio
async def test_cancel_pending_job(client: httpx.AsyncClient, lifecycle: ServiceLifecycle):
    job, _ = await lifecycle.runner.submit("contact-form", dispatch=False)

    response = await client.post(f"/exports/{job.job_id}/cancel")

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert (await lifecycle.store.get(job.job_id)).cancelled_at is not None


@pytest.mark.asyncio
async def test_cancel_completed_job_409(client: httpx.AsyncClient, lifecycle: ServiceLifecycle):
    job = await _completed_job(client, lifecycle)

    response = await client.post(f"/exports/{job.job_id}/cancel")

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "invalid_transition"
    assert (await lifecycle.store.get(job.job_id)).status.value == "completed"


@pytest.mark.asyncio
async def test_download_completed_package(client: httpx.AsyncClient, lifecycle: ServiceLifecycle):
    job = await _completed_job(client, lifecycle)

    response = await client.get(f"/exports/{job.job_id}/download")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/gzip"
    assert "contact-form-forms.tar.gz" in response.headers["content-disposition"]
    assert response.content == Path(job.package_path).read_bytes()
    assert (await lifecycle.store.get(job.job_id)).download_count == 1


@pytest.mark.asyncio
async def test_download_pending_job_409(client: httpx.AsyncClient, lifecycle: ServiceLifecycle):
    job, _ = await lifecycle.runner.submit("contact-form", dispatch=False)

    response = await client.get(f"/exports/{job.job_id}/download")

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_download_missing_package_410(client: httpx.AsyncClient, lifecycle: ServiceLifecycle):
    job = await _completed_job(client, lifecycle)
    Path(job.package_path).unlink()

    response = await client.get(f"/exports/{job.job_id}/download")

    assert response.status_code == 410


@pytest.mark.asyncio
async def test_download_expired_package_410(
    client: httpx.AsyncClient, lifecycle: ServiceLifecycle, monkeypatch
):
    job = await _completed_job(client, lifecycle)
    monkeypatch.setattr(ExportJob, "is_expired", lambda self, now=None: True)

    response = await client.get(f"/exports/{job.job_id}/download")

    assert response.status_code == 410
    assert (await lifecycle.store.get(job.job_id)).download_count == 0


@pytest.mark.asyncio
async def test_download_tampered_package_500(client: httpx.AsyncClient, lifecycle: ServiceLifecycle):
    job = await _completed_job(client, lifecycle)
    Path(job.package_path).write_bytes(b"tampered")

    response = await client.get(f"/exports/{job.job_id}/download")

    assert response.status_code == 500
    assert (await lifecycle.store.get(job.job_id)).download_count == 0


@pytest.mark.asyncio
async def test_start_export_malformed_snapshot_400(client: httpx.AsyncClient, lifecycle: ServiceLifecycle):
    response = await client.post("/tools/broken-form/export")

    assert response.status_code == 400
    assert response.json()["detail"]["errors"][0]["code"] == "invalid_snapshot"
    assert await lifecycle.store.list_jobs() == []
