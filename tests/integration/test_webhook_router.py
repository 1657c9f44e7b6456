"""Integration tests for the webhook registry API router."""

import httpx
import pytest

from primehooks.deps import get_trigger_engine

WEBHOOK = {
    "name": "Summarize chat",
    "endpoint_url": "https://hooks.example.com/summarize",
    "secret": "whsec-abc",
    "headers": {"X-Team": "ops"},
}


@pytest.fixture
def receiver(client):
    """Route outbound webhook calls to an in-process handler."""
    calls = []
    state = {"status": 200}

    def handler(request):
        calls.append(request)
        return httpx.Response(state["status"], json={"received": True})

    get_trigger_engine()._http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
    )
    return {"calls": calls, "state": state}


async def create(client, headers, **overrides):
    body = dict(WEBHOOK)
    body.update(overrides)
    resp = await client.post("/webhooks", headers=headers, json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestCreateWebhook:
    async def test_create(self, client, org_headers):
        data = await create(client, org_headers)
        assert data["name"] == "Summarize chat"
        assert data["http_method"] == "POST"
        assert data["timeout_seconds"] == 30
        assert data["retry_count"] == 3
        assert data["rate_limit_per_minute"] == 60
        assert data["has_secret"] is True
        assert "secret" not in data  # write-only
        assert data["health_status"] == "unknown"
        assert data["headers"] == {"X-Team": "ops"}

    async def test_requires_auth(self, client):
        resp = await client.post("/webhooks", json=WEBHOOK)
        assert resp.status_code in (401, 403, 422)

    async def test_unknown_org_key(self, client):
        resp = await client.post(
            "/webhooks", headers={"X-PrimeHooks-Api-Key": "phk_nope"}, json=WEBHOOK,
        )
        assert resp.status_code == 403

    async def test_rejects_bad_url(self, client, org_headers):
        resp = await client.post(
            "/webhooks", headers=org_headers,
            json={"name": "x", "endpoint_url": "ftp://example.com"},
        )
        assert resp.status_code == 422

    async def test_rejects_bad_method(self, client, org_headers):
        resp = await client.post(
            "/webhooks", headers=org_headers,
            json={"name": "x", "endpoint_url": "https://example.com", "http_method": "TRACE"},
        )
        assert resp.status_code == 422

    async def test_rejects_zero_timeout(self, client, org_headers):
        resp = await client.post(
            "/webhooks", headers=org_headers,
            json={"name": "x", "endpoint_url": "https://example.com", "timeout_seconds": 0},
        )
        assert resp.status_code == 422

    async def test_rejects_non_ascii_header(self, client, org_headers):
        resp = await client.post(
            "/webhooks", headers=org_headers,
            json={"name": "x", "endpoint_url": "https://example.com", "headers": {"X-Team": "Équipe"}},
        )
        assert resp.status_code == 422


class TestListWebhooks:
    async def test_list_empty(self, client, org_headers):
        resp = await client.get("/webhooks", headers=org_headers)
        assert resp.status_code == 200
        assert resp.json() == []

    async def test_filters(self, client, org_headers):
        await create(client, org_headers, name="Summarize chat")
        await create(client, org_headers, name="Index files")
        hook = await create(client, org_headers, name="Archive")
        await client.put(f"/webhooks/{hook['id']}/active", headers=org_headers, json={"is_active": False})

        resp = await client.get("/webhooks", headers=org_headers, params={"is_active": "true"})
        assert len(resp.json()) == 2
        resp = await client.get("/webhooks", headers=org_headers, params={"search": "index"})
        assert [w["name"] for w in resp.json()] == ["Index files"]
        resp = await client.get("/webhooks", headers=org_headers, params={"health": "unknown"})
        assert len(resp.json()) == 3
        resp = await client.get("/webhooks", headers=org_headers, params={"health": "healthy"})
        assert resp.json() == []

    async def test_isolated_between_organizations(self, client, org_headers, super_admin_headers):
        await create(client, org_headers)
        other = (await client.post(
            "/organizations", headers=super_admin_headers,
            json={"name": "Other", "slug": "other"},
        )).json()
        resp = await client.get("/webhooks", headers={"X-PrimeHooks-Api-Key": other["api_key"]})
        assert resp.json() == []


class TestSingleWebhook:
    async def test_get(self, client, org_headers):
        hook = await create(client, org_headers)
        resp = await client.get(f"/webhooks/{hook['id']}", headers=org_headers)
        assert resp.status_code == 200
        assert resp.json()["id"] == hook["id"]

    async def test_get_not_found(self, client, org_headers):
        resp = await client.get("/webhooks/nonexistent", headers=org_headers)
        assert resp.status_code == 404

    async def test_patch(self, client, org_headers):
        hook = await create(client, org_headers)
        resp = await client.patch(
            f"/webhooks/{hook['id']}", headers=org_headers,
            json={"name": "Renamed", "http_method": "put"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["name"] == "Renamed"
        assert data["http_method"] == "PUT"
        assert data["endpoint_url"] == WEBHOOK["endpoint_url"]
        assert data["has_secret"] is True

    async def test_patch_invalid(self, client, org_headers):
        hook = await create(client, org_headers)
        resp = await client.patch(
            f"/webhooks/{hook['id']}", headers=org_headers, json={"endpoint_url": "nope"},
        )
        assert resp.status_code == 422

    async def test_patch_not_found(self, client, org_headers):
        resp = await client.patch("/webhooks/nope", headers=org_headers, json={"name": "x"})
        assert resp.status_code == 404

    async def test_set_active(self, client, org_headers):
        hook = await create(client, org_headers)
        for _ in range(2):
            resp = await client.put(
                f"/webhooks/{hook['id']}/active", headers=org_headers, json={"is_active": False},
            )
            assert resp.status_code == 200
            assert resp.json()["is_active"] is False

    async def test_delete(self, client, org_headers):
        hook = await create(client, org_headers)
        resp = await client.delete(f"/webhooks/{hook['id']}", headers=org_headers)
        assert resp.status_code == 204
        resp = await client.get(f"/webhooks/{hook['id']}", headers=org_headers)
        assert resp.status_code == 404

    async def test_delete_blocked_then_cascade(self, client, org_headers):
        hook = await create(client, org_headers)
        await client.post(
            "/assignments", headers=org_headers,
            json={"feature_page": "Chat", "position": "slot", "webhook_id": hook["id"]},
        )
        resp = await client.delete(f"/webhooks/{hook['id']}", headers=org_headers)
        assert resp.status_code == 409

        resp = await client.delete(
            f"/webhooks/{hook['id']}", headers=org_headers, params={"cascade": "true"},
        )
        assert resp.status_code == 204
        resp = await client.get("/pages/Chat/positions/slot", headers=org_headers)
        assert resp.json()["configured"] is False


class TestTestAndHealth:
    async def test_run_test(self, client, org_headers, receiver):
        hook = await create(client, org_headers)
        resp = await client.post(f"/webhooks/{hook['id']}/test", headers=org_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "success"
        assert data["success"] is True
        assert data["is_test"] is True
        assert data["response_body"] == {"received": True}

        request = receiver["calls"][0]
        assert request.headers["x-test"] == "true"
        assert request.headers["x-signature"].startswith("sha256=")

        resp = await client.get(f"/webhooks/{hook['id']}/health", headers=org_headers)
        assert resp.status_code == 200
        health = resp.json()
        assert health["status"] == "healthy"
        assert health["last_test_status"] == "success"
        assert health["total_executions"] == 0

    async def test_run_test_failure(self, client, org_headers, receiver):
        receiver["state"]["status"] = 500
        hook = await create(client, org_headers)
        resp = await client.post(
            f"/webhooks/{hook['id']}/test", headers=org_headers, json={"event_type": "ping"},
        )
        data = resp.json()
        assert data["status"] == "failed"
        assert data["status_code"] == 500
        assert data["error_message"] == "HTTP 500: Internal Server Error"
        assert data["event_type"] == "ping"

        resp = await client.get(f"/webhooks/{hook['id']}", headers=org_headers)
        assert resp.json()["health_status"] == "error"

    async def test_run_test_rejects_non_ascii_event_type(self, client, org_headers, receiver):
        hook = await create(client, org_headers)
        resp = await client.post(
            f"/webhooks/{hook['id']}/test", headers=org_headers, json={"event_type": "tést"},
        )
        assert resp.status_code == 422
        assert receiver["calls"] == []

    async def test_run_test_not_found(self, client, org_headers, receiver):
        resp = await client.post("/webhooks/nope/test", headers=org_headers)
        assert resp.status_code == 404
        assert receiver["calls"] == []

    async def test_health_not_found(self, client, org_headers):
        resp = await client.get("/webhooks/nope/health", headers=org_headers)
        assert resp.status_code == 404


class TestExecutionsAndStats:
    async def test_execution_history(self, client, org_headers, receiver):
        hook = await create(client, org_headers)
        await client.post(
            "/assignments", headers=org_headers,
            json={"feature_page": "Chat", "position": "slot", "webhook_id": hook["id"]},
        )
        await client.post(f"/webhooks/{hook['id']}/test", headers=org_headers)
        await client.post(
            "/pages/Chat/positions/slot/trigger", headers=org_headers,
            json={"user_id": "u1", "payload": {"text": "hi"}},
        )

        resp = await client.get(f"/webhooks/{hook['id']}/executions", headers=org_headers)
        assert resp.status_code == 200
        assert len(resp.json()) == 2

        resp = await client.get(
            f"/webhooks/{hook['id']}/executions", headers=org_headers,
            params={"is_test": "false"},
        )
        [record] = resp.json()
        assert record["user_id"] == "u1"
        assert record["request_body"]["data"]["text"] == "hi"
        assert record["request_headers"]["X-Signature"].startswith("sha256=")

    async def test_executions_not_found(self, client, org_headers):
        resp = await client.get("/webhooks/nope/executions", headers=org_headers)
        assert resp.status_code == 404

    async def test_stats(self, client, org_headers, receiver):
        hook = await create(client, org_headers)
        await create(client, org_headers, name="Idle", is_active=False)
        await client.post(
            "/assignments", headers=org_headers,
            json={"feature_page": "Chat", "position": "slot", "webhook_id": hook["id"]},
        )
        await client.post("/pages/Chat/positions/slot/trigger", headers=org_headers, json={})
        receiver["state"]["status"] = 502
        await client.post("/pages/Chat/positions/slot/trigger", headers=org_headers, json={})

        resp = await client.get("/webhooks/stats", headers=org_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_webhooks"] == 2
        assert data["active_webhooks"] == 1
        assert data["inactive_webhooks"] == 1
        assert set(data["periods"]) == {"24h", "7d", "30d"}
        assert data["periods"]["24h"]["total"] == 2
        assert data["periods"]["24h"]["success_rate"] == 50
        [error] = data["recent_errors"]
        assert error["webhook_name"] == "Summarize chat"
        assert error["error_message"] == "HTTP 502: Bad Gateway"


class TestBulk:
    async def test_bulk_active(self, client, org_headers):
        a = await create(client, org_headers, name="A")
        b = await create(client, org_headers, name="B")
        resp = await client.post(
            "/webhooks/bulk/active", headers=org_headers,
            json={"webhook_ids": [a["id"], "missing", b["id"]], "is_active": False},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["succeeded"] == [a["id"], b["id"]]
        assert [f["id"] for f in data["failed"]] == ["missing"]

        resp = await client.get("/webhooks", headers=org_headers, params={"is_active": "false"})
        assert len(resp.json()) == 2

    async def test_bulk_delete(self, client, org_headers):
        a = await create(client, org_headers, name="A")
        b = await create(client, org_headers, name="B")
        await client.post(
            "/assignments", headers=org_headers,
            json={"feature_page": "Chat", "position": "slot", "webhook_id": b["id"]},
        )
        resp = await client.post(
            "/webhooks/bulk/delete", headers=org_headers,
            json={"webhook_ids": [a["id"], b["id"]]},
        )
        data = resp.json()
        assert data["succeeded"] == [a["id"]]
        assert data["failed"][0]["id"] == b["id"]

        resp = await client.post(
            "/webhooks/bulk/delete", headers=org_headers,
            json={"webhook_ids": [b["id"]], "cascade": True},
        )
        assert resp.json()["succeeded"] == [b["id"]]

    async def test_bulk_requires_ids(self, client, org_headers):
        resp = await client.post(
            "/webhooks/bulk/active", headers=org_headers,
            json={"webhook_ids": [], "is_active": True},
        )
        assert resp.status_code == 422


class TestImportExport:
    async def test_export_json_omits_secrets(self, client, org_headers):
        await create(client, org_headers)
        resp = await client.get("/webhooks/export", headers=org_headers)
        assert resp.status_code == 200
        assert "attachment" in resp.headers["content-disposition"]
        doc = resp.json()
        assert doc["metadata"]["count"] == 1
        [item] = doc["webhooks"]
        assert item["name"] == "Summarize chat"
        assert item["headers"] == {"X-Team": "ops"}
        assert "secret" not in item
        assert "whsec-abc" not in resp.text

    async def test_export_csv(self, client, org_headers):
        await create(client, org_headers)
        await create(client, org_headers, name="Paused", is_active=False)
        resp = await client.get(
            "/webhooks/export", headers=org_headers,
            params={"format": "csv", "include_inactive": "false"},
        )
        assert resp.status_code == 200
        assert "text/csv" in resp.headers["content-type"]
        lines = resp.text.strip().splitlines()
        assert lines[0].startswith("name,description,endpoint_url")
        assert len(lines) == 2
        assert lines[1].startswith("Summarize chat,")
        assert "whsec-abc" not in resp.text

    async def test_export_rejects_unknown_format(self, client, org_headers):
        resp = await client.get("/webhooks/export", headers=org_headers, params={"format": "xml"})
        assert resp.status_code == 422

    async def test_import_json_reports_each_item(self, client, org_headers):
        resp = await client.post(
            "/webhooks/import", headers=org_headers,
            json={"webhooks": [
                {"name": "A", "endpoint_url": "https://example.com/a"},
                {"name": "", "endpoint_url": "https://example.com/b"},
                "junk",
            ]},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert len(data["succeeded"]) == 1
        assert [f["id"] for f in data["failed"]] == ["#2", "#3"]

        resp = await client.get("/webhooks", headers=org_headers)
        assert [w["name"] for w in resp.json()] == ["A"]

    async def test_import_requires_items(self, client, org_headers):
        resp = await client.post("/webhooks/import", headers=org_headers, json={"webhooks": []})
        assert resp.status_code == 422

    async def test_csv_export_imports_into_other_organization(
        self, client, org_headers, super_admin_headers,
    ):
        await create(client, org_headers)
        exported = await client.get(
            "/webhooks/export", headers=org_headers, params={"format": "csv"},
        )

        resp = await client.post(
            "/organizations", headers=super_admin_headers,
            json={"name": "Other", "slug": "other"},
        )
        other_headers = {"X-PrimeHooks-Api-Key": resp.json()["api_key"]}
        resp = await client.post(
            "/webhooks/import/csv", headers={**other_headers, "content-type": "text/csv"},
            content=exported.text,
        )
        assert resp.status_code == 200
        assert len(resp.json()["succeeded"]) == 1

        [copy] = (await client.get("/webhooks", headers=other_headers)).json()
        assert copy["name"] == "Summarize chat"
        assert copy["headers"] == {"X-Team": "ops"}
        assert copy["has_secret"] is False

    async def test_import_csv_rejects_missing_header_row(self, client, org_headers):
        resp = await client.post(
            "/webhooks/import/csv", headers={**org_headers, "content-type": "text/csv"},
            content="https://example.com,POST\n",
        )
        assert resp.status_code == 422
