"""Tests for the HTTP API (autodirector/api/app.py).

Uses FastAPI's TestClient against a Runtime whose capabilities are mocks.
"""

import time

import pytest
from fastapi.testclient import TestClient

from autodirector.api.app import create_app, failure_message
from autodirector.engine.context import RunRecord, RunStatus
from autodirector.engine.runtime import build_runtime


@pytest.fixture
def runtime(mock_config, registry, caps, runs, browser_factory):
    return build_runtime(
        config=mock_config,
        registry=registry,
        capabilities=caps,
        runs=runs,
        browser_factory=browser_factory,
    )


@pytest.fixture
def client(runtime):
    with TestClient(create_app(runtime)) as test_client:
        yield test_client


def _wait_for(client, run_id: str, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        body = client.get(f"/run/{run_id}").json()
        if body["status"] != "running" or time.monotonic() > deadline:
            return body
        time.sleep(0.02)


class TestHealthAndStatus:
    def test_health(self, client):
        body = client.get("/health").json()
        assert body["ok"] is True
        assert body["service"] == "mediad-autodirector"
        assert body["time"]

    def test_status_lists_services(self, client):
        body = client.get("/status").json()
        keys = {svc["service"] for svc in body["services"]}
        assert keys == {"mail", "mailbox", "planner_oracle", "image_generation", "browser"}
        assert "Overall:" in body["summary"]


class TestPlan:
    def test_plan_from_text(self, client):
        response = client.post(
            "/plan", json={"prompt": "screenshot cnn.com and email it to a@b.com"}
        )
        body = response.json()
        assert response.status_code == 200
        assert body["ok"] is True
        assert [s["kind"] for s in body["steps"]] == [
            "capture_screenshot",
            "notify_with_artifact",
        ]
        assert body["plan"]["source"] == "heuristic:capture"

    def test_unplannable_text(self, client):
        body = client.post("/plan", json={"prompt": "what is the weather like"}).json()
        assert body["ok"] is False
        assert body["steps"] == []
        assert "message" in body

    def test_missing_prompt(self, client):
        response = client.post("/plan", json={})
        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "Invalid request body: prompt"}


class TestRun:
    """Background and inline runs."""

    def test_background_run_polled_to_done(self, client):
        response = client.post("/run", json={"steps": [{"kind": "teleport"}]})
        body = response.json()
        assert body["status"] == "running"
        record = _wait_for(client, body["id"])
        assert record["status"] == "done"
        assert any("unknown step kind" in line for line in record["log"])

    def test_single_step_object_accepted(self, client):
        body = client.post("/run", json={"steps": {"kind": "teleport"}}).json()
        assert _wait_for(client, body["id"])["status"] == "done"

    def test_bad_steps_payload(self, client):
        response = client.post("/run", json={"steps": 42})
        assert response.status_code == 400
        assert response.json()["ok"] is False

    def test_unknown_run(self, client):
        response = client.get("/run/doesnotexist")
        assert response.status_code == 404
        assert response.json()["ok"] is False

    def test_sync_run(self, client):
        body = client.post(
            "/run/sync",
            json={"steps": [{"kind": "capture_pdf", "params": {"url": "example.com"}}]},
        ).json()
        assert body["ok"] is True
        assert body["results"]["status"] == "done"
        assert body["results"]["artifacts"][0]["kind"] == "pdf"

    def test_sync_run_fault(self, client, caps):
        body = client.post(
            "/run/sync",
            json={"steps": [{"kind": "notify_with_text", "to": "a@b.com"}]},
        ).json()
        assert body["ok"] is False
        assert body["results"]["status"] == "error"
        caps.mail.send.assert_not_awaited()


class TestQuick:
    """Screenshot plus optional notification."""

    def test_quick_with_email(self, client, caps):
        body = client.post("/quick", json={"url": "cnn.com", "email": "a@b.com"}).json()
        assert body["ok"] is True
        assert body["link"].startswith("/runs/")
        assert body["url"] == "http://testserver" + body["link"]
        assert body["email"] == "a@b.com"
        assert caps.mail.send.await_count == 1

        artifact = client.get(body["link"])
        assert artifact.status_code == 200
        assert artifact.content == b"\x89PNG fake"

    def test_quick_without_recipient_skips_mail(self, client, caps):
        body = client.post("/quick", json={"url": "cnn.com"}).json()
        assert body["ok"] is True
        assert body["email"] is None
        caps.mail.send.assert_not_awaited()

    def test_quick_uses_public_base_url(self, client, mock_config):
        mock_config.public_base_url = "https://svc.example/"
        body = client.post("/quick", json={"url": "cnn.com"}).json()
        assert body["url"] == "https://svc.example" + body["link"]

    @pytest.mark.parametrize("url", ["", "   "])
    def test_quick_blank_url(self, client, fake_browser, url):
        response = client.post("/quick", json={"url": url})
        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "Missing or invalid url"}
        assert fake_browser.calls == []

    def test_quick_bad_scheme(self, client):
        response = client.post("/quick", json={"url": "bad://x"})
        assert response.status_code == 500
        body = response.json()
        assert body["ok"] is False
        assert "Unsupported URL scheme" in body["error"]


class TestShutdown:
    def test_background_runs_drained_on_exit(self, runtime):
        with TestClient(create_app(runtime)) as test_client:
            run_id = test_client.post("/run", json={"steps": [{"kind": "teleport"}]}).json()["id"]
        assert runtime.executor.tasks.is_running(f"run-{run_id}") is False
        assert runtime.runs.get(run_id).status == RunStatus.DONE


class TestSweep:
    def test_sweep_one_type(self, client, runtime):
        runtime.store.add_briefing("AI", "me@x.com")
        body = client.post("/sweep/briefings").json()
        assert body == {"ok": True, "processed": 1, "changed": 1, "errors": 0}

    def test_unknown_type(self, client):
        response = client.post("/sweep/cats")
        assert response.status_code == 404
        assert "job-alerts" in response.json()["error"]

    def test_sweep_all(self, client):
        body = client.post("/sweep").json()
        assert body["ok"] is True
        assert body["processed"] == 0
        assert set(body["results"]) == {
            "monitors",
            "briefings",
            "competitor_watches",
            "job_alerts",
        }


class TestFailureMessage:
    def test_extracts_fault_text(self):
        record = RunRecord.new()
        record.append_log("[10:00:00] Step 1: capture_pdf")
        record.append_log("[10:00:01] Step fault: step 1 (capture_pdf): boom")
        record.finish(RunStatus.ERROR)
        assert failure_message(record) == "step 1 (capture_pdf): boom"

    def test_default(self):
        assert failure_message(RunRecord.new()) == "Run failed"
