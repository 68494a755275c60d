"""
End-to-end tests for the HTTP surface.

The upstream API is an ``httpx.MockTransport`` so requests executed
through ``/api/execute`` and collection runs never touch the network.
"""

import asyncio
import json
import time

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from ..main import app
from ..database import Base, get_db
from ..routers.execute import get_transport
from ..services.run_manager import RunManager, get_run_manager
from ..services.transport import HttpTransport


# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_api.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """Override database dependency for testing."""
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


seen_requests: list[httpx.Request] = []


async def upstream(request: httpx.Request) -> httpx.Response:
    """Fake upstream API."""
    seen_requests.append(request)
    if request.url.path == "/slow":
        await asyncio.sleep(0.1)
    if request.url.path == "/login":
        return httpx.Response(200, json={"token": "t-42"})
    if request.url.path == "/missing":
        return httpx.Response(404, text="nope")
    return httpx.Response(200, json={"path": request.url.path})


def _transport() -> HttpTransport:
    return HttpTransport(client=httpx.AsyncClient(transport=httpx.MockTransport(upstream)))


@pytest.fixture()
def client():
    """Test client with a fresh database, a mocked upstream and an empty run registry."""
    Base.metadata.create_all(bind=engine)
    manager = RunManager(transport=_transport())
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_transport] = _transport
    app.dependency_overrides[get_run_manager] = lambda: manager
    seen_requests.clear()
    with TestClient(app) as c:
        yield c
    Base.metadata.drop_all(bind=engine)
    app.dependency_overrides.clear()


def _request(name: str, path: str, **fields) -> dict:
    return {"id": name, "name": name, "method": "GET", "url": f"https://api.example.com{path}", **fields}


def _wait_until(client: TestClient, run_id: str, predicate, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        state = client.get(f"/api/runs/{run_id}").json()
        if predicate(state) or time.monotonic() > deadline:
            return state
        time.sleep(0.01)


def _finished(state: dict) -> bool:
    return state["finished"]


class TestHealth:

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}


class TestExecute:

    def test_execute_returns_response_and_updated_environment(self, client):
        payload = {
            "request": _request(
                "login", "/login", method="POST",
                script='environment.set("token", response.data["token"])\nconsole.log("ok")',
            ),
            "environment_variables": [{"key": "token", "value": ""}],
        }

        response = client.post("/api/execute", json=payload)

        assert response.status_code == 200
        data = response.json()
        assert data["response"]["status"] == 200
        assert data["response"]["script_output"] == "ok"
        assert data["environment_variables"][0]["key"] == "token"
        assert data["environment_variables"][0]["value"] == "t-42"

    def test_history_keeps_secret_placeholders(self, client):
        payload = {
            "request": _request(
                "me", "/me",
                headers=[{"key": "X-Api-Key", "value": "<<api_key>>"}, {"key": "X-Env", "value": "<<stage>>"}],
            ),
            "collection_variables": [{"key": "stage", "value": "dev"}],
            "environment_variables": [{"key": "api_key", "value": "s3cret", "is_secret": True}],
        }

        client.post("/api/execute", json=payload)

        assert seen_requests[-1].headers["X-Api-Key"] == "s3cret"
        history = client.get("/api/history").json()
        assert history["total"] == 1
        record = history["items"][0]
        assert record["request_headers"] == {"X-Api-Key": "<<api_key>>", "X-Env": "dev"}
        assert record["request_id"] == "me"
        assert record["status_code"] == 200

    def test_history_url_carries_params_without_secrets(self, client):
        payload = {
            "request": _request(
                "search", "/search?stale=1",
                params=[
                    {"key": "page", "value": "<<page>>"},
                    {"key": "sig", "value": "<<api_key>>"},
                    {"key": "off", "value": "x", "enabled": False},
                ],
            ),
            "collection_variables": [{"key": "page", "value": "2"}],
            "environment_variables": [{"key": "api_key", "value": "s3cret", "is_secret": True}],
        }

        client.post("/api/execute", json=payload)

        assert str(seen_requests[-1].url) == "https://api.example.com/search?page=2&sig=s3cret"
        url = client.get("/api/history").json()["items"][0]["url"]
        assert url == "https://api.example.com/search?page=2&sig=%3C%3Capi_key%3E%3E"

    def test_http_error_status_is_returned_not_raised(self, client):
        response = client.post("/api/execute", json={"request": _request("gone", "/missing")})

        assert response.status_code == 200
        assert response.json()["response"]["status"] == 404
        assert response.json()["response"]["body"] == "nope"

    def test_pre_script_failure_is_reported(self, client):
        payload = {"request": _request("bad", "/x", pre_script='raise ValueError("no")')}

        data = client.post("/api/execute", json=payload).json()["response"]

        assert data["status"] == 0
        assert data["status_text"] == "Pre-Script Error"
        assert data["pre_script_error"] == "no"
        assert seen_requests == []

    def test_invalid_payload_is_a_validation_error(self, client):
        response = client.post("/api/execute", json={"request": {"method": "FETCH"}})

        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"


class TestHistory:

    def _execute(self, client, name: str):
        client.post("/api/execute", json={"request": _request(name, f"/{name}")})

    def test_list_is_newest_first_and_paginated(self, client):
        for name in ("a", "b", "c"):
            self._execute(client, name)

        page = client.get("/api/history", params={"skip": 1, "limit": 1}).json()

        assert page["total"] == 3
        assert [item["request_name"] for item in page["items"]] == ["b"]

    def test_get_and_delete_record(self, client):
        self._execute(client, "a")
        record_id = client.get("/api/history").json()["items"][0]["id"]

        assert client.get(f"/api/history/{record_id}").json()["url"] == "https://api.example.com/a"
        assert client.delete(f"/api/history/{record_id}").status_code == 204
        missing = client.get(f"/api/history/{record_id}")
        assert missing.status_code == 404
        assert missing.json()["error_code"] == "RESOURCE_NOT_FOUND"

    def test_clear_all(self, client):
        self._execute(client, "a")
        self._execute(client, "b")

        assert client.delete("/api/history").status_code == 204
        assert client.get("/api/history").json() == {"items": [], "total": 0}


class TestRuns:

    def _start(self, client, requests: list[dict], config: dict | None = None, **extra) -> dict:
        payload = {"collection": {"id": "c1", "name": "Demo", "requests": requests}, **extra}
        if config is not None:
            payload["config"] = config
        response = client.post("/api/runs", json=payload)
        assert response.status_code == 202
        return response.json()

    def test_run_completes_with_environment_chaining(self, client):
        started = self._start(client, [
            _request("login", "/login", script='environment.set("token", response.data["token"])'),
            _request("me", "/me", headers=[{"key": "Authorization", "value": "Bearer <<token>>"}]),
            _request("gone", "/missing"),
        ])

        state = _wait_until(client, started["run_id"], _finished)

        assert state["state"] == "idle"
        assert [r["status"] for r in state["results"]] == ["success", "success", "failed"]
        assert state["summary"]["success"] == 2
        assert state["summary"]["failed"] == 1
        assert seen_requests[1].headers["Authorization"] == "Bearer t-42"
        assert [record["iteration"] for record in state["iterations"]] == [1]

    def test_pause_resume(self, client):
        run_id = self._start(client, [_request(f"r{i}", "/slow") for i in range(3)])["run_id"]
        _wait_until(client, run_id, lambda s: s["state"] == "running")

        paused = client.post(f"/api/runs/{run_id}/pause")
        assert paused.status_code == 200
        assert paused.json()["state"] == "paused"

        time.sleep(0.3)
        held = client.get(f"/api/runs/{run_id}").json()
        assert held["state"] == "paused"
        assert held["summary"]["pending"] >= 1
        assert held["summary"]["running"] == 0

        assert client.post(f"/api/runs/{run_id}/resume").json()["state"] == "running"
        state = _wait_until(client, run_id, _finished)
        assert state["summary"]["success"] == 3

    def test_stop_keeps_completed_results(self, client):
        run_id = self._start(client, [_request(f"r{i}", "/slow") for i in range(5)])["run_id"]
        _wait_until(client, run_id, lambda s: s["summary"]["success"] >= 1)

        stopped = client.post(f"/api/runs/{run_id}/stop")
        assert stopped.status_code == 200
        assert stopped.json()["state"] == "aborted"

        state = _wait_until(client, run_id, _finished)
        assert state["state"] == "idle"
        assert state["summary"]["success"] >= 1
        assert state["summary"]["pending"] >= 1
        assert state["iterations"] == []

    def test_invalid_control_is_a_conflict(self, client):
        run_id = self._start(client, [_request("a", "/a")])["run_id"]
        _wait_until(client, run_id, _finished)

        response = client.post(f"/api/runs/{run_id}/resume")

        assert response.status_code == 409
        assert response.json()["error_code"] == "CONFLICT"

    def test_delete_requires_finished_run(self, client):
        run_id = self._start(client, [_request(f"r{i}", "/slow") for i in range(3)])["run_id"]

        assert client.delete(f"/api/runs/{run_id}").status_code == 409

        _wait_until(client, run_id, _finished)
        assert client.delete(f"/api/runs/{run_id}").status_code == 204
        assert client.get(f"/api/runs/{run_id}").status_code == 404

    def test_unknown_run_is_not_found(self, client):
        response = client.post("/api/runs/nope/pause")

        assert response.status_code == 404
        assert response.json()["error_code"] == "RESOURCE_NOT_FOUND"

    def test_iterations_and_list(self, client):
        run_id = self._start(client, [_request("a", "/a")], config={"iterations": 2})["run_id"]

        state = _wait_until(client, run_id, _finished)

        assert [record["iteration"] for record in state["iterations"]] == [1, 2]
        assert [run["run_id"] for run in client.get("/api/runs").json()] == [run_id]

    def test_invalid_config_is_rejected(self, client):
        response = client.post(
            "/api/runs",
            json={"collection": {"requests": []}, "config": {"iterations": 0}},
        )

        assert response.status_code == 422

    def test_events_stream_ends_with_finished_snapshot(self, client):
        run_id = self._start(client, [_request("a", "/a"), _request("b", "/b")])["run_id"]

        events = []
        with client.stream("GET", f"/api/runs/{run_id}/events") as response:
            assert response.headers["content-type"].startswith("text/event-stream")
            for line in response.iter_lines():
                if line.startswith("data: "):
                    events.append(json.loads(line[len("data: "):]))

        assert events
        assert events[-1]["finished"] is True
        assert events[-1]["summary"]["success"] == 2
