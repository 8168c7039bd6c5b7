# tests/test_api.py

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from mbot.api.app import create_app


@pytest.fixture()
def client(state) -> TestClient:
    return TestClient(create_app(state))


def test_create_and_list_tasks(client: TestClient) -> None:
    r = client.post("/api/tasks", json={"text": "Buy milk"})
    assert r.status_code == 201
    body = r.json()
    assert body["id"] == 1
    assert body["done"] is False
    assert body["due_date"] is None

    r = client.post("/api/tasks", json={"text": "Pay rent", "due_date": "2024-06-01", "due_time": "10:00"})
    assert r.status_code == 201

    listed = client.get("/api/tasks").json()
    assert [(t["id"], t["text"]) for t in listed] == [(1, "Buy milk"), (2, "Pay rent")]
    assert listed[1]["due_date"] == "2024-06-01"
    assert listed[1]["due_time"] == "10:00"


def test_invalid_task_input_is_400(client: TestClient) -> None:
    assert client.post("/api/tasks", json={"text": "   "}).status_code == 400
    assert client.post("/api/tasks", json={}).status_code == 400
    assert client.post("/api/tasks", json={"text": "x", "due_time": "10:00"}).status_code == 400
    assert client.get("/api/tasks").json() == []


def test_unknown_task_is_404(client: TestClient) -> None:
    assert client.get("/api/tasks/99").status_code == 404
    assert client.delete("/api/tasks/99").status_code == 404
    assert client.post("/api/tasks/99/toggle").status_code == 404
    r = client.patch("/api/tasks/99", json={"text": "x"})
    assert r.status_code == 404
    assert r.json()["error"] == "NotFound"


def test_toggle_patch_delete(client: TestClient) -> None:
    tid = client.post("/api/tasks", json={"text": "Call mom", "due_date": "2024-05-01", "due_time": "18:00"}).json()["id"]

    assert client.post(f"/api/tasks/{tid}/toggle").json()["done"] is True
    assert client.post(f"/api/tasks/{tid}/toggle").json()["done"] is False

    patched = client.patch(f"/api/tasks/{tid}", json={"text": "Call mom back"}).json()
    assert patched["text"] == "Call mom back"
    assert patched["due_date"] == "2024-05-01"
    assert patched["due_time"] == "18:00"

    cleared = client.patch(f"/api/tasks/{tid}", json={"due_date": None}).json()
    assert cleared["due_date"] is None
    assert cleared["due_time"] is None

    assert client.delete(f"/api/tasks/{tid}").status_code == 200
    assert client.get(f"/api/tasks/{tid}").status_code == 404


def test_reload_rejects_broken_file(state, client: TestClient) -> None:
    client.post("/api/tasks", json={"text": "Buy milk"})
    # Stop write-through so the writer thread cannot replace the broken file.
    state.sync.close()
    before = state.store.list()

    state.sync.path.write_text("- [ ] fine\n- [x] 2024-13-01 : bad month\n", encoding="utf-8")
    r = client.post("/api/tasks/reload")

    assert r.status_code == 422
    assert r.json()["error"] == "ParseError"
    assert "line 2" in r.json()["detail"]
    assert state.store.list() == before


def test_reload_picks_up_edits(state, client: TestClient) -> None:
    state.sync.close()
    state.sync.path.write_text("- [ ] Buy milk\n- [x] 2024-05-01 09:00 : Standup\n", encoding="utf-8")

    r = client.post("/api/tasks/reload")
    assert r.json() == {"ok": True, "count": 2}
    assert [t["text"] for t in client.get("/api/tasks").json()] == ["Buy milk", "Standup"]


def test_default_jobs_and_actions(client: TestClient) -> None:
    jobs = client.get("/api/jobs").json()
    assert [(j["name"], j["schedule"], j["state"]) for j in jobs] == [("remind", "* * * * *", "idle")]

    actions = client.get("/api/jobs/actions").json()
    assert {"remind", "reload", "purge_done", "flush"} <= set(actions)


def test_job_management(client: TestClient) -> None:
    r = client.post("/api/jobs", json={"name": "daily-cleanup", "schedule": "0 3 * * *", "action": "purge_done"})
    assert r.status_code == 201
    assert r.json()["action"] == "purge_done"

    dup = client.post("/api/jobs", json={"name": "daily-cleanup", "schedule": "*/5 * * * *", "action": "flush"})
    assert dup.status_code == 409
    assert client.post("/api/jobs", json={"name": "x", "schedule": "nope", "action": "flush"}).status_code == 400
    assert client.post("/api/jobs", json={"name": "y", "schedule": "* * * * *", "action": "??"}).status_code == 400

    assert client.post("/api/jobs/daily-cleanup/disable").json()["state"] == "disabled"
    assert client.post("/api/jobs/daily-cleanup/enable").json()["state"] == "idle"

    assert client.delete("/api/jobs/daily-cleanup").status_code == 200
    assert client.delete("/api/jobs/daily-cleanup").status_code == 404
    assert client.post("/api/jobs/nope/disable").status_code == 404


def test_health(client: TestClient) -> None:
    client.post("/api/tasks", json={"text": "Buy milk"})
    health = client.get("/api/health").json()
    assert health["tasks"] == 1
    assert health["jobs"] == 1
    assert health["running_jobs"] == 0
    assert health["persistence"]["ok"] is True
