"""
HTTP tests for the task API.
"""

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from conftest import make_block
from timeblocks import llm, state
from timeblocks.app import app

TODAY = "2024-11-10"


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def seeded():
    gym = make_block(title="Gym", start="13:00", end="15:00", block_id="gym")
    state.commit_tasks("t", [gym])
    return gym


def _fake_planner(monkeypatch, result=None, error=None):
    calls = []

    async def fake_request_plan(request, tasks, today=None, model_name=None):
        calls.append({"request": request, "tasks": tasks, "today": today, "model": model_name})
        if error is not None:
            raise error
        return result

    monkeypatch.setattr(llm, "request_plan", fake_request_plan)
    return calls


class TestTaskEndpoints:

    def test_health(self, client):
        assert client.get("/health").json() == {"ok": True}

    def test_put_and_get(self, client):
        wire = make_block(title="Gym", block_id="g").to_wire()
        assert client.put("/api/tasks", params={"session_id": "t"},
                          json={"tasks": [wire]}).status_code == 200
        assert client.get("/api/tasks", params={"session_id": "t"}).json() == {"tasks": [wire]}
        assert client.get("/api/tasks", params={"session_id": "other"}).json() == {"tasks": []}

    def test_put_rejects_invalid_block(self, client):
        bad = {"id": "x", "title": "X", "date": TODAY, "startUnit": 10, "endUnit": 10}
        assert client.put("/api/tasks", json={"tasks": [bad]}).status_code == 422

    def test_create(self, client):
        res = client.post("/api/tasks/create", params={"session_id": "t"},
                          json={"title": "Read", "date": TODAY, "unit": 20})
        tasks = res.json()["tasks"]
        assert [(t["title"], t["startUnit"], t["endUnit"]) for t in tasks] == [("Read", 20, 22)]

    def test_drop_and_undo(self, client, seeded):
        res = client.post("/api/tasks/drop", params={"session_id": "t"},
                          json={"taskId": "gym", "date": "2024-11-11", "unit": 2})
        assert res.status_code == 200
        moved = res.json()["tasks"]
        assert [(t["id"], t["date"], t["startUnit"]) for t in moved] == \
            [("gym", "2024-11-11", 2)]

        undone = client.post("/api/undo", params={"session_id": "t"}).json()
        assert undone["changed"] is True
        assert undone["tasks"] == [seeded.to_wire()]

        redone = client.post("/api/redo", params={"session_id": "t"}).json()
        assert redone["tasks"] == moved

    def test_drop_errors(self, client, seeded):
        assert client.post("/api/tasks/drop", params={"session_id": "t"},
                           json={"taskId": "nope", "date": TODAY, "unit": 2}).status_code == 404
        assert client.post("/api/tasks/drop", params={"session_id": "t"},
                           json={"taskId": "gym", "date": TODAY, "unit": 2,
                                 "mode": "teleport"}).status_code == 400

    def test_drop_outside_grid(self, client, seeded):
        res = client.post("/api/tasks/drop", params={"session_id": "t"},
                          json={"taskId": "gym", "date": TODAY, "unit": 10 ** 9})
        assert res.status_code == 422
        assert state.get_tasks("t") == [seeded]

    def test_split_and_delete(self, client, seeded):
        res = client.post("/api/tasks/split", params={"session_id": "t"},
                          json={"taskId": "gym", "unit": 28})
        tasks = res.json()["tasks"]
        assert [(t["startUnit"], t["endUnit"]) for t in tasks] == [(26, 28), (28, 30)]

        res = client.delete(f"/api/tasks/{tasks[0]['id']}", params={"session_id": "t"})
        assert [t["id"] for t in res.json()["tasks"]] == [tasks[1]["id"]]
        assert client.delete("/api/tasks/nope", params={"session_id": "t"}).status_code == 404


class TestActionEndpoints:

    def test_normalize(self, client):
        res = client.post("/api/normalize", json={
            "todayKey": TODAY,
            "actions": [
                {"action": "SHIFT", "Title": "Gym", "minutesDelta": 30},
                {"type": "teleport"},
            ],
        })
        assert res.json() == {"actions": [
            {"type": "shift", "title": "Gym", "date": TODAY, "delta_minutes": 30.0},
        ]}

    def test_bad_today_key(self, client):
        res = client.post("/api/normalize", json={"todayKey": "tomorrow", "actions": []})
        assert res.status_code == 400

    def test_apply_is_stateless(self, client, seeded):
        res = client.post("/api/apply", json={
            "todayKey": TODAY,
            "tasks": [seeded.to_wire()],
            "actions": [{"type": "split", "title": "Gym", "atTime": "14:00"}],
        })
        body = res.json()
        assert [(t["startUnit"], t["endUnit"]) for t in body["tasks"]] == [(26, 28), (28, 30)]
        assert body["actions"][0]["type"] == "split"
        assert state.get_tasks("t") == [seeded]

    def test_apply_skips_non_finite_numbers(self, client, seeded):
        # httpx refuses to encode NaN, so send the generator's raw text
        body = (
            '{"todayKey": "2024-11-10", "tasks": [' + seeded.model_dump_json(by_alias=True) + '],'
            ' "actions": [{"type": "shift", "title": "Gym", "deltaMinutes": NaN},'
            ' {"type": "rename", "title": "Gym", "toTitle": "Run"}]}'
        )
        res = client.post("/api/apply", content=body,
                          headers={"content-type": "application/json"})
        assert res.status_code == 200
        assert [a["type"] for a in res.json()["actions"]] == ["rename"]
        assert [(t["title"], t["startUnit"]) for t in res.json()["tasks"]] == [("Run", 26)]

    def test_ai_plan_normalizes(self, client, monkeypatch):
        calls = _fake_planner(monkeypatch, [{"type": "delete", "title": "Gym"}, {"bogus": 1}])
        res = client.post("/api/ai-plan", json={"prompt": "drop gym", "todayKey": TODAY})
        assert res.json() == {"actions": [{"type": "delete", "title": "Gym", "date": TODAY}]}
        assert calls[0]["today"] == TODAY


class TestAgentRun:

    def test_commits_and_undoes(self, client, monkeypatch, seeded):
        calls = _fake_planner(monkeypatch, [
            {"type": "shift", "title": "Gym", "deltaMinutes": 60},
        ])
        res = client.post("/api/agent/run", params={"session_id": "t"},
                          json={"prompt": "push gym an hour", "todayKey": TODAY})
        body = res.json()

        assert res.status_code == 200
        assert body["dryRun"] is False
        assert [(t["startUnit"], t["endUnit"]) for t in body["tasks"]] == [(28, 32)]
        assert state.get_tasks("t")[0].start_unit == 28
        assert calls[0]["tasks"] == [seeded]

        client.post("/api/undo", params={"session_id": "t"})
        assert state.get_tasks("t") == [seeded]

    def test_dry_run_leaves_store(self, client, monkeypatch, seeded):
        _fake_planner(monkeypatch, [{"type": "delete", "title": "Gym"}])
        body = client.post("/api/agent/run", params={"session_id": "t"},
                           json={"prompt": "drop gym", "todayKey": TODAY,
                                 "dryRun": True}).json()
        assert body["tasks"] == []
        assert body["dryRun"] is True
        assert state.get_tasks("t") == [seeded]

    def test_no_actions_does_not_commit(self, client, monkeypatch, seeded):
        _fake_planner(monkeypatch, [])
        client.post("/api/agent/run", params={"session_id": "t"},
                    json={"prompt": "hmm", "todayKey": TODAY})
        # only the seeding commit is in the history
        assert state.undo("t") == ([], True)

    def test_planner_failure(self, client, monkeypatch, seeded):
        _fake_planner(monkeypatch, error=HTTPException(status_code=502, detail="down"))
        res = client.post("/api/agent/run", params={"session_id": "t"},
                          json={"prompt": "drop gym", "todayKey": TODAY})
        assert res.status_code == 502
        assert state.get_tasks("t") == [seeded]
