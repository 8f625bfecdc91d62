"""
Tests for the planner prompts, response parsing and the two-pass planner call.
"""

from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from conftest import make_block
from timeblocks import llm


class _FakeCompletions:
    def __init__(self, replies=None, error=None):
        self.replies = list(replies or [])
        self.error = error
        self.calls = []

    async def create(self, **params):
        self.calls.append(params)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.replies.pop(0))
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _install(monkeypatch, completions):
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    monkeypatch.setattr(llm, "async_client", client)


class TestExtractActions:

    @pytest.mark.parametrize("raw", [
        '{"actions": [{"type": "add"}]}',
        '[{"type": "add"}]',
        '```json\n{"actions": [{"type": "add"}]}\n```',
        'Here you go: {"actions": [{"type": "add"}]} Done.',
    ])
    def test_action_lists(self, raw):
        assert llm.extract_actions(raw) == [{"type": "add"}]

    @pytest.mark.parametrize("raw", ['{"foo": 1}', '{"actions": "add"}', "not json", "", None])
    def test_other_shapes_yield_nothing(self, raw):
        assert llm.extract_actions(raw) == []


class TestPrompts:

    def test_planner_prompt_shows_entities_with_spillover(self):
        tasks = [
            make_block(title="Deploy", start="23:00", end="24:00", block_id="d"),
            make_block(title="Deploy", date="2024-11-11", start="00:00", end="01:00",
                       block_id="d-split-1"),
        ]
        prompt = llm.build_planner_prompt("  push   deploy by 90 minutes ", tasks, "2024-11-10")

        assert "Today: 2024-11-10" in prompt
        assert '"push deploy by 90 minutes"' in prompt
        assert '"end": "25:00"' in prompt
        assert prompt.count('"title": "Deploy"') == 1

    def test_implementer_prompt_lists_palette(self):
        prompt = llm.build_implementer_prompt("1. Delete Gym.", [], "2024-11-10")
        assert "bg-violet-400" in prompt
        assert "__COLORS__" not in prompt
        assert "1. Delete Gym." in prompt


class TestRequestPlan:

    @pytest.mark.asyncio
    async def test_two_passes(self, monkeypatch):
        completions = _FakeCompletions([
            "1. Delete Gym on 2024-11-10.",
            '{"actions": [{"type": "delete", "title": "Gym", "date": "2024-11-10"}]}',
        ])
        _install(monkeypatch, completions)

        actions = await llm.request_plan("drop gym", [make_block(title="Gym")], "2024-11-10")

        assert actions == [{"type": "delete", "title": "Gym", "date": "2024-11-10"}]
        planner, implementer = completions.calls
        assert "response_format" not in planner
        assert implementer["response_format"] == {"type": "json_object"}
        assert "1. Delete Gym on 2024-11-10." in implementer["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_model_override_and_effort(self, monkeypatch):
        completions = _FakeCompletions(["plan", "[]"])
        _install(monkeypatch, completions)

        await llm.request_plan("x", [], "2024-11-10", model_name="gpt-test")

        assert {call["model"] for call in completions.calls} == {"gpt-test"}
        assert completions.calls[0]["reasoning_effort"] in {"low", "medium", "high"}

    @pytest.mark.asyncio
    async def test_missing_client(self, monkeypatch):
        monkeypatch.setattr(llm, "async_client", None)
        with pytest.raises(HTTPException) as excinfo:
            await llm.request_plan("x", [], "2024-11-10")
        assert excinfo.value.status_code == 500

    @pytest.mark.asyncio
    async def test_transport_failure(self, monkeypatch):
        _install(monkeypatch, _FakeCompletions(error=RuntimeError("connection reset")))
        with pytest.raises(HTTPException) as excinfo:
            await llm.request_plan("x", [], "2024-11-10")
        assert excinfo.value.status_code == 502
