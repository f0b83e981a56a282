"""Tests for the MCP tool surface."""

from __future__ import annotations

import json
import threading

import pytest

from jjplan.mcp_server import PlanTools, create_server


@pytest.fixture()
def tools(library) -> PlanTools:
    return PlanTools(library)


@pytest.fixture()
def planned(log, seed_plan) -> list[str]:
    keys = seed_plan("abcd", ["one", "two"])
    log.pointer = keys[0]
    return keys


def _payload(text: str):
    return json.loads(text.split("\n", 1)[1])


class TestTools:
    def test_get_project_empty(self, tools):
        assert tools.get_project().startswith("No existing tasks.")

    def test_get_project(self, tools, planned):
        text = tools.get_project()
        assert text.startswith("Tasks retrieved:")
        assert [t["task_key"] for t in _payload(text)["tasks"]] == planned

    def test_create_task_new_plan(self, tools, log):
        text = tools.create_task(
            "feat", "add server", "Agents need it.", ["tools listed"], new="auto"
        )
        assert text.startswith("Task 'add server' created.")
        plan = _payload(text)
        assert plan["tag"] == "newp"
        assert log.pointer == plan["tasks"][0]["task_key"]

    def test_create_task_validation(self, tools, planned, log):
        text = tools.create_task("feat", "Bad title", "x", ["y"])
        assert text.startswith("Invalid input: title")
        assert "CRITICAL ISSUE" in text
        assert log.mutations == []

    def test_update_task(self, tools, planned):
        text = tools.update_task(planned[1], completed=True, scope="mcp")
        task = _payload(text)["tasks"][1]
        assert task["completed"] is True
        assert task["scope"] == "mcp"

    def test_update_task_empty_scope_clears(self, tools, planned):
        tools.update_task(planned[0], scope="mcp")
        text = tools.update_task(planned[0], scope="")
        assert _payload(text)["tasks"][0]["scope"] is None

    def test_delete_task_safety(self, tools, planned, log):
        log.entry(planned[1]).has_changes = True
        text = tools.delete_task(planned[1])
        assert text.startswith("Safety Error:")

    def test_delete_task(self, tools, planned):
        text = tools.delete_task(planned[1])
        assert [t["task_key"] for t in _payload(text)] == planned[:1]

    def test_reorder_tasks(self, tools, planned):
        text = tools.reorder_tasks([planned[1], planned[0]])
        assert [t["task_key"] for t in _payload(text)] == [planned[1], planned[0]]

    def test_goto(self, tools, planned, log):
        text = tools.goto(planned[1])
        assert _payload(text)["title"] == "two"
        assert log.pointer == planned[1]

    def test_goto_unknown(self, tools, planned):
        assert tools.goto("entry999").startswith("Invocation Error: Task doesn't exist")

    def test_calls_are_serialised(self, tools, planned, log):
        active = 0
        overlap = []
        original = log.linear_neighborhood

        def slow_scan():
            nonlocal active
            active += 1
            overlap.append(active)
            result = original()
            active -= 1
            return result

        log.linear_neighborhood = slow_scan
        threads = [threading.Thread(target=tools.get_project) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert max(overlap) == 1


@pytest.mark.asyncio
async def test_server_registers_tools(library):
    server = create_server(library)
    names = {tool.name for tool in await server.list_tools()}
    assert names == {
        "get_project",
        "create_task",
        "update_task",
        "delete_task",
        "reorder_tasks",
        "goto",
    }
