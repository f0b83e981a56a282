"""MCP server exposing the plan as task-level tools over stdio.

Tools: get_project, create_task, update_task, delete_task, reorder_tasks,
goto. Every call runs under one lock, so at most one operation touches the
repository at a time. Run with ``jjplan-mcp`` from inside a Jujutsu
repository.
"""

import json
import logging
import os
import threading
from collections.abc import Callable
from typing import Literal

from mcp.server.fastmcp import FastMCP

from jjplan.config import configure_logging, load_settings
from jjplan.errors import PlanError, format_error
from jjplan.models import plan_to_dict, task_from_dict, task_to_dict
from jjplan.planning import PlanningLibrary, open_library
from jjplan.schema import validate_task_input

log = logging.getLogger(__name__)

SERVER_INSTRUCTIONS = (
    "Planning server: keeps an ordered task plan inside Jujutsu commit history. "
    "Call get_project first to see the tasks and their task_key values."
)

TaskType = Literal["feat", "fix", "refactor", "build", "chore", "docs", "lint", "infra", "spec"]


def _dump(data: object) -> str:
    return json.dumps(data, indent=2)


def compose_error(exc: Exception) -> str:
    return (
        f"{format_error(exc)}\n\n"
        "This is a CRITICAL ISSUE. Surface it to the user and stop; "
        "resolving it requires manual intervention."
    )


class PlanTools:
    """Tool implementations, serialised on one lock."""

    def __init__(self, library: PlanningLibrary) -> None:
        self.library = library
        self._lock = threading.Lock()

    def _run(self, action: Callable[[], str]) -> str:
        with self._lock:
            try:
                return action()
            except (PlanError, ValueError) as exc:
                log.info("Tool call failed: %s", exc)
                return compose_error(exc)

    def get_project(self) -> str:
        def action() -> str:
            plan = self.library.project()
            if plan is None:
                return "No existing tasks. Create your first task using create_task."
            return f"Tasks retrieved:\n{_dump(plan_to_dict(plan))}"

        return self._run(action)

    def create_task(
        self,
        type: str,
        title: str,
        intent: str,
        objectives: list[str],
        scope: str | None = None,
        constraints: list[str] | None = None,
        completed: bool = False,
        new: str | None = None,
    ) -> str:
        data = {
            "type": type,
            "scope": scope or None,
            "title": title,
            "intent": intent,
            "objectives": objectives,
            "constraints": constraints or [],
            "completed": completed,
        }

        def action() -> str:
            validate_task_input(data)
            plan = self.library.create_task(task_from_dict(data), new=new)
            return f"Task '{title}' created. Verify the result:\n{_dump(plan_to_dict(plan))}"

        return self._run(action)

    def update_task(
        self,
        task_key: str,
        type: str | None = None,
        scope: str | None = None,
        title: str | None = None,
        intent: str | None = None,
        objectives: list[str] | None = None,
        constraints: list[str] | None = None,
        completed: bool | None = None,
    ) -> str:
        changes = {
            name: value
            for name, value in {
                "type": type,
                "title": title,
                "intent": intent,
                "objectives": objectives,
                "constraints": constraints,
                "completed": completed,
            }.items()
            if value is not None
        }
        if scope is not None:
            changes["scope"] = scope or None

        def action() -> str:
            validate_task_input(changes, partial=True)
            plan = self.library.update_task(task_key, changes)
            return f"Task update completed. Verify the changes:\n{_dump(plan_to_dict(plan))}"

        return self._run(action)

    def delete_task(self, task_key: str) -> str:
        def action() -> str:
            plan = self.library.delete_task(task_key)
            return f"Task deleted. Remaining tasks:\n{_dump(plan_to_dict(plan)['tasks'])}"

        return self._run(action)

    def reorder_tasks(self, task_keys: list[str]) -> str:
        def action() -> str:
            plan = self.library.reorder_tasks(task_keys)
            return f"Tasks reordered:\n{_dump(plan_to_dict(plan)['tasks'])}"

        return self._run(action)

    def goto(self, task_key: str) -> str:
        def action() -> str:
            task = self.library.goto(task_key)
            return f"Now positioned on:\n{_dump(task_to_dict(task))}"

        return self._run(action)


def create_server(library: PlanningLibrary) -> FastMCP:
    tools = PlanTools(library)
    server = FastMCP("jjplan", instructions=SERVER_INSTRUCTIONS)

    @server.tool()
    def get_project() -> str:
        """Return the current task list. ALWAYS CALL THIS FIRST."""
        return tools.get_project()

    @server.tool()
    def create_task(
        type: TaskType,
        title: str,
        intent: str,
        objectives: list[str],
        scope: str | None = None,
        constraints: list[str] | None = None,
        completed: bool = False,
        new: Literal["auto", "current"] | None = None,
    ) -> str:
        """Create a task and add it to the plan.

        title: what will be done, lowercase start, max 120 characters.
        intent: why the task is needed. objectives: at least one concrete outcome.
        scope: area of change such as 'auth/login', or null.
        new: 'auto' starts a new plan after the current one; 'current' documents
        the working-copy commit (work already done) with this task.
        """
        return tools.create_task(
            type, title, intent, objectives, scope, constraints, completed, new
        )

    @server.tool()
    def update_task(
        task_key: str,
        type: TaskType | None = None,
        scope: str | None = None,
        title: str | None = None,
        intent: str | None = None,
        objectives: list[str] | None = None,
        constraints: list[str] | None = None,
        completed: bool | None = None,
    ) -> str:
        """Update fields of the task with task_key. Omitted fields are kept.

        Pass an empty scope to remove it. Set completed=true when the task is done.
        """
        return tools.update_task(
            task_key, type, scope, title, intent, objectives, constraints, completed
        )

    @server.tool()
    def delete_task(task_key: str) -> str:
        """Remove a task. Its commit must not contain file changes."""
        return tools.delete_task(task_key)

    @server.tool()
    def reorder_tasks(task_keys: list[str]) -> str:
        """Reorder tasks. task_keys must list every task of the plan exactly once."""
        return tools.reorder_tasks(task_keys)

    @server.tool()
    def goto(task_key: str) -> str:
        """Move the working copy to the task's commit."""
        return tools.goto(task_key)

    return server


def main() -> None:
    repo_dir = os.getcwd()
    settings = load_settings(repo_dir)
    configure_logging(settings.log_level)
    create_server(open_library(repo_dir, settings)).run(transport="stdio")


if __name__ == "__main__":
    main()
