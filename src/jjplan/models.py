"""Plan and task records, plus their JSON projection."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

VALID_TASK_TYPES = frozenset(
    {"feat", "fix", "refactor", "build", "chore", "docs", "lint", "infra", "spec"}
)

MODE_UPDATE = "update"
MODE_NEW = "new"
MODE_CURRENT = "current"
SAVE_MODES = frozenset({MODE_UPDATE, MODE_NEW, MODE_CURRENT})

MAX_TITLE_LENGTH = 120


@dataclass
class Task:
    """One log entry's decoded content."""

    type: str
    title: str
    scope: str | None = None
    intent: str = ""
    objectives: list[str] = field(default_factory=list)
    constraints: list[str] = field(default_factory=list)
    completed: bool = False
    task_key: str | None = None
    tag: str | None = None


@dataclass
class Plan:
    """Ordered tasks sharing one tag.

    ``mode`` tells the saver how to persist it: rewrite the run it was
    loaded from, append a fresh run, or overwrite the current entry.
    """

    tag: str
    tasks: list[Task]
    mode: str = MODE_UPDATE

    def keys(self) -> list[str]:
        return [t.task_key for t in self.tasks if t.task_key]

    def find(self, task_key: str) -> Task | None:
        for task in self.tasks:
            if task.task_key == task_key:
                return task
        return None


def task_to_dict(task: Task) -> dict[str, Any]:
    return {
        "task_key": task.task_key,
        "tag": task.tag,
        "type": task.type,
        "scope": task.scope,
        "title": task.title,
        "intent": task.intent,
        "objectives": list(task.objectives),
        "constraints": list(task.constraints),
        "completed": task.completed,
    }


def plan_to_dict(plan: Plan) -> dict[str, Any]:
    """Project a plan onto JSON-safe data (what the CLI and MCP tools return)."""
    return {"tag": plan.tag, "tasks": [task_to_dict(t) for t in plan.tasks]}


def task_from_dict(data: dict[str, Any]) -> Task:
    """Build a Task from caller input. Validation is the schema module's job."""
    return Task(
        type=data["type"],
        title=data["title"],
        scope=data.get("scope") or None,
        intent=data.get("intent") or "",
        objectives=list(data.get("objectives") or []),
        constraints=list(data.get("constraints") or []),
        completed=bool(data.get("completed", False)),
        task_key=data.get("task_key") or None,
        tag=data.get("tag") or None,
    )


def with_key(task: Task, task_key: str, tag: str) -> Task:
    """Copy of ``task`` as persisted at ``task_key`` under ``tag``."""
    return replace(
        task,
        task_key=task_key,
        tag=tag,
        scope=task.scope or None,
        title=task.title.strip(),
        intent=task.intent.strip(),
        objectives=[o.strip() for o in task.objectives],
        constraints=[c.strip() for c in task.constraints],
    )
