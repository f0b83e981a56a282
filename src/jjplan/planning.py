"""Planning service: task-level operations over the loader and saver.

This is what the CLI and MCP surfaces call. Each operation loads the plan
around the working pointer, edits the decoded task list, and hands the
target list to the saver.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Sequence
from typing import Any

from jjplan.config import Settings, load_settings
from jjplan.errors import InvocationError, ParseError
from jjplan.jj_ops import JujutsuOps
from jjplan.loader import Loader
from jjplan.models import MODE_CURRENT, MODE_NEW, Plan, Task
from jjplan.saver import Saver
from jjplan.tags import generate_tag
from jjplan.vcs import VcsOps

log = logging.getLogger(__name__)

# Values of the ``new`` argument of create_task.
NEW_PLAN_MODES = {"auto": MODE_NEW, "current": MODE_CURRENT}

UPDATABLE_FIELDS = frozenset(
    {"type", "scope", "title", "intent", "objectives", "constraints", "completed"}
)


class PlanningLibrary:
    def __init__(self, vcs: VcsOps, tag_factory: Callable[[], str] = generate_tag) -> None:
        self.vcs = vcs
        self.loader = Loader(vcs)
        self.saver = Saver(vcs, self.loader)
        self._tag_factory = tag_factory

    # -- plan level --

    def project(self) -> Plan | None:
        """The plan around the working pointer, or None when there is none.

        A parse failure means the current entry is not (cleanly) part of a
        plan. VCS and structure errors propagate.
        """
        try:
            return self.loader.load_plan()
        except ParseError as exc:
            log.debug("No plan at the working pointer: %s", exc.kind)
            return None

    def new_project(self, mode: str = MODE_NEW) -> Plan:
        return Plan(tag=self._tag_factory(), tasks=[], mode=mode)

    def save(self, plan: Plan) -> Plan:
        return self.saver.save_plan(plan)

    def drop(self) -> list[str]:
        return self.saver.drop()

    def goto_task(self, plan: Plan, task_key: str) -> Task:
        task = plan.find(task_key)
        if task is None:
            raise InvocationError("Task doesn't exist", [task_key])
        self.vcs.move_pointer(task_key)
        return task

    def _require_project(self) -> Plan:
        plan = self.project()
        if plan is None:
            raise InvocationError("There is no existing plan at the working pointer")
        return plan

    # -- task level --

    def create_task(self, task: Task, new: str | None = None) -> Plan:
        """Append ``task`` to the current plan, or start a plan with it.

        ``new="auto"`` creates a fresh plan after the surrounding one;
        ``new="current"`` documents the current entry with it.
        """
        if new is not None:
            if new not in NEW_PLAN_MODES:
                raise ValueError(f"Invalid value for new: {new!r}. Use 'auto' or 'current'.")
            plan = self.new_project(NEW_PLAN_MODES[new])
            plan.tasks = [task]
            return self.save(plan)

        plan = self._require_project()
        plan.tasks.append(task)
        return self.save(plan)

    def update_task(self, task_key: str, changes: dict[str, Any]) -> Plan:
        unknown = sorted(set(changes) - UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(unknown)}")

        plan = self._require_project()
        task = plan.find(task_key)
        if task is None:
            raise InvocationError("Task not found", [task_key])
        for name, value in changes.items():
            setattr(task, name, copy.copy(value))
        return self.save(plan)

    def delete_task(self, task_key: str) -> Plan:
        plan = self._require_project()
        if plan.find(task_key) is None:
            raise InvocationError("Task not found", [task_key])
        plan.tasks = [t for t in plan.tasks if t.task_key != task_key]
        return self.save(plan)

    def reorder_tasks(self, task_keys: Sequence[str]) -> Plan:
        plan = self._require_project()
        existing = plan.keys()
        if len(task_keys) != len(existing) or set(task_keys) != set(existing):
            raise InvocationError(
                f"Task keys must be a permutation of [{', '.join(existing)}]", task_keys
            )
        by_key = {t.task_key: t for t in plan.tasks}
        plan.tasks = [by_key[key] for key in task_keys]
        return self.save(plan)

    def goto(self, task_key: str) -> Task:
        return self.goto_task(self._require_project(), task_key)


def open_library(repo_dir: str, settings: Settings | None = None) -> PlanningLibrary:
    """PlanningLibrary over the Jujutsu repository at ``repo_dir``."""
    settings = settings or load_settings(repo_dir)
    ops = JujutsuOps(repo_dir, jj_binary=settings.jj_binary, timeout=settings.command_timeout)
    return PlanningLibrary(ops)
