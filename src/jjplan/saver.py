"""Persist a plan by rewriting the run of entries it lives in.

Three modes (``Plan.mode``):

- ``update``: rewrite the plan around the working pointer into the target
  task list. Kept entries are slid into place (their ids never change),
  new tasks get fresh entries, omitted tasks are abandoned.
- ``new``: append a fresh run after the plan surrounding the pointer (or
  after the current entry when there is none).
- ``current``: overwrite the current entry's description with one task.
  This is how work already present in an entry gets documented, so it
  skips the emptiness guard on purpose.

Every check that can fail (empty target, malformed content, abandoning an
entry with file changes, unknown or duplicate keys) runs before the first
mutating call. There is no rollback: a VcsError raised once mutation has
started propagates as-is and the log keeps whatever the last successful
call produced. The two anchor entries used by ``update`` are abandoned on
every exit path.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from jjplan.codec import format_task
from jjplan.errors import (
    EMPTY_TASK,
    SINGLE_TASK_REQUIRED,
    InvocationError,
    ParseError,
    SafetyError,
    StructureError,
    VcsError,
)
from jjplan.loader import Loader
from jjplan.models import MODE_CURRENT, MODE_NEW, MODE_UPDATE, Plan, Task, with_key
from jjplan.vcs import VcsOps

log = logging.getLogger(__name__)


class Saver:
    def __init__(self, vcs: VcsOps, loader: Loader) -> None:
        self.vcs = vcs
        self.loader = loader

    # -- public API --

    def save_plan(self, plan: Plan) -> Plan:
        """Persist ``plan`` and return it with every task's key filled in."""
        if not plan.tasks:
            raise StructureError(EMPTY_TASK)
        if plan.mode == MODE_NEW:
            return self._save_new(plan)
        if plan.mode == MODE_CURRENT:
            return self._save_current(plan)
        if plan.mode == MODE_UPDATE:
            return self._save_update(plan)
        raise ValueError(f"Unknown save mode: {plan.mode}")

    def drop(self) -> list[str]:
        """Abandon every entry of the current plan. Returns the abandoned ids."""
        current = self.loader.load_plan()
        keys = current.keys()
        for key in keys:
            if not self.vcs.is_empty(key):
                raise SafetyError(key)
        for key in keys:
            self.vcs.abandon_entry(key)
        log.info("Dropped plan %s (%d entries)", current.tag, len(keys))
        return keys

    # -- modes --

    def _save_current(self, plan: Plan) -> Plan:
        if len(plan.tasks) != 1:
            raise StructureError(SINGLE_TASK_REQUIRED)
        task = plan.tasks[0]
        message = format_task(plan.tag, task)
        entry_id = self.vcs.current_id()
        self.vcs.set_description(message, entry_id)
        log.info("Documented entry %s as task of plan %s", entry_id, plan.tag)
        return Plan(tag=plan.tag, tasks=[with_key(task, entry_id, plan.tag)])

    def _new_plan_anchor(self) -> str:
        """Entry the new run goes after: end of the surrounding plan, else current."""
        try:
            surrounding = self.loader.load_plan()
        except ParseError:
            return self.vcs.current_id()
        return surrounding.tasks[-1].task_key or self.vcs.current_id()

    def _save_new(self, plan: Plan) -> Plan:
        messages = [format_task(plan.tag, task) for task in plan.tasks]
        previous = self._new_plan_anchor()

        saved: list[Task] = []
        jump: str | None = None
        for task, message in zip(plan.tasks, messages, strict=True):
            entry_id = self.vcs.create_entry(after=previous, move_to_it=False)
            self.vcs.set_description(message, entry_id)
            log.debug("Created %s for task %r", entry_id, task.title)
            saved.append(with_key(task, entry_id, plan.tag))
            if jump is None and not task.completed:
                jump = entry_id
            previous = entry_id

        if jump is not None:
            self.vcs.move_pointer(jump)
        log.info("Created plan %s with %d task(s)", plan.tag, len(saved))
        return Plan(tag=plan.tag, tasks=saved)

    def _save_update(self, plan: Plan) -> Plan:
        current = self.loader.load_plan()
        pointer = self.vcs.current_id()
        target_keys = [t.task_key for t in plan.tasks if t.task_key]
        tag = current.tag
        if plan.tag != tag:
            log.warning("Ignoring tag %s on update; plan %s keeps its tag", plan.tag, tag)

        # Pre-flight: nothing below mutates until every check has passed.
        removed = [key for key in current.keys() if key not in target_keys]
        for key in removed:
            if not self.vcs.is_empty(key):
                raise SafetyError(key)

        known = set(current.keys())
        unknown = [key for key in target_keys if key not in known]
        if unknown:
            raise InvocationError("Cannot move non-existent task key", unknown)
        duplicates = sorted({key for key in target_keys if target_keys.count(key) > 1})
        if duplicates:
            raise InvocationError("Task key listed more than once", duplicates)

        messages = [format_task(tag, task) for task in plan.tasks]

        log.info(
            "Rewriting plan %s: %d kept, %d new, %d removed",
            tag,
            len(target_keys),
            len(plan.tasks) - len(target_keys),
            len(removed),
        )
        saved: list[Task] = []
        with self._interval_before(current.tasks[0].task_key) as (head, tail):
            active = head
            for task, message in zip(plan.tasks, messages, strict=True):
                if task.task_key:
                    entry_id = task.task_key
                    self.vcs.slide_entry(entry_id, after=active, before=tail)
                else:
                    entry_id = self.vcs.create_entry(after=active, before=tail)
                self.vcs.set_description(message, entry_id)
                log.debug("Placed %s after %s", entry_id, active)
                saved.append(with_key(task, entry_id, tag))
                active = entry_id

            if pointer in removed:
                landing = _landing_task(
                    [kept for task, kept in zip(plan.tasks, saved) if task.task_key], saved
                )
                assert landing.task_key is not None
                log.debug("Pointer entry %s removed, moving to %s", pointer, landing.task_key)
                self.vcs.move_pointer(landing.task_key)

        for key in removed:
            self.vcs.abandon_entry(key)

        return Plan(tag=tag, tasks=saved)

    # -- anchors --

    @contextmanager
    def _interval_before(self, first_key: str | None) -> Iterator[tuple[str, str]]:
        """Yield (head, tail): two adjacent empty entries just before ``first_key``.

        Both are abandoned when the block exits. If the block is unwinding
        from an error, cleanup failures are logged and the original error
        wins.
        """
        assert first_key is not None
        head = self.vcs.create_entry(before=first_key)
        try:
            tail = self.vcs.create_entry(after=head)
        except VcsError:
            self._abandon_after_failure(head)
            raise

        try:
            yield head, tail
        except BaseException:
            self._abandon_after_failure(head)
            self._abandon_after_failure(tail)
            raise
        self.vcs.abandon_entry(head)
        self.vcs.abandon_entry(tail)

    def _abandon_after_failure(self, anchor: str) -> None:
        try:
            self.vcs.abandon_entry(anchor)
        except VcsError:
            log.warning("Failed to abandon anchor %s during cleanup", anchor, exc_info=True)


def _landing_task(surviving: list[Task], saved: list[Task]) -> Task:
    """Where the pointer goes when its entry was removed.

    First incomplete surviving task, else the first surviving one. Only
    when every target task is new does it fall back to the first saved task.
    """
    if not surviving:
        return saved[0]
    return next((t for t in surviving if not t.completed), surviving[0])
