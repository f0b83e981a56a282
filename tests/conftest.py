"""Shared test fixtures: an in-memory log and a planning library over it."""

from collections.abc import Callable

import pytest
from _fake_vcs import InMemoryLog

from jjplan.models import Task
from jjplan.planning import PlanningLibrary


@pytest.fixture()
def log() -> InMemoryLog:
    return InMemoryLog()


@pytest.fixture()
def library(log: InMemoryLog) -> PlanningLibrary:
    """Library whose new plans are always tagged ``newp``."""
    return PlanningLibrary(log, tag_factory=lambda: "newp")


@pytest.fixture()
def make_task() -> Callable[..., Task]:
    """Factory for valid tasks; keyword arguments override fields."""

    def factory(title: str = "do the thing", **fields) -> Task:
        fields.setdefault("type", "feat")
        fields.setdefault("intent", f"Because {title} matters.")
        fields.setdefault("objectives", [f"{title} works"])
        return Task(title=title, **fields)

    return factory


@pytest.fixture()
def seed_plan(log: InMemoryLog, make_task) -> Callable[..., list[str]]:
    """Append a plan tagged ``tag`` with one task per title; returns entry ids.

    ``completed`` lists titles already done; ``changes`` lists titles whose
    entry carries file changes. The pointer is left where it was.
    """

    def seed(
        tag: str,
        titles: list[str],
        *,
        completed: tuple[str, ...] = (),
        changes: tuple[str, ...] = (),
    ) -> list[str]:
        return [
            log.append_task(
                tag,
                make_task(title, completed=title in completed),
                changes=title in changes,
            )
            for title in titles
        ]

    return seed
