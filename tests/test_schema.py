"""Tests for caller input validation."""

from __future__ import annotations

import pytest

from jjplan.schema import validate_plan_input, validate_task_input


def _task(**overrides) -> dict:
    data = {
        "type": "feat",
        "scope": "api/v2",
        "title": "add pagination",
        "intent": "Lists grow unbounded.",
        "objectives": ["pages of 50"],
        "constraints": [],
        "completed": False,
    }
    data.update(overrides)
    return data


class TestTaskInput:
    def test_valid(self) -> None:
        validate_task_input(_task())
        validate_task_input(_task(scope=None))

    @pytest.mark.parametrize(
        "overrides, fragment",
        [
            ({"type": "feature"}, "type"),
            ({"title": "Add pagination"}, "title"),
            ({"title": " add pagination"}, "title"),
            ({"title": "add pagination "}, "title"),
            ({"title": "a" * 121}, "title"),
            ({"scope": "API"}, "scope"),
            ({"intent": ""}, "intent"),
            ({"objectives": []}, "objectives"),
            ({"objectives": [""]}, "objectives"),
            ({"extra": 1}, "extra"),
        ],
    )
    def test_invalid(self, overrides, fragment) -> None:
        with pytest.raises(ValueError, match=fragment):
            validate_task_input(_task(**overrides))

    def test_missing_required(self) -> None:
        data = _task()
        del data["objectives"]
        with pytest.raises(ValueError, match="objectives"):
            validate_task_input(data)

    def test_partial_accepts_subset(self) -> None:
        validate_task_input({"completed": True}, partial=True)
        validate_task_input({"scope": None}, partial=True)

    def test_partial_still_checks_values(self) -> None:
        with pytest.raises(ValueError, match="title"):
            validate_task_input({"title": "Bad"}, partial=True)
        with pytest.raises(ValueError, match="task_key"):
            validate_task_input({"task_key": "abc"}, partial=True)


class TestPlanInput:
    def test_round_trips_show_output(self) -> None:
        stored = _task(task_key="qzvx", tag="abcd", intent="", objectives=[])
        validate_plan_input({"tag": "abcd", "tasks": [stored]})

    def test_requires_tasks(self) -> None:
        with pytest.raises(ValueError, match="tasks"):
            validate_plan_input({"tag": "abcd"})

    def test_bad_tag(self) -> None:
        with pytest.raises(ValueError, match="ABCD"):
            validate_plan_input({"tag": "ABCD", "tasks": []})

    def test_task_without_type(self) -> None:
        data = _task()
        del data["type"]
        with pytest.raises(ValueError, match="type"):
            validate_plan_input({"tasks": [data]})


@pytest.mark.parametrize("field", ["objectives", "constraints"])
def test_list_items_are_single_lines(field) -> None:
    with pytest.raises(ValueError, match=field):
        validate_task_input(_task(**{field: ["first\n- second"]}))
    with pytest.raises(ValueError, match=field):
        validate_plan_input({"tasks": [_task(**{field: ["first\nsecond"]})]})
