"""Tests for the task-level planning service."""

from __future__ import annotations

import pytest

from jjplan.config import Settings
from jjplan.errors import InvocationError
from jjplan.jj_ops import JujutsuOps
from jjplan.planning import PlanningLibrary, open_library


@pytest.fixture()
def planned(log, seed_plan) -> list[str]:
    keys = seed_plan("abcd", ["one", "two"])
    log.pointer = keys[0]
    return keys


class TestProject:
    def test_none_without_plan(self, library) -> None:
        assert library.project() is None

    def test_loads_plan(self, library, planned) -> None:
        assert library.project().keys() == planned

    def test_new_project_uses_tag_factory(self, library) -> None:
        plan = library.new_project()
        assert plan.tag == "newp"
        assert plan.tasks == []


class TestCreateTask:
    def test_starts_new_plan(self, log, library, make_task) -> None:
        plan = library.create_task(make_task("first"), new="auto")
        assert plan.tag == "newp"
        assert log.pointer == plan.tasks[0].task_key
        assert library.project().keys() == plan.keys()

    def test_documents_current_entry(self, log, library, make_task) -> None:
        log.pointer = log.append("", changes=True)
        plan = library.create_task(make_task("done already", completed=True), new="current")
        assert plan.keys() == [log.pointer]

    def test_appends_to_existing_plan(self, library, planned, make_task) -> None:
        plan = library.create_task(make_task("three"))
        assert plan.tag == "abcd"
        assert plan.keys()[:2] == planned
        assert [t.title for t in plan.tasks] == ["one", "two", "three"]

    def test_requires_plan_without_new(self, library, make_task) -> None:
        with pytest.raises(InvocationError, match="no existing plan"):
            library.create_task(make_task())

    def test_rejects_unknown_new_value(self, library, make_task) -> None:
        with pytest.raises(ValueError, match="Invalid value for new"):
            library.create_task(make_task(), new="later")


class TestUpdateTask:
    def test_changes_fields(self, library, planned) -> None:
        plan = library.update_task(
            planned[1], {"completed": True, "scope": "core", "objectives": ["x", "y"]}
        )
        task = plan.find(planned[1])
        assert task.completed is True
        assert task.scope == "core"
        assert library.project().find(planned[1]).objectives == ["x", "y"]

    def test_clears_scope(self, library, planned) -> None:
        library.update_task(planned[0], {"scope": "core"})
        plan = library.update_task(planned[0], {"scope": None})
        assert plan.find(planned[0]).scope is None

    def test_unknown_field(self, library, planned) -> None:
        with pytest.raises(ValueError, match="task_key"):
            library.update_task(planned[0], {"task_key": "other"})

    def test_missing_task(self, library, planned) -> None:
        with pytest.raises(InvocationError) as exc_info:
            library.update_task("entry999", {"completed": True})
        assert exc_info.value.keys == ("entry999",)


class TestDeleteReorderGoto:
    def test_delete(self, log, library, planned) -> None:
        plan = library.delete_task(planned[1])
        assert plan.keys() == planned[:1]
        assert planned[1] not in log.ids()

    def test_delete_missing(self, library, planned) -> None:
        with pytest.raises(InvocationError):
            library.delete_task("entry999")

    def test_reorder(self, library, planned) -> None:
        plan = library.reorder_tasks(list(reversed(planned)))
        assert plan.keys() == list(reversed(planned))

    @pytest.mark.parametrize("keys", [[], ["entry002"], ["entry002", "entry002"]])
    def test_reorder_needs_permutation(self, library, planned, keys) -> None:
        with pytest.raises(InvocationError, match="permutation"):
            library.reorder_tasks(keys)

    def test_goto(self, log, library, planned) -> None:
        task = library.goto(planned[1])
        assert task.title == "two"
        assert log.pointer == planned[1]

    def test_goto_missing(self, log, library, planned) -> None:
        with pytest.raises(InvocationError, match="doesn't exist"):
            library.goto("entry999")
        assert log.pointer == planned[0]

    def test_drop(self, log, library, planned) -> None:
        assert library.drop() == planned
        assert library.project() is None


def test_open_library_uses_settings(tmp_path) -> None:
    settings = Settings(jj_binary="/opt/jj", command_timeout=5.0)
    library = open_library(str(tmp_path), settings)
    assert isinstance(library, PlanningLibrary)
    assert isinstance(library.vcs, JujutsuOps)
    assert library.vcs.jj_binary == "/opt/jj"
    assert library.vcs.timeout == 5.0
    assert library.vcs.repo_dir == str(tmp_path)
