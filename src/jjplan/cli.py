from __future__ import annotations

import contextlib
import difflib
import json
import logging
from collections.abc import Iterator
from typing import Any

import click

from jjplan import __version__
from jjplan.config import configure_logging, load_settings
from jjplan.errors import PlanError, format_error
from jjplan.models import (
    MODE_NEW,
    MODE_UPDATE,
    VALID_TASK_TYPES,
    Plan,
    plan_to_dict,
    task_from_dict,
    task_to_dict,
)
from jjplan.planning import NEW_PLAN_MODES, PlanningLibrary, open_library
from jjplan.schema import validate_plan_input, validate_task_input

log = logging.getLogger(__name__)

TYPE_CHOICE = click.Choice(sorted(VALID_TASK_TYPES))


def _suggest(name: str, commands: list[str]) -> str:
    matches = difflib.get_close_matches(name, commands, n=2, cutoff=0.5)
    return f" Did you mean: {', '.join(matches)}?" if matches else ""


class _JsonErrorGroup(click.Group):
    """Click group that reports every failure as JSON on stdout.

    jjplan always answers in JSON, so usage errors and failed commands print
    ``{"ok": false, "error": ...}`` instead of click's plain-text usage
    message. A mistyped command name gets close matches as a hint.
    """

    def resolve_command(self, ctx, args):  # type: ignore[override]
        try:
            return super().resolve_command(ctx, args)
        except click.UsageError:
            if not args:
                raise
            hint = _suggest(args[0], self.list_commands(ctx))
            raise click.UsageError(f"No such command '{args[0]}'.{hint}") from None

    def main(self, args=None, standalone_mode=True, **kwargs):  # type: ignore[override]
        try:
            code = super().main(args=args, standalone_mode=False, **kwargs)
        except click.ClickException as exc:
            _emit({"ok": False, "error": exc.format_message()})
            code = exc.exit_code
        except click.Abort:
            if not standalone_mode:
                raise
            click.echo("Aborted!", err=True)
            code = 1
        if standalone_mode:
            raise SystemExit(code or 0)
        return code


@contextlib.contextmanager
def _reported() -> Iterator[None]:
    """Turn plan and input errors into ClickExceptions (rendered as JSON)."""
    try:
        yield
    except (PlanError, ValueError) as exc:
        raise click.ClickException(format_error(exc)) from None


def _emit(payload: Any) -> None:
    click.echo(json.dumps(payload))


def _library(ctx: click.Context) -> PlanningLibrary:
    return ctx.find_root().obj


def _load_json(source: click.File) -> Any:
    try:
        return json.load(source)  # type: ignore[arg-type]
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"Invalid JSON: {exc}") from None


@click.group(cls=_JsonErrorGroup)
@click.version_option(version=__version__)
@click.option(
    "--repo",
    "-R",
    default=".",
    show_default=True,
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Jujutsu repository to operate on.",
)
@click.option("--verbose", "-v", is_flag=True, help="Log every jj command to stderr.")
@click.pass_context
def main(ctx: click.Context, repo: str, verbose: bool):
    """Keep a task plan inside Jujutsu commit history.

    \b
    Each task is one commit whose description looks like:
      feat(api:abcd):~ add the user listing endpoint
    Commits sharing the 4-character tag form one plan. The ~ marker
    means the task is not completed yet.

    \b
    Quick start:
      jjplan add --new auto --type feat --title "..." --intent "..." --objective "..."
      jjplan show                     Plan around the working copy
      jjplan update KEY --completed   Mark a task done
      jjplan goto KEY                 Move the working copy to a task
    """
    settings = load_settings(repo)
    configure_logging("DEBUG" if verbose else settings.log_level)
    log.debug("Repository %s, jj binary %s", repo, settings.jj_binary)
    if ctx.obj is None:
        ctx.obj = open_library(repo, settings)


@main.command()
@click.pass_context
def show(ctx: click.Context):
    """Print the plan around the working copy."""
    with _reported():
        plan = _library(ctx).project()
    _emit(plan_to_dict(plan) if plan else {"tag": None, "tasks": []})


@main.command()
@click.option("--type", "task_type", required=True, type=TYPE_CHOICE, help="Commit type.")
@click.option("--scope", default=None, help="Area of change, e.g. 'auth/login'.")
@click.option("--title", required=True, help="What will be done (lowercase start).")
@click.option("--intent", required=True, help="Why the task is needed.")
@click.option("--objective", "objectives", multiple=True, required=True, help="Expected outcome.")
@click.option("--constraint", "constraints", multiple=True, help="Limitation to respect.")
@click.option("--completed", is_flag=True, help="Record the task as already done.")
@click.option(
    "--new",
    "new",
    type=click.Choice(sorted(NEW_PLAN_MODES)),
    default=None,
    help="'auto' starts a new plan; 'current' documents the working-copy commit.",
)
@click.pass_context
def add(
    ctx: click.Context,
    task_type: str,
    scope: str | None,
    title: str,
    intent: str,
    objectives: tuple[str, ...],
    constraints: tuple[str, ...],
    completed: bool,
    new: str | None,
):
    """Add a task to the current plan (or start a plan with it)."""
    data = {
        "type": task_type,
        "scope": scope or None,
        "title": title,
        "intent": intent,
        "objectives": list(objectives),
        "constraints": list(constraints),
        "completed": completed,
    }
    with _reported():
        validate_task_input(data)
        plan = _library(ctx).create_task(task_from_dict(data), new=new)
    _emit(plan_to_dict(plan))


@main.command()
@click.argument("task_key")
@click.option("--type", "task_type", default=None, type=TYPE_CHOICE, help="Commit type.")
@click.option("--scope", default=None, help="Area of change.")
@click.option("--clear-scope", is_flag=True, help="Remove the scope.")
@click.option("--title", default=None, help="New title.")
@click.option("--intent", default=None, help="New intent.")
@click.option("--objective", "objectives", multiple=True, help="Replace objectives (repeatable).")
@click.option(
    "--constraint", "constraints", multiple=True, help="Replace constraints (repeatable)."
)
@click.option("--completed/--incomplete", default=None, help="Completion state.")
@click.pass_context
def update(
    ctx: click.Context,
    task_key: str,
    task_type: str | None,
    scope: str | None,
    clear_scope: bool,
    title: str | None,
    intent: str | None,
    objectives: tuple[str, ...],
    constraints: tuple[str, ...],
    completed: bool | None,
):
    """Change fields of one task. Unspecified fields are kept."""
    if scope and clear_scope:
        raise click.ClickException("Use either --scope or --clear-scope, not both.")
    changes: dict[str, Any] = {}
    if task_type is not None:
        changes["type"] = task_type
    if scope is not None:
        changes["scope"] = scope
    if clear_scope:
        changes["scope"] = None
    if title is not None:
        changes["title"] = title
    if intent is not None:
        changes["intent"] = intent
    if objectives:
        changes["objectives"] = list(objectives)
    if constraints:
        changes["constraints"] = list(constraints)
    if completed is not None:
        changes["completed"] = completed
    if not changes:
        raise click.ClickException("Nothing to update.")

    with _reported():
        validate_task_input(changes, partial=True)
        plan = _library(ctx).update_task(task_key, changes)
    _emit(plan_to_dict(plan))


@main.command()
@click.argument("task_key")
@click.pass_context
def delete(ctx: click.Context, task_key: str):
    """Remove a task. Its commit must not contain file changes."""
    with _reported():
        plan = _library(ctx).delete_task(task_key)
    _emit(plan_to_dict(plan))


@main.command()
@click.argument("task_keys", nargs=-1, required=True)
@click.pass_context
def reorder(ctx: click.Context, task_keys: tuple[str, ...]):
    """Reorder tasks. TASK_KEYS must list every task of the plan once."""
    with _reported():
        plan = _library(ctx).reorder_tasks(list(task_keys))
    _emit(plan_to_dict(plan))


@main.command()
@click.argument("task_key")
@click.pass_context
def goto(ctx: click.Context, task_key: str):
    """Move the working copy to a task's commit."""
    with _reported():
        task = _library(ctx).goto(task_key)
    _emit(task_to_dict(task))


@main.command()
@click.pass_context
def drop(ctx: click.Context):
    """Abandon every commit of the current plan (all must be empty)."""
    with _reported():
        abandoned = _library(ctx).drop()
    _emit({"abandoned": abandoned})


def _plan_from_file(source: click.File, mode: str, library: PlanningLibrary) -> Plan:
    data = _load_json(source)
    validate_plan_input(data)
    tasks = [task_from_dict(item) for item in data["tasks"]]
    if mode == MODE_NEW:
        plan = library.new_project(MODE_NEW)
        for task in tasks:
            task.task_key = None
        plan.tasks = tasks
        return plan
    current = library.project()
    if current is None:
        raise click.ClickException("There is no existing plan at the working copy.")
    return Plan(tag=current.tag, tasks=tasks, mode=MODE_UPDATE)


@main.command()
@click.argument("source", type=click.File("r"), default="-")
@click.pass_context
def new(ctx: click.Context, source: click.File):
    """Create a new plan from a JSON task list (file or stdin).

    \b
    Input: {"tasks": [{"type": "feat", "title": "...", ...}, ...]}
    The plan is appended after the plan around the working copy.
    """
    with _reported():
        plan = _plan_from_file(source, MODE_NEW, _library(ctx))
        saved = _library(ctx).save(plan)
    _emit(plan_to_dict(saved))


@main.command()
@click.argument("source", type=click.File("r"), default="-")
@click.pass_context
def save(ctx: click.Context, source: click.File):
    """Rewrite the current plan into a full target list (file or stdin).

    \b
    Input is what `jjplan show` prints, edited: tasks with a task_key are
    kept and moved, tasks without one are created, and plan tasks missing
    from the list are abandoned (only allowed for empty commits).
    """
    with _reported():
        plan = _plan_from_file(source, MODE_UPDATE, _library(ctx))
        saved = _library(ctx).save(plan)
    _emit(plan_to_dict(saved))


if __name__ == "__main__":
    main()
