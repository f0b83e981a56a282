"""Error taxonomy for plan persistence.

Every failure the loader, saver and planning service can produce is a
``PlanError`` subclass. Each category carries only the fields that
describe it, and :func:`format_error` is the one place that turns them
into user-facing text (CLI and MCP surfaces both go through it).
"""

from __future__ import annotations

from collections.abc import Sequence

# -- parse error kinds --

INVALID_TYPE = "invalid-type"
INVALID_HEADER = "invalid-header"
TITLE_TOO_LONG = "title-too-long"
INVALID_OBJECTIVE_FORMAT = "invalid-objective-format"
INVALID_CONSTRAINT_FORMAT = "invalid-constraint-format"

PARSE_ERROR_KINDS = frozenset(
    {
        INVALID_TYPE,
        INVALID_HEADER,
        TITLE_TOO_LONG,
        INVALID_OBJECTIVE_FORMAT,
        INVALID_CONSTRAINT_FORMAT,
    }
)

# -- structure error kinds --

EMPTY_TASK = "empty-task"
NO_TASKS = "no-tasks"
SINGLE_TASK_REQUIRED = "single-task-required"

STRUCTURE_ERROR_KINDS = frozenset({EMPTY_TASK, NO_TASKS, SINGLE_TASK_REQUIRED})


class PlanError(Exception):
    """Base class for every plan persistence failure."""

    category = "plan"


class VcsError(PlanError):
    """A backing-log call failed. Propagated verbatim, never retried."""

    category = "vcs"

    def __init__(self, command: str, detail: str) -> None:
        self.command = command
        self.detail = detail
        super().__init__(f"{command}: {detail}" if detail else command)


class ParseError(PlanError):
    """A commit description does not follow the task grammar."""

    category = "parse"

    def __init__(self, kind: str) -> None:
        if kind not in PARSE_ERROR_KINDS:
            raise ValueError(f"Unknown parse error kind: {kind}")
        self.kind = kind
        super().__init__(kind)


class StructureError(PlanError):
    """A plan-level invariant does not hold."""

    category = "structure"

    def __init__(self, kind: str) -> None:
        if kind not in STRUCTURE_ERROR_KINDS:
            raise ValueError(f"Unknown structure error kind: {kind}")
        self.kind = kind
        super().__init__(kind)


class SafetyError(PlanError):
    """Refusal to abandon an entry that still carries file changes.

    Raised before any mutation.
    """

    category = "safety"

    def __init__(self, task_key: str) -> None:
        self.task_key = task_key
        super().__init__(f"entry {task_key} contains file changes")


class InvocationError(PlanError):
    """The caller referenced task keys (or a plan) that do not exist.

    Raised before any mutation.
    """

    category = "invocation"

    def __init__(self, message: str, keys: Sequence[str] = ()) -> None:
        self.keys = tuple(keys)
        super().__init__(message)


_PARSE_MESSAGES = {
    INVALID_TYPE: "Invalid commit type",
    INVALID_HEADER: "Invalid header format",
    TITLE_TOO_LONG: "Task title exceeds maximum length of 120 characters",
    INVALID_OBJECTIVE_FORMAT: "Invalid objective format (every objective must be a '- ' bullet)",
    INVALID_CONSTRAINT_FORMAT: "Invalid constraint format (every constraint must be a '- ' bullet)",
}

_STRUCTURE_MESSAGES = {
    EMPTY_TASK: "Cannot save a plan with no tasks. Add at least one task first.",
    NO_TASKS: "There must be at least one task in a plan.",
    SINGLE_TASK_REQUIRED: "Documenting the current entry takes exactly one task.",
}


def format_error(exc: Exception) -> str:
    """Render an error for humans and agents, with recovery guidance."""
    if isinstance(exc, VcsError):
        return f"VCS Error: {exc.command} failed: {exc.detail or 'no output'}"
    if isinstance(exc, ParseError):
        return f"Parse Error: {_PARSE_MESSAGES[exc.kind]}"
    if isinstance(exc, StructureError):
        return f"Structure Error: {_STRUCTURE_MESSAGES[exc.kind]}"
    if isinstance(exc, SafetyError):
        return (
            f"Safety Error: Cannot delete task '{exc.task_key}' because its entry "
            "contains file changes. Move or discard the changes first."
        )
    if isinstance(exc, InvocationError):
        if exc.keys:
            return f"Invocation Error: {exc} [{', '.join(exc.keys)}]"
        return f"Invocation Error: {exc}"
    if isinstance(exc, ValueError):
        return f"Invalid input: {exc}"
    return f"Error: {exc}"
