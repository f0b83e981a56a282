"""Commit description codec for plan tasks.

A task is stored as a commit description::

    feat(api/users:abcd):~ add the user listing endpoint

    Why the task exists, free text, may span paragraphs.

    ## Constraints
    - keep the response shape backwards compatible

    ## Objectives
    - endpoint returns paginated users

The first line is the header: ``type(scope?:tag):marker? title`` where the
``~`` marker means "not completed yet". Everything after the first line is
the body. Decoding is strict: one malformed bullet invalidates the whole
body. Encoding re-parses its own output and refuses anything that would
not decode back to the same task.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from jjplan.errors import (
    INVALID_CONSTRAINT_FORMAT,
    INVALID_HEADER,
    INVALID_OBJECTIVE_FORMAT,
    INVALID_TYPE,
    TITLE_TOO_LONG,
    ParseError,
)
from jjplan.models import MAX_TITLE_LENGTH, VALID_TASK_TYPES, Task

INCOMPLETE_MARKER = "~"
OBJECTIVES_MARKER = "## Objectives"
CONSTRAINTS_MARKER = "## Constraints"
BULLET = "- "

SCOPE_PATTERN = r"[a-z][a-z0-9/.-]*"
TAG_PATTERN = r"[a-z0-9]{4}"

_HEADER_RE = re.compile(
    rf"(?P<type>\w+)\((?P<scope>{SCOPE_PATTERN})?:(?P<tag>{TAG_PATTERN})\):"
    rf"(?P<marker>{INCOMPLETE_MARKER})? (?P<title>.*)"
)
_TITLE_START_RE = re.compile(r"[a-z0-9]")


@dataclass(frozen=True)
class TaskHeader:
    type: str
    scope: str | None
    tag: str
    title: str
    completed: bool


@dataclass(frozen=True)
class TaskBody:
    intent: str
    objectives: tuple[str, ...]
    constraints: tuple[str, ...]


# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------


def parse_header(line: str) -> TaskHeader:
    """Decode a header line. Raises ParseError."""
    match = _HEADER_RE.fullmatch(line)
    if match is None:
        raise ParseError(INVALID_HEADER)

    if match["type"] not in VALID_TASK_TYPES:
        raise ParseError(INVALID_TYPE)

    title = match["title"].strip()
    if not title or not _TITLE_START_RE.match(title):
        raise ParseError(INVALID_HEADER)
    if len(title) > MAX_TITLE_LENGTH:
        raise ParseError(TITLE_TOO_LONG)

    return TaskHeader(
        type=match["type"],
        scope=match["scope"],
        tag=match["tag"],
        title=title,
        completed=match["marker"] is None,
    )


def format_header(tag: str, task: Task) -> str:
    """Encode the header line for ``task`` under ``tag``. Raises ParseError."""
    marker = "" if task.completed else INCOMPLETE_MARKER
    header = f"{task.type}({task.scope or ''}:{tag}):{marker} {task.title.strip()}"
    parse_header(header)
    return header


# ---------------------------------------------------------------------------
# Body
# ---------------------------------------------------------------------------


def _bullets(lines: list[str], error_kind: str) -> tuple[str, ...]:
    items: list[str] = []
    for line in lines:
        if not line.strip():
            continue
        if not line.startswith(BULLET):
            raise ParseError(error_kind)
        content = line[len(BULLET) :].strip()
        if not content:
            raise ParseError(error_kind)
        items.append(content)
    return tuple(items)


def parse_body(body: str) -> TaskBody:
    """Decode the text after the header line. Raises ParseError."""
    sections: dict[str, list[str]] = {"intent": [], "objective": [], "constraint": []}
    state = "intent"
    for line in body.split("\n"):
        if line == OBJECTIVES_MARKER and state != "objective":
            state = "objective"
            continue
        if line == CONSTRAINTS_MARKER and state != "constraint":
            state = "constraint"
            continue
        sections[state].append(line)

    return TaskBody(
        intent="\n".join(sections["intent"]).strip(),
        objectives=_bullets(sections["objective"], INVALID_OBJECTIVE_FORMAT),
        constraints=_bullets(sections["constraint"], INVALID_CONSTRAINT_FORMAT),
    )


def format_body(task: Task) -> str:
    blocks: list[str] = []
    intent = task.intent.strip()
    if intent:
        blocks.append(intent)
    if task.constraints:
        lines = [CONSTRAINTS_MARKER] + [f"{BULLET}{c.strip()}" for c in task.constraints]
        blocks.append("\n".join(lines))
    if task.objectives:
        lines = [OBJECTIVES_MARKER] + [f"{BULLET}{o.strip()}" for o in task.objectives]
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks).strip()


# ---------------------------------------------------------------------------
# Whole description
# ---------------------------------------------------------------------------


def split_description(description: str) -> tuple[str, str]:
    """Split a raw description into (header line, body)."""
    header, _, body = description.partition("\n")
    return header, body


def _check_decodes_to(task: Task, decoded: TaskBody) -> None:
    """Raise ParseError unless ``decoded`` carries exactly ``task``'s body fields."""
    if decoded.objectives != tuple(o.strip() for o in task.objectives):
        raise ParseError(INVALID_OBJECTIVE_FORMAT)
    if decoded.constraints != tuple(c.strip() for c in task.constraints):
        raise ParseError(INVALID_CONSTRAINT_FORMAT)
    if decoded.intent != task.intent.strip():
        # only a marker line inside the intent can move intent text
        lines = task.intent.split("\n")
        kind = (
            INVALID_CONSTRAINT_FORMAT if CONSTRAINTS_MARKER in lines else INVALID_OBJECTIVE_FORMAT
        )
        raise ParseError(kind)


def format_task(tag: str, task: Task) -> str:
    """Encode a full commit description.

    Both halves are decoded again and must give back the task as given
    (modulo trimming), so text that would change shape in the log is
    refused instead of written.
    """
    header = format_header(tag, task)
    body = format_body(task)
    _check_decodes_to(task, parse_body(body))
    return f"{header}\n\n{body}" if body else header


def parse_task(description: str, task_key: str | None = None) -> Task:
    """Decode a full commit description into a Task."""
    header_line, body_text = split_description(description)
    return build_task(parse_header(header_line), parse_body(body_text), task_key)


def build_task(header: TaskHeader, body: TaskBody, task_key: str | None) -> Task:
    return Task(
        type=header.type,
        title=header.title,
        scope=header.scope,
        intent=body.intent,
        objectives=list(body.objectives),
        constraints=list(body.constraints),
        completed=header.completed,
        task_key=task_key,
        tag=header.tag,
    )
