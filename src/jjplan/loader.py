"""Reconstruct the plan surrounding the working pointer.

A plan is the longest run of entries around the current one whose headers
decode and carry the current entry's tag. The run is found from headers
alone; bodies are decoded afterwards and any body failure fails the whole
load.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from jjplan.codec import TaskHeader, build_task, parse_body, parse_header, split_description
from jjplan.errors import NO_TASKS, ParseError, StructureError
from jjplan.models import Plan
from jjplan.vcs import Entry, Neighborhood, VcsOps

log = logging.getLogger(__name__)


def _header_of(entry: Entry) -> TaskHeader:
    first_line, _ = split_description(entry.raw_message)
    return parse_header(first_line)


def _take_tagged(entries: Iterable[Entry], tag: str) -> list[tuple[Entry, TaskHeader]]:
    """Leading entries whose header decodes with ``tag``."""
    run: list[tuple[Entry, TaskHeader]] = []
    for entry in entries:
        try:
            header = _header_of(entry)
        except ParseError:
            break
        if header.tag != tag:
            break
        run.append((entry, header))
    return run


def scan_run(neighborhood: Neighborhood) -> list[tuple[Entry, TaskHeader]]:
    """Return the plan's entries in chronological order.

    Raises ParseError when the current entry is not a task.
    """
    current = (neighborhood.current, _header_of(neighborhood.current))
    tag = current[1].tag
    before = _take_tagged(reversed(neighborhood.history), tag)
    after = _take_tagged(neighborhood.future, tag)
    return [*reversed(before), current, *after]


class Loader:
    def __init__(self, vcs: VcsOps) -> None:
        self.vcs = vcs

    def load_plan(self) -> Plan:
        """Load the plan around the working pointer.

        Raises VcsError, ParseError (no plan here, or a member is corrupt)
        or StructureError.
        """
        run = scan_run(self.vcs.linear_neighborhood())
        if not run:
            raise StructureError(NO_TASKS)

        tasks = []
        for entry, header in run:
            _, body_text = split_description(self.vcs.get_description(entry.id))
            tasks.append(build_task(header, parse_body(body_text), entry.id))

        log.debug("Loaded plan %s with %d task(s)", run[0][1].tag, len(tasks))
        return Plan(tag=run[0][1].tag, tasks=tasks)
