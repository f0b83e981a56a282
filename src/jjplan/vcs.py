"""Structural interface to the backing log.

The loader and saver only ever talk to a ``VcsOps``. :class:`~jjplan.jj_ops.JujutsuOps`
is the production implementation; tests use an in-memory log.
All methods are synchronous and raise :class:`~jjplan.errors.VcsError` on failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class Entry:
    """One log entry as seen by a neighborhood scan (first line of its message)."""

    id: str
    raw_message: str


@dataclass(frozen=True)
class Neighborhood:
    """The working pointer's entry and its linear surroundings.

    ``history`` is oldest-first and ends just before ``current``;
    ``future`` starts just after ``current``.
    """

    current: Entry
    history: list[Entry] = field(default_factory=list)
    future: list[Entry] = field(default_factory=list)


@runtime_checkable
class VcsOps(Protocol):
    def current_id(self) -> str: ...

    def linear_neighborhood(self) -> Neighborhood: ...

    def get_description(self, entry_id: str | None = None) -> str: ...

    def set_description(self, text: str, entry_id: str | None = None) -> None: ...

    def is_empty(self, entry_id: str | None = None) -> bool: ...

    def create_entry(
        self,
        *,
        after: str | None = None,
        before: str | None = None,
        move_to_it: bool = False,
    ) -> str: ...

    def slide_entry(
        self,
        entry_id: str,
        *,
        after: str | None = None,
        before: str | None = None,
    ) -> None: ...

    def abandon_entry(self, entry_id: str) -> None: ...

    def move_pointer(self, entry_id: str) -> None: ...
