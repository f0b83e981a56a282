"""Jujutsu operations backing the plan store.

Methods raise VcsError on failure (never ClickException), so they can be
used from the CLI, the MCP server and tests alike. Every change id handed
out is a full change id, so ids compare equal across calls.
"""

from __future__ import annotations

import logging
import re
import shlex
import subprocess
from dataclasses import dataclass

from jjplan.errors import VcsError
from jjplan.vcs import Entry, Neighborhood

log = logging.getLogger(__name__)

DEFAULT_SCAN_LIMIT = 1000

# change id, commit id, parent count, first line of the description
_ENTRY_TEMPLATE = (
    'change_id ++ "\\t" ++ commit_id ++ "\\t" ++ parents.len() ++ "\\t" '
    '++ description.first_line() ++ "\\n"'
)
_ROOT_COMMIT_RE = re.compile(r"0+")
_CREATED_RE = re.compile(r"Created new commit (?P<change>[k-z]+)\b")


@dataclass(frozen=True)
class _LogRow:
    entry: Entry
    commit_id: str
    parents: int


def _parse_rows(stdout: str, command: str) -> list[_LogRow]:
    rows: list[_LogRow] = []
    for line in stdout.splitlines():
        if not line.strip():
            continue
        parts = line.split("\t", 3)
        if len(parts) < 4 or not parts[2].isdigit():
            raise VcsError(command, f"unexpected commit format: {line!r}")
        change_id, commit_id, parents, message = parts
        rows.append(
            _LogRow(
                entry=Entry(id=change_id, raw_message=message),
                commit_id=commit_id,
                parents=int(parents),
            )
        )
    return rows


class JujutsuOps:
    """``VcsOps`` over the ``jj`` command line, scoped to one repository."""

    def __init__(
        self,
        repo_dir: str,
        *,
        jj_binary: str = "jj",
        timeout: float = 30.0,
        scan_limit: int = DEFAULT_SCAN_LIMIT,
    ) -> None:
        self.repo_dir = repo_dir
        self.jj_binary = jj_binary
        self.timeout = timeout
        self.scan_limit = scan_limit

    def _run(self, *args: str) -> subprocess.CompletedProcess[str]:
        cmd = [self.jj_binary, "--no-pager", "--color", "never", "-R", self.repo_dir, *args]
        display = shlex.join(["jj", *args])
        log.debug("Running %s", display)
        try:
            return subprocess.run(
                cmd,
                check=True,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            raise VcsError(display, f"'{self.jj_binary}' binary not found") from None
        except subprocess.TimeoutExpired:
            raise VcsError(display, f"timed out after {self.timeout:g}s") from None
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or "").strip() or f"exit code {e.returncode}"
            raise VcsError(display, detail) from None

    def _rows(self, revset: str, *, limit: int | None = None) -> list[_LogRow]:
        args = ["log", "-r", revset, "--no-graph", "-T", _ENTRY_TEMPLATE]
        if limit is not None:
            args += ["--limit", str(limit)]
        result = self._run(*args)
        return _parse_rows(result.stdout, f"jj log -r {revset}")

    def _resolve(self, revision: str) -> str:
        result = self._run("log", "-r", revision, "--no-graph", "-T", "change_id")
        change_id = result.stdout.strip()
        if not change_id:
            raise VcsError(f"jj log -r {revision}", "no matching commit")
        return change_id

    # -- reads --

    def current_id(self) -> str:
        return self._resolve("@")

    def linear_neighborhood(self) -> Neighborhood:
        current_rows = self._rows("@")
        if not current_rows:
            raise VcsError("jj log -r @", "no current commit found in repository")
        current = current_rows[0].entry

        # Newest first; stop after the first merge, skip the root commit.
        history: list[Entry] = []
        for row in self._rows("::@ ~ @", limit=self.scan_limit):
            if _ROOT_COMMIT_RE.fullmatch(row.commit_id):
                continue
            history.append(row.entry)
            if row.parents > 1:
                break
        history.reverse()

        # Walk children one step at a time; a fork or a merge ends the line.
        future: list[Entry] = []
        cursor = current.id
        while len(future) < self.scan_limit:
            children = self._rows(f"children({cursor})")
            if len(children) != 1 or children[0].parents > 1:
                break
            future.append(children[0].entry)
            cursor = children[0].entry.id

        return Neighborhood(current=current, history=history, future=future)

    def get_description(self, entry_id: str | None = None) -> str:
        result = self._run("log", "-r", entry_id or "@", "--no-graph", "-T", "description")
        return result.stdout

    def is_empty(self, entry_id: str | None = None) -> bool:
        result = self._run("log", "-r", entry_id or "@", "--no-graph", "-T", "empty")
        return result.stdout.strip() == "true"

    # -- writes --

    def set_description(self, text: str, entry_id: str | None = None) -> None:
        self._run("describe", "-m", text, entry_id or "@")

    def create_entry(
        self,
        *,
        after: str | None = None,
        before: str | None = None,
        move_to_it: bool = False,
    ) -> str:
        args = ["new"]
        if not move_to_it:
            args.append("--no-edit")
        if after:
            args += ["-A", after]
        if before:
            args += ["-B", before]
        result = self._run(*args)

        if move_to_it:
            return self.current_id()

        match = _CREATED_RE.search(f"{result.stderr}\n{result.stdout}")
        if match is None:
            raise VcsError(shlex.join(["jj", *args]), "missing created change id in output")
        return self._resolve(match["change"])

    def slide_entry(
        self,
        entry_id: str,
        *,
        after: str | None = None,
        before: str | None = None,
    ) -> None:
        args = ["rebase", "-r", entry_id]
        if after:
            args += ["-A", after]
        if before:
            args += ["-B", before]
        self._run(*args)

    def abandon_entry(self, entry_id: str) -> None:
        self._run("abandon", entry_id)

    def move_pointer(self, entry_id: str) -> None:
        self._run("edit", entry_id)
