"""Plan tag generation."""

from __future__ import annotations

import re
import secrets
import string

TAG_LENGTH = 4

_TAG_RE = re.compile(r"[a-z0-9]{4}")


def generate_tag() -> str:
    """Return 4 random lowercase letters from a CSPRNG."""
    return "".join(secrets.choice(string.ascii_lowercase) for _ in range(TAG_LENGTH))


def is_valid_tag(tag: str) -> bool:
    """Whether ``tag`` is acceptable in a task header."""
    return isinstance(tag, str) and _TAG_RE.fullmatch(tag) is not None
