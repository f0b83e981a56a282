"""Per-repository settings.

Repositories can pin settings in ``.jjplan/config.toml``::

    [jj]
    binary = "/opt/jj/bin/jj"
    timeout = 60

    [log]
    level = "INFO"

Environment variables win over the file: ``JJPLAN_JJ_BIN``,
``JJPLAN_TIMEOUT``, ``JJPLAN_LOG_LEVEL``.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".jjplan"
CONFIG_FILE_NAME = "config.toml"


@dataclass
class Settings:
    jj_binary: str = "jj"
    command_timeout: float = 30.0
    log_level: str = "WARNING"


def config_path(repo_dir: str | Path) -> Path:
    return Path(repo_dir) / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def _load_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        log.warning("Failed to parse %s, using defaults", path, exc_info=True)
        return {}


def _timeout(value: object, source: str) -> float | None:
    try:
        timeout = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        log.warning("%s: timeout %r is not a number, ignoring", source, value)
        return None
    if timeout <= 0:
        log.warning("%s: timeout must be positive, ignoring %r", source, value)
        return None
    return timeout


def load_settings(repo_dir: str | Path | None) -> Settings:
    """Resolve settings for a repository: defaults, then file, then environment."""
    settings = Settings()

    if repo_dir:
        path = config_path(repo_dir)
        data = _load_file(path)
        jj_section = data.get("jj", {})
        log_section = data.get("log", {})
        if isinstance(jj_section, dict):
            if jj_section.get("binary"):
                settings.jj_binary = str(jj_section["binary"])
            if "timeout" in jj_section:
                timeout = _timeout(jj_section["timeout"], str(path))
                if timeout is not None:
                    settings.command_timeout = timeout
        if isinstance(log_section, dict) and log_section.get("level"):
            settings.log_level = str(log_section["level"]).upper()

    env_bin = os.environ.get("JJPLAN_JJ_BIN")
    if env_bin:
        settings.jj_binary = env_bin
    env_timeout = os.environ.get("JJPLAN_TIMEOUT")
    if env_timeout:
        timeout = _timeout(env_timeout, "JJPLAN_TIMEOUT")
        if timeout is not None:
            settings.command_timeout = timeout
    env_level = os.environ.get("JJPLAN_LOG_LEVEL")
    if env_level:
        settings.log_level = env_level.upper()

    return settings


def configure_logging(level: str) -> None:
    """Send log output to stderr; stdout carries JSON or the MCP protocol."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.WARNING
    logging.basicConfig(level=numeric, format="%(asctime)s %(levelname)s %(name)s %(message)s")
