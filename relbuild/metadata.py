"""
metadata.py

Responsibility: Collect best-effort build metadata and render it as linker flags.

No lookup here may fail a build; each field degrades to a named placeholder.
"""

from __future__ import annotations

import getpass
import logging
import re
import socket
import time
from dataclasses import dataclass
from pathlib import Path

from relbuild.toolchain import ToolchainError, run_output

log = logging.getLogger(__name__)

UNKNOWN_USER = "unknown-user"
UNKNOWN_HOST = "unknown-host"
DEFAULT_ENVIRONMENT = "default"


@dataclass(frozen=True)
class BuildMetadata:
    version: str
    timestamp: int
    user: str
    host: str
    environment: str


def build_stamp(root: Path) -> int:
    """
    Commit time of HEAD in seconds, or the current time outside a git checkout.
    """
    try:
        out = run_output(["git", "show", "-s", "--format=%ct"], cwd=root)
        return int(out.splitlines()[0])
    except (ToolchainError, ValueError, IndexError) as e:
        log.debug("No commit timestamp, using wall clock: %s", e)
        return int(time.time())


def build_user() -> str:
    try:
        name = getpass.getuser()
    except (OSError, KeyError, ImportError):
        return UNKNOWN_USER
    return name.replace(" ", "-") or UNKNOWN_USER


def build_host() -> str:
    try:
        return socket.gethostname() or UNKNOWN_HOST
    except OSError:
        return UNKNOWN_HOST


def build_metadata(version: str, *, root: str | Path, environment: str | None = None) -> BuildMetadata:
    return BuildMetadata(
        version=version,
        timestamp=build_stamp(Path(root)),
        user=build_user(),
        host=build_host(),
        environment=environment or DEFAULT_ENVIRONMENT,
    )


def _quote_flag_value(arg: str) -> str:
    """
    Quote an -ldflags argument the way `go build` splits them: single or double
    quotes, no escapes. Whitespace becomes hyphens when the value holds both quote kinds.
    """
    if not re.search(r"\s", arg):
        return arg
    if "'" not in arg:
        return f"'{arg}'"
    if '"' not in arg:
        return f'"{arg}"'
    return re.sub(r"\s+", "-", arg)


def render_link_flags(meta: BuildMetadata, *, symbol_package: str = "main") -> str:
    """
    Render `-ldflags` for `go build`, stamping each field into a package-level string var.
    """
    values = (
        ("Version", meta.version),
        ("BuildStamp", str(meta.timestamp)),
        ("BuildUser", meta.user),
        ("BuildHost", meta.host),
        ("BuildEnv", meta.environment),
    )
    flags = ["-w"]
    for name, value in values:
        flags += ["-X", _quote_flag_value(f"{symbol_package}.{name}={value}")]
    return " ".join(flags)
