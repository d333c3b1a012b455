"""
version.py

Responsibility: Resolve the single version string used to stamp binaries and
name archives.

Resolution order, first success wins:
1) `RELEASE` file at the repository root (trimmed, used verbatim)
2) `git describe --always --dirty`, with the describe suffix normalised
3) the fallback token `unknown-dev`
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from relbuild.toolchain import ToolchainError, run_output

log = logging.getLogger(__name__)

RELEASE_FILENAME = "RELEASE"
FALLBACK_VERSION = "unknown-dev"

# "N commits past tag, short hash" as appended by git describe.
DESCRIBE_SUFFIX_RE = re.compile(r"-[0-9]{1,3}-g[0-9a-f]{5,10}")


def normalize_describe(describe: str) -> str:
    """
    Swap the leading hyphen of each describe suffix for `+`.

    `v1.2.3-5-gabcdef01` becomes `v1.2.3+5-gabcdef01`; everything else is
    left byte-identical.
    """
    return DESCRIBE_SUFFIX_RE.sub(lambda m: "+" + m.group(0)[1:], describe)


def read_release_version(root: Path) -> str | None:
    try:
        text = (root / RELEASE_FILENAME).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        log.debug("No usable %s file: %s", RELEASE_FILENAME, e)
        return None
    return text.strip() or None


def git_version(root: Path) -> str | None:
    try:
        describe = run_output(["git", "describe", "--always", "--dirty"], cwd=root)
    except ToolchainError as e:
        log.debug("git describe unavailable: %s", e)
        return None
    return normalize_describe(describe) or None


def resolve_version(root: str | Path) -> str:
    """
    Return the canonical version for the checkout at `root`. Never fails.
    """
    root_path = Path(root)
    return read_release_version(root_path) or git_version(root_path) or FALLBACK_VERSION
