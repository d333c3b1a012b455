"""
checksum.py

Responsibility: Write the `<binary>.md5` sidecar consumed by the self-upgrade verifier.

MD5 is kept for compatibility with existing upgrade clients, not for security.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

SIDECAR_SUFFIX = ".md5"


class ChecksumError(RuntimeError):
    pass


def md5_hex(path: Path) -> str:
    h = hashlib.md5(usedforsecurity=False)
    with path.open("rb") as f:
        for block in iter(lambda: f.read(1 << 16), b""):
            h.update(block)
    return h.hexdigest()


def sidecar_path(binary: str | Path) -> Path:
    binary = Path(binary)
    return binary.with_name(binary.name + SIDECAR_SUFFIX)


def write_checksum(binary: str | Path) -> Path:
    """
    Hash `binary` and write the lowercase hex digest plus newline next to it.
    """
    binary = Path(binary)
    out = sidecar_path(binary)
    try:
        digest = md5_hex(binary)
        out.write_text(digest + "\n", encoding="ascii", newline="\n")
    except OSError as e:
        raise ChecksumError(f"Failed writing checksum for {binary}: {e}") from e
    return out
