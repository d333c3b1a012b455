"""
manifest.py

Responsibility: Build the ordered list of files that goes into one archive.

Rules:
- Literal entries (docs, binary, checksum) come first, in config order.
- Scanned directory entries follow, in sorted relative-path order so two runs
  over the same tree produce the same manifest.
- Destination paths are unique; a clash fails before anything is written.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator

from relbuild.config import ProjectConfig

DOC_PERM = 0o644
EXEC_PERM = 0o755


class ManifestError(ValueError):
    pass


@dataclass(frozen=True)
class ManifestEntry:
    src: Path
    dst: str
    perm: int | None = None


class Manifest:
    """Ordered manifest entries keyed by unique destination path."""

    def __init__(self, entries: Iterable[ManifestEntry] = ()) -> None:
        self._entries: list[ManifestEntry] = []
        self._seen: dict[str, Path] = {}
        for entry in entries:
            self.add(entry)

    def add(self, entry: ManifestEntry) -> None:
        if entry.dst in self._seen:
            raise ManifestError(
                f"Duplicate archive path {entry.dst!r}: {self._seen[entry.dst]} and {entry.src}"
            )
        self._seen[entry.dst] = entry.src
        self._entries.append(entry)

    def __iter__(self) -> Iterator[ManifestEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def destinations(self) -> list[str]:
        return [e.dst for e in self._entries]


def list_files(root: Path, directory: str) -> list[str]:
    """
    Return regular files under root/directory as root-relative POSIX paths,
    sorted. A missing directory yields an empty list.
    """
    base = root / directory
    if not base.is_dir():
        return []
    files: list[str] = []
    for dirpath, _dirs, filenames in os.walk(base):
        for name in filenames:
            path = Path(dirpath) / name
            if path.is_file() and not path.is_symlink():
                files.append(path.relative_to(root).as_posix())
    files.sort()
    return files


def _doc_entries(config: ProjectConfig, root: Path, prefix: str, perm: int | None) -> list[ManifestEntry]:
    return [ManifestEntry(src=root / d.src, dst=f"{prefix}/{d.dst}", perm=perm) for d in config.docs]


def _flat_entries(config: ProjectConfig, root: Path, prefix: str, perm: int | None) -> list[ManifestEntry]:
    return [
        ManifestEntry(src=root / rel, dst=f"{prefix}/{Path(rel).name}", perm=perm)
        for directory in config.flat_dirs
        for rel in list_files(root, directory)
    ]


def archive_manifest(
    config: ProjectConfig,
    root: Path,
    *,
    name: str,
    binary: str,
    include_tree_dirs: bool = True,
) -> Manifest:
    """
    Manifest for the tar.gz and zip formats; everything lives under `name/`.

    The zip layout skips `tree_dirs` (service files and the like are of no use
    on the platforms that receive zips).
    """
    manifest = Manifest(_doc_entries(config, root, name, None))
    manifest.add(ManifestEntry(src=root / binary, dst=f"{name}/{binary}"))
    manifest.add(ManifestEntry(src=root / f"{binary}.md5", dst=f"{name}/{binary}.md5"))
    if include_tree_dirs:
        for directory in config.tree_dirs:
            for rel in list_files(root, directory):
                manifest.add(ManifestEntry(src=root / rel, dst=f"{name}/{rel}"))
    for entry in _flat_entries(config, root, name, None):
        manifest.add(entry)
    return manifest


def deb_manifest(config: ProjectConfig, root: Path, *, binary: str) -> Manifest:
    """
    Manifest for the Debian tree; destinations are relative to the tree root.
    """
    doc_dir = config.deb_doc_dir.strip("/")
    manifest = Manifest(_doc_entries(config, root, doc_dir, DOC_PERM))
    manifest.add(ManifestEntry(src=root / binary, dst=f"{config.deb.bin_dir.strip('/')}/{binary}", perm=EXEC_PERM))
    for entry in _flat_entries(config, root, doc_dir, DOC_PERM):
        manifest.add(entry)
    return manifest
