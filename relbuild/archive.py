"""
archive.py

Responsibility: Turn a `Manifest` into a release artifact.

Formats:
- tar.gz: headers carry the source file's own mode bits and mtime.
- zip: every entry deflated; `.txt` entries get CRLF line endings.
- deb: an unpacked tree (DEBIAN/ control files plus payload) for dpkg-deb.

Entries are opened and written one at a time in manifest order. Any failure
raises ArchiveError and removes the partial output.
"""

from __future__ import annotations

import gzip
import logging
import os
import re
import shutil
import stat
import tarfile
import zipfile
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import format_datetime
from pathlib import Path

from relbuild.manifest import DOC_PERM, Manifest

log = logging.getLogger(__name__)

NO_UPGRADE_SUFFIX = "-noupgrade"
DEB_COMPAT = "9\n"

CONTROL_TEMPLATE = """Package: {{package}}
Architecture: {{arch}}
Depends: {{depends}}
Version: {{version}}
Maintainer: {{maintainer}}
Description: {{description}}
"""

CHANGELOG_TEMPLATE = """{{package}} ({{version}}); urgency=medium

  * Packaging of {{version}}.

 -- {{changelog_author}}  {{date}}
"""

_BARE_LF = re.compile(rb"(?<!\r)\n")
_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


class ArchiveError(RuntimeError):
    pass


def platform_token(goos: str) -> str:
    return "macosx" if goos == "darwin" else goos


def archive_name(product: str, goos: str, goarch: str, version: str, *, no_upgrade: bool = False) -> str:
    """
    `<product>-<platform>-<arch>-<version>`, plus `-noupgrade` for builds without self-upgrade.
    """
    name = f"{product}-{platform_token(goos)}-{goarch}-{version}"
    return name + NO_UPGRADE_SUFFIX if no_upgrade else name


def crlf(data: bytes) -> bytes:
    """Convert bare LF line endings to CRLF; existing CRLF pairs are kept."""
    return _BARE_LF.sub(b"\r\n", data)


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except OSError:
        pass


def write_tar_gz(output: str | Path, manifest: Manifest) -> Path:
    out = Path(output)
    try:
        with open(out, "wb") as fd, gzip.GzipFile(filename="", fileobj=fd, mode="wb", mtime=0) as gz, tarfile.open(
            fileobj=gz, mode="w", format=tarfile.PAX_FORMAT
        ) as tw:
            for entry in manifest:
                with open(entry.src, "rb") as sf:
                    st = os.fstat(sf.fileno())
                    info = tarfile.TarInfo(name=entry.dst)
                    info.size = st.st_size
                    info.mode = stat.S_IMODE(st.st_mode)
                    info.mtime = int(st.st_mtime)
                    tw.addfile(info, sf)
    except (OSError, tarfile.TarError) as e:
        _discard(out)
        raise ArchiveError(f"Failed writing {out}: {e}") from e
    log.info("%s", out)
    return out


def write_zip(output: str | Path, manifest: Manifest) -> Path:
    out = Path(output)
    try:
        with open(out, "wb") as fd, zipfile.ZipFile(fd, mode="w") as zw:
            for entry in manifest:
                info = zipfile.ZipInfo.from_file(entry.src, arcname=entry.dst, strict_timestamps=False)
                info.compress_type = zipfile.ZIP_DEFLATED
                if entry.dst.endswith(".txt"):
                    data = crlf(Path(entry.src).read_bytes())
                    info.file_size = len(data)
                    zw.writestr(info, data)
                else:
                    with open(entry.src, "rb") as sf, zw.open(info, mode="w") as of:
                        shutil.copyfileobj(sf, of)
    except (OSError, zipfile.BadZipFile) as e:
        _discard(out)
        raise ArchiveError(f"Failed writing {out}: {e}") from e
    log.info("%s", out)
    return out


def deb_arch(goarch: str) -> str:
    return "i386" if goarch == "386" else goarch


def deb_version(version: str) -> str:
    return version[1:] if version[:1] in ("v", "V") else version


def changelog_date(timestamp: int) -> str:
    return format_datetime(datetime.fromtimestamp(timestamp, tz=timezone.utc))


def format_description(description: str) -> str:
    """
    First line is the synopsis; further lines become the indented extended description.
    """
    lines = [line.rstrip() for line in description.strip().splitlines()] or [""]
    extended = [f" {line}" if line else " ." for line in lines[1:]]
    return "\n".join([lines[0], *extended])


@dataclass(frozen=True)
class DebControl:
    package: str
    arch: str
    version: str
    maintainer: str
    description: str
    depends: str
    changelog_author: str
    date: str

    @classmethod
    def create(
        cls,
        *,
        package: str,
        goarch: str,
        version: str,
        maintainer: str,
        description: str,
        depends: str,
        changelog_author: str,
        timestamp: int,
    ) -> "DebControl":
        return cls(
            package=package,
            arch=deb_arch(goarch),
            version=deb_version(version),
            maintainer=maintainer,
            description=format_description(description or package),
            depends=depends,
            changelog_author=changelog_author,
            date=changelog_date(timestamp),
        )

    def fields(self) -> dict[str, str]:
        return {
            "package": self.package,
            "arch": self.arch,
            "version": self.version,
            "maintainer": self.maintainer,
            "description": self.description,
            "depends": self.depends,
            "changelog_author": self.changelog_author,
            "date": self.date,
        }


def render_template(template: str, fields: dict[str, str]) -> str:
    """Literal `{{name}}` substitution in one pass; no expressions, no escaping."""

    def fill(m: re.Match[str]) -> str:
        if m.group(1) not in fields:
            raise ArchiveError(f"Unfilled placeholder {m.group(0)} in control template")
        return fields[m.group(1)]

    return _PLACEHOLDER.sub(fill, template)


def _write_file(path: Path, data: bytes, perm: int) -> None:
    path.parent.mkdir(mode=0o755, parents=True, exist_ok=True)
    path.write_bytes(data)
    path.chmod(perm)


def assemble_deb_tree(root_dir: str | Path, manifest: Manifest, control: DebControl) -> Path:
    """
    Materialise a Debian package tree under `root_dir`.

    Payload files are copied to their manifest destinations (relative to
    `root_dir`) with each entry's permission applied explicitly.
    """
    root = Path(root_dir)
    fields = control.fields()
    try:
        control_text = render_template(CONTROL_TEMPLATE, fields)
        changelog_text = render_template(CHANGELOG_TEMPLATE, fields)

        for entry in manifest:
            dst = root / entry.dst
            dst.parent.mkdir(mode=0o755, parents=True, exist_ok=True)
            shutil.copyfile(entry.src, dst)
            dst.chmod(DOC_PERM if entry.perm is None else entry.perm)

        debian = root / "DEBIAN"
        _write_file(debian / "control", control_text.encode("utf-8"), DOC_PERM)
        _write_file(debian / "compat", DEB_COMPAT.encode("ascii"), DOC_PERM)
        _write_file(debian / "changelog", changelog_text.encode("utf-8"), DOC_PERM)
    except OSError as e:
        raise ArchiveError(f"Failed assembling package tree {root}: {e}") from e
    log.info("%s", root)
    return root
