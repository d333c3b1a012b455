"""
commands.py

Responsibility: Named build operations and the registry that dispatches them.

Every command receives the same `BuildContext` (resolved once per invocation)
and runs to completion or raises; there is no partial resume. Unknown command
names are rejected before the first command runs.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, replace
from functools import cached_property
from pathlib import Path
from typing import Callable, Iterable

from relbuild import toolchain
from relbuild.archive import DebControl, archive_name, assemble_deb_tree, write_tar_gz, write_zip
from relbuild.checksum import sidecar_path, write_checksum
from relbuild.config import ProjectConfig
from relbuild.manifest import archive_manifest, deb_manifest
from relbuild.metadata import BuildMetadata, build_metadata, render_link_flags
from relbuild.toolchain import BuildEnv

log = logging.getLogger(__name__)

NO_UPGRADE_TAG = "noupgrade"
DEB_ROOT = "deb"


class CommandError(ValueError):
    pass


@dataclass(frozen=True)
class BuildContext:
    """Everything a command needs; built once by the CLI."""

    root: Path
    config: ProjectConfig
    env: BuildEnv
    version: str
    environment: str | None = None
    no_upgrade: bool = False
    race: bool = False

    @cached_property
    def metadata(self) -> BuildMetadata:
        return build_metadata(self.version, root=self.root, environment=self.environment)

    @property
    def ldflags(self) -> str:
        return render_link_flags(self.metadata)

    @property
    def binary_name(self) -> str:
        suffix = ".exe" if self.env.goos == "windows" else ""
        return self.config.binary + suffix

    def tags(self, *, force_no_upgrade: bool = False) -> list[str]:
        return [NO_UPGRADE_TAG] if (self.no_upgrade or force_no_upgrade) else []

    def archive_basename(self) -> str:
        return archive_name(
            self.config.product,
            self.env.goos,
            self.env.goarch,
            self.version,
            no_upgrade=self.no_upgrade,
        )


def _rmr(root: Path, *paths: str) -> None:
    for rel in paths:
        log.info("rm -r %s", rel)
        target = root / rel
        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            elif target.exists() or target.is_symlink():
                target.unlink()
        except OSError as e:
            raise CommandError(f"Failed removing {target}: {e}") from e


def build(ctx: BuildContext, *, force_no_upgrade: bool = False) -> Path:
    binary = ctx.root / ctx.binary_name
    _rmr(ctx.root, binary.name, sidecar_path(binary).name)
    toolchain.compile_binary(
        ctx.env,
        ctx.config.package,
        output=binary,
        ldflags=ctx.ldflags,
        tags=ctx.tags(force_no_upgrade=force_no_upgrade),
        race=ctx.race,
        cwd=ctx.root,
    )
    write_checksum(binary)
    return binary


def install(ctx: BuildContext) -> None:
    env = replace(ctx.env, bin_dir=str(ctx.root / "bin"))
    toolchain.install(
        env,
        ctx.config.install_package,
        ldflags=ctx.ldflags,
        tags=ctx.tags(),
        race=ctx.race,
        cwd=ctx.root,
    )


def run_tests(ctx: BuildContext) -> None:
    toolchain.run_tests(ctx.env, "./...", cwd=ctx.root)


def vet(ctx: BuildContext) -> None:
    for package in ctx.config.check_packages:
        toolchain.vet(ctx.env, package, cwd=ctx.root)


def lint(ctx: BuildContext) -> None:
    for package in ctx.config.check_packages:
        toolchain.lint(package, cwd=ctx.root)


def build_tar(ctx: BuildContext) -> Path:
    name = ctx.archive_basename()
    manifest = archive_manifest(ctx.config, ctx.root, name=name, binary=ctx.binary_name)
    build(ctx)
    return write_tar_gz(ctx.root / f"{name}.tar.gz", manifest)


def build_zip(ctx: BuildContext) -> Path:
    name = ctx.archive_basename()
    manifest = archive_manifest(
        ctx.config, ctx.root, name=name, binary=ctx.binary_name, include_tree_dirs=False
    )
    build(ctx)
    return write_zip(ctx.root / f"{name}.zip", manifest)


def build_deb(ctx: BuildContext) -> Path:
    manifest = deb_manifest(ctx.config, ctx.root, binary=ctx.binary_name)
    _rmr(ctx.root, DEB_ROOT)
    build(ctx, force_no_upgrade=True)
    deb = ctx.config.deb
    control = DebControl.create(
        package=ctx.config.product,
        goarch=ctx.env.goarch,
        version=ctx.version,
        maintainer=deb.maintainer,
        description=deb.description,
        depends=deb.depends,
        changelog_author=deb.changelog_author,
        timestamp=ctx.metadata.timestamp,
    )
    return assemble_deb_tree(ctx.root / DEB_ROOT, manifest, control)


def clean(ctx: BuildContext) -> None:
    _rmr(ctx.root, "bin", "Godeps/_workspace/pkg", "Godeps/_workspace/bin")


@dataclass(frozen=True)
class Command:
    name: str
    help: str
    run: Callable[[BuildContext], object]
    needs_toolchain: bool = True


COMMANDS: dict[str, Command] = {
    c.name: c
    for c in (
        Command("build", "Compile the binary and write its checksum", build),
        Command("install", "Compile and install all commands into ./bin", install),
        Command("test", "Run the short test suite", run_tests),
        Command("vet", "Run go vet over the check packages", vet),
        Command("lint", "Run golint over the check packages", lint, needs_toolchain=False),
        Command("tar", "Build a .tar.gz release archive", build_tar),
        Command("zip", "Build a .zip release archive", build_zip),
        Command("deb", "Build a Debian package tree under ./deb", build_deb),
        Command("clean", "Remove build output directories", clean, needs_toolchain=False),
    )
}

DEFAULT_COMMANDS = ("install", "vet", "lint")


def resolve_commands(names: Iterable[str]) -> list[Command]:
    names = list(names)
    unknown = [n for n in names if n not in COMMANDS]
    if unknown:
        raise CommandError(
            f"Unknown command(s): {', '.join(unknown)} (choose from {', '.join(COMMANDS)})"
        )
    return [COMMANDS[n] for n in names]


def run_commands(ctx: BuildContext, commands: list[Command]) -> None:
    """
    Gate on the toolchain version once, then run each command in order.
    """
    if any(c.needs_toolchain for c in commands):
        toolchain.check_toolchain_version(ctx.config.min_toolchain, cwd=ctx.root, env=ctx.env)
    for command in commands:
        log.debug("Running command %s", command.name)
        command.run(ctx)
