"""
toolchain.py

Responsibility: Isolate all invocation of external tools (go, git, golint).

This module must be the only place that:
- Spawns subprocesses
- Builds the environment handed to the compiler
- Interprets compiler/vet/lint output

Target OS, architecture and search paths travel in an explicit `BuildEnv`
value; the process environment is snapshotted once and never mutated.
"""

from __future__ import annotations

import logging
import os
import platform
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Sequence

log = logging.getLogger(__name__)

KNOWN_ARCHES = ("386", "amd64", "arm")

_GO_VERSION_RE = re.compile(r"go version go(\d+\.\d+)")
_VET_FALSE_ALARMS = (
    re.compile(r"composite literal uses unkeyed fields"),
    re.compile(r"exit status 1"),
)
_LINT_COMMENT_POLICY = re.compile(r"exported (function|method|const|type|var) [^\s]+ should have comment")


class ToolchainError(RuntimeError):
    def __init__(self, message: str, *, output: str = "", returncode: int | None = None) -> None:
        super().__init__(message)
        self.output = output
        self.returncode = returncode


@dataclass(frozen=True)
class BuildEnv:
    """Compiler configuration threaded into every toolchain call."""

    goos: str
    goarch: str
    search_paths: tuple[str, ...] = ()
    bin_dir: str | None = None
    base: Mapping[str, str] = field(default_factory=dict)

    def environ(self) -> dict[str, str]:
        env = dict(self.base)
        env["GOOS"] = self.goos
        env["GOARCH"] = self.goarch
        gopath = [p for p in (*self.search_paths, env.get("GOPATH", "")) if p]
        if gopath:
            env["GOPATH"] = os.pathsep.join(gopath)
        if self.bin_dir:
            env["GOBIN"] = self.bin_dir
        return env


def host_goos() -> str:
    return platform.system().lower() or "linux"


def host_goarch() -> str:
    machine = platform.machine().lower()
    return {
        "x86_64": "amd64",
        "amd64": "amd64",
        "i386": "386",
        "i686": "386",
        "x86": "386",
        "aarch64": "arm64",
        "arm64": "arm64",
        "armv6l": "arm",
        "armv7l": "arm",
    }.get(machine, machine or "amd64")


def run_output(cmd: Sequence[str], *, cwd: Path, env: Mapping[str, str] | None = None) -> str:
    """
    Run a command and return its combined stdout/stderr, stripped.

    Raises ToolchainError on a non-zero exit or when the tool is missing; the
    error carries the captured output and return code.
    """
    try:
        proc = subprocess.run(
            list(cmd),
            cwd=str(cwd),
            env=dict(env) if env is not None else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
    except OSError as e:
        raise ToolchainError(f"Cannot run {cmd[0]}: {e}") from e
    output = (proc.stdout or "").strip()
    if proc.returncode != 0:
        raise ToolchainError(
            f"Command failed: {' '.join(cmd)}\n\n{output}",
            output=output,
            returncode=proc.returncode,
        )
    return output


def run_print(cmd: Sequence[str], *, cwd: Path, env: Mapping[str, str] | None = None) -> None:
    """
    Run a command with output passed straight through, raising ToolchainError on failure.
    """
    log.info("%s", " ".join(cmd))
    try:
        subprocess.run(list(cmd), cwd=str(cwd), env=dict(env) if env is not None else None, check=True)
    except subprocess.CalledProcessError as e:
        raise ToolchainError(f"Command failed: {' '.join(cmd)}", returncode=e.returncode) from e
    except OSError as e:
        raise ToolchainError(f"Cannot run {cmd[0]}: {e}") from e


def parse_toolchain_version(output: str) -> tuple[int, int] | None:
    """
    Extract (major, minor) from `go version` output, or None if it does not match.
    """
    m = _GO_VERSION_RE.search(output)
    if not m:
        return None
    major, minor = m.group(1).split(".")
    return int(major), int(minor)


def _parse_minimum(minimum: str) -> tuple[int, int]:
    parts = [int(p) for p in minimum.split(".")]
    return parts[0], parts[1] if len(parts) > 1 else 0


def check_toolchain_version(minimum: str, *, cwd: Path, env: BuildEnv) -> tuple[int, int] | None:
    """
    Refuse to continue when the compiler reports a version below `minimum`.

    An unrecognised version string is allowed through with a warning.
    """
    output = run_output(["go", "version"], cwd=cwd, env=env.environ())
    found = parse_toolchain_version(output)
    if found is None:
        log.warning("*** Unknown Go version %r.\n*** This isn't known to work, proceed at your own risk.", output)
        return None
    required = _parse_minimum(minimum)
    if found < required:
        raise ToolchainError(
            "Go version %d.%d is less than required %d.%d; not proceeding." % (found + required)
        )
    return found


def _build_args(verb: str, *, ldflags: str, tags: Sequence[str], race: bool) -> list[str]:
    args = ["go", verb, "-ldflags", ldflags]
    if tags:
        args += ["-tags", ",".join(tags)]
    if race:
        args.append("-race")
    return args


def compile_binary(
    env: BuildEnv,
    package: str,
    *,
    output: Path,
    ldflags: str,
    tags: Sequence[str] = (),
    race: bool = False,
    cwd: Path,
) -> Path:
    args = _build_args("build", ldflags=ldflags, tags=tags, race=race)
    args += ["-o", str(output), package]
    run_print(args, cwd=cwd, env=env.environ())
    if not output.is_file():
        raise ToolchainError(f"Compiler reported success but {output} was not produced")
    return output


def install(
    env: BuildEnv,
    package: str,
    *,
    ldflags: str,
    tags: Sequence[str] = (),
    race: bool = False,
    cwd: Path,
) -> None:
    args = _build_args("install", ldflags=ldflags, tags=tags, race=race)
    args.insert(2, "-v")
    args.append(package)
    run_print(args, cwd=cwd, env=env.environ())


def run_tests(env: BuildEnv, package: str, *, cwd: Path, timeout: str = "60s") -> None:
    run_print(["go", "test", "-short", "-timeout", timeout, package], cwd=cwd, env=env.environ())


def filter_vet_output(output: str) -> list[str]:
    return [
        line
        for line in output.splitlines()
        if not any(rx.search(line) for rx in _VET_FALSE_ALARMS)
    ]


def filter_lint_output(output: str) -> list[str]:
    return [line for line in output.splitlines() if not _LINT_COMMENT_POLICY.search(line)]


def vet(env: BuildEnv, package: str, *, cwd: Path) -> list[str]:
    """
    Run `go vet` and log the findings that survive filtering. Never fails the build.
    """
    try:
        output = run_output(["go", "vet", package], cwd=cwd, env=env.environ())
    except ToolchainError as e:
        if e.returncode in (None, 3) or 'no such tool "vet"' in e.output:
            log.info('- No go vet, no vetting. Try "go get -u golang.org/x/tools/cmd/vet".')
            return []
        output = e.output
    lines = filter_vet_output(output)
    for line in lines:
        log.info("%s", line)
    return lines


def lint(package: str, *, cwd: Path) -> list[str]:
    """
    Run `golint` and log the findings that survive filtering. Never fails the build.
    """
    try:
        output = run_output(["golint", package], cwd=cwd)
    except ToolchainError:
        log.info('- No golint, not linting. Try "go get -u github.com/golang/lint/golint".')
        return []
    lines = filter_lint_output(output)
    for line in lines:
        log.info("%s", line)
    return lines
