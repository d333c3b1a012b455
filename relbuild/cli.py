"""
cli.py

Responsibility: CLI entrypoint for relbuild.

High-level flow:
1) Validate the requested command names (unknown names fail before any work)
2) Load `release.yaml` -> `ProjectConfig`
3) Resolve the version once and build the explicit `BuildEnv`
4) Gate on the toolchain version, then run each command in order

This module should orchestrate behavior but keep concerns isolated:
- Configuration: `config.py`
- External tools: `toolchain.py`
- Versioning and metadata: `version.py`, `metadata.py`
- Packaging: `manifest.py`, `archive.py`, `checksum.py`
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from relbuild.archive import ArchiveError
from relbuild.checksum import ChecksumError
from relbuild.commands import COMMANDS, DEFAULT_COMMANDS, BuildContext, CommandError, resolve_commands, run_commands
from relbuild.config import ConfigError, load_config
from relbuild.manifest import ManifestError
from relbuild.toolchain import KNOWN_ARCHES, BuildEnv, ToolchainError, host_goarch, host_goos
from relbuild.version import resolve_version

log = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_USAGE = 2


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        stream=sys.stdout,
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
    )


def _build_context(args: argparse.Namespace) -> BuildContext:
    root = Path(args.root).resolve()
    config = load_config(root, args.config)

    if args.goarch not in KNOWN_ARCHES:
        log.warning("Unknown goarch %r; proceed with caution!", args.goarch)

    env = BuildEnv(
        goos=args.goos,
        goarch=args.goarch,
        search_paths=tuple(str(root / p) for p in config.search_paths),
        base=dict(os.environ),
    )
    version = args.version or resolve_version(root)
    log.debug("Version %s", version)
    return BuildContext(
        root=root,
        config=config,
        env=env,
        version=version,
        environment=os.environ.get("ENVIRONMENT"),
        no_upgrade=bool(args.no_upgrade),
        race=bool(args.race),
    )


def _build_parser() -> argparse.ArgumentParser:
    commands_help = "; ".join(f"{c.name}: {c.help}" for c in COMMANDS.values())
    p = argparse.ArgumentParser(prog="relbuild", description="Release builder: version, compile, checksum, package")
    p.add_argument(
        "commands",
        nargs="*",
        metavar="command",
        help=f"Commands to run in order (default: {' '.join(DEFAULT_COMMANDS)}). {commands_help}",
    )
    p.add_argument("--root", default=".", help="Repository root (default: current directory)")
    p.add_argument("--config", default=None, help="Path to release.yaml (default: <root>/release.yaml)")
    p.add_argument("--goos", default=host_goos(), help="Target operating system")
    p.add_argument("--goarch", default=host_goarch(), help="Target architecture")
    p.add_argument("--no-upgrade", action="store_true", help="Disable upgrade functionality")
    p.add_argument("--version", default=None, help="Set compiled in version string (default: resolved)")
    p.add_argument("--race", action="store_true", help="Use race detector")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return p


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(bool(args.verbose))

    try:
        commands = resolve_commands(args.commands or DEFAULT_COMMANDS)
    except CommandError as e:
        log.error("error: %s", e)
        return EXIT_USAGE

    try:
        ctx = _build_context(args)
        run_commands(ctx, commands)
    except (ConfigError, ToolchainError, ChecksumError, ManifestError, ArchiveError, CommandError) as e:
        log.error("error: %s", e)
        return EXIT_FAILURE
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
