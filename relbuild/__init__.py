"""
relbuild package

This package implements a release builder as a CLI-first utility.

Key responsibilities are split across modules:
- `config.py`: parse `release.yaml` into a structured configuration
- `toolchain.py`: isolated external tool invocation (go, git, golint)
- `version.py`: resolve the canonical version string
- `metadata.py`: build metadata and linker flags
- `checksum.py`: the `.md5` sidecar for self-upgrade verification
- `manifest.py`: ordered, duplicate-free archive manifests
- `archive.py`: tar.gz, zip and Debian tree assembly
- `commands.py`: the named commands and their registry
- `cli.py`: CLI entrypoint and orchestration
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
