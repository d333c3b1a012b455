"""
config.py

Responsibility: Load and parse the project's `release.yaml` into a typed model.

This implementation intentionally stays conservative:
- The file is optional; every key has a default.
- Values are validated at the boundary so later stages can trust them.

The CLI and commands should treat the parsed result as the single source of truth.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "release.yaml"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class DocFile:
    """A documentation file shipped with every archive."""

    src: str
    dst: str


@dataclass(frozen=True)
class DebConfig:
    """Fields substituted into the Debian control and changelog templates."""

    maintainer: str = "Release Management <release@example.invalid>"
    description: str = ""
    depends: str = "libc6"
    changelog_author: str = "Release Management <release@example.invalid>"
    doc_dir: str = ""
    bin_dir: str = "usr/bin"


DEFAULT_DOCS = (
    DocFile(src="README.md", dst="README.txt"),
    DocFile(src="LICENSE", dst="LICENSE.txt"),
    DocFile(src="AUTHORS", dst="AUTHORS.txt"),
)


@dataclass(frozen=True)
class ProjectConfig:
    """Parsed release configuration for a single binary target."""

    product: str
    binary: str = ""
    package: str = ""
    install_package: str = "./cmd/..."
    min_toolchain: str = "1.3"
    docs: tuple[DocFile, ...] = DEFAULT_DOCS
    tree_dirs: tuple[str, ...] = ("etc",)
    flat_dirs: tuple[str, ...] = ("extra",)
    check_packages: tuple[str, ...] = ()
    search_paths: tuple[str, ...] = ()
    deb: DebConfig = field(default_factory=DebConfig)

    @property
    def deb_doc_dir(self) -> str:
        return self.deb.doc_dir or f"usr/share/doc/{self.product}"


def _str_list(data: dict[str, Any], key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = data.get(key)
    if raw is None:
        return default
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        raise ConfigError(f"`{key}` must be a string or a list of strings.")
    return tuple(str(v).strip() for v in raw if str(v).strip())


def _parse_docs(raw: Any) -> tuple[DocFile, ...]:
    if raw is None:
        return DEFAULT_DOCS
    if not isinstance(raw, list):
        raise ConfigError("`docs` must be a list of {src, dst} mappings.")
    docs: list[DocFile] = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("src"):
            raise ConfigError(f"Invalid `docs` entry: {item!r}")
        src = str(item["src"]).strip()
        docs.append(DocFile(src=src, dst=str(item.get("dst") or Path(src).name).strip()))
    return tuple(docs)


def _parse_deb(raw: Any) -> DebConfig:
    if raw is None:
        return DebConfig()
    if not isinstance(raw, dict):
        raise ConfigError("`deb` must be an object/mapping when provided.")
    known = DebConfig.__dataclass_fields__
    unknown = sorted(set(raw) - set(known))
    if unknown:
        raise ConfigError(f"Unknown `deb` keys: {', '.join(map(str, unknown))}")
    return DebConfig(**{k: str(v).strip() for k, v in raw.items() if v is not None})


def parse_config(data: dict[str, Any], *, default_product: str = "") -> ProjectConfig:
    """
    Build a `ProjectConfig` from an already-loaded mapping.

    Recognised keys:
    - product: str (defaults to `default_product`)
    - binary, package, install_package, min_toolchain: str
    - docs: list of {src, dst}
    - tree_dirs, flat_dirs, check_packages, search_paths: list of str
    - deb: mapping of `DebConfig` fields
    """
    product = str(data.get("product") or default_product).strip()
    if not product:
        raise ConfigError("Config must define `product`.")

    raw_min = data.get("min_toolchain") or "1.3"
    if isinstance(raw_min, float):
        # YAML reads 1.10 as the float 1.1
        raise ConfigError(f"`min_toolchain` must be a quoted string (e.g. \"1.10\"), got {raw_min!r}")
    min_toolchain = str(raw_min).strip()
    if not all(part.isdigit() for part in min_toolchain.split(".")):
        raise ConfigError(f"`min_toolchain` must look like <major>.<minor>, got {min_toolchain!r}")

    binary = str(data.get("binary") or product).strip()
    return ProjectConfig(
        product=product,
        binary=binary,
        package=str(data.get("package") or f"./cmd/{binary}").strip(),
        install_package=str(data.get("install_package") or "./cmd/...").strip(),
        min_toolchain=min_toolchain,
        docs=_parse_docs(data.get("docs")),
        tree_dirs=_str_list(data, "tree_dirs", ("etc",)),
        flat_dirs=_str_list(data, "flat_dirs", ("extra",)),
        check_packages=_str_list(data, "check_packages", (f"./cmd/{binary}", "./internal/...")),
        search_paths=_str_list(data, "search_paths", ("Godeps/_workspace",)),
        deb=_parse_deb(data.get("deb")),
    )


def load_config(root: str | Path, config_path: str | Path | None = None) -> ProjectConfig:
    """
    Load `release.yaml` from `root` (or an explicit path).

    A missing default file yields an all-defaults config named after the root
    directory; a missing explicit path is an error.
    """
    root_path = Path(root).resolve()
    path = Path(config_path) if config_path else root_path / CONFIG_FILENAME
    if not path.exists():
        if config_path:
            raise ConfigError(f"Config file does not exist: {path}")
        return parse_config({}, default_product=root_path.name)

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("Config must be a mapping/object at the top level.")
    return parse_config(data, default_product=root_path.name)
