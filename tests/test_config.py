from pathlib import Path

import pytest

from relbuild.config import ConfigError, DocFile, load_config


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    root = tmp_path / "myapp"
    root.mkdir()
    config = load_config(root)
    assert config.product == "myapp"
    assert config.binary == "myapp"
    assert config.package == "./cmd/myapp"
    assert config.min_toolchain == "1.3"
    assert [d.dst for d in config.docs] == ["README.txt", "LICENSE.txt", "AUTHORS.txt"]
    assert config.deb_doc_dir == "usr/share/doc/myapp"


def test_yaml_config(tmp_path: Path) -> None:
    (tmp_path / "release.yaml").write_text(
        """
product: syncthing
min_toolchain: "1.4"
docs:
  - src: README.md
    dst: README.txt
  - src: NOTICE
tree_dirs: etc
flat_dirs: [extra, contrib]
deb:
  maintainer: Release Management <release@example.org>
  description: Continuous file synchronization
""",
        encoding="utf-8",
    )
    config = load_config(tmp_path)
    assert config.product == "syncthing"
    assert config.min_toolchain == "1.4"
    assert config.docs == (DocFile("README.md", "README.txt"), DocFile("NOTICE", "NOTICE"))
    assert config.tree_dirs == ("etc",)
    assert config.flat_dirs == ("extra", "contrib")
    assert config.deb.maintainer == "Release Management <release@example.org>"
    assert config.deb.depends == "libc6"


@pytest.mark.parametrize(
    "text",
    [
        "- just\n- a list\n",
        "product: x\nmin_toolchain: one.two\n",
        "product: x\ndeb: [1, 2]\n",
        "product: x\ndeb:\n  colour: red\n",
        "product: x\ndocs: README.md\n",
        "product: [unclosed\n",
    ],
)
def test_invalid_config(tmp_path: Path, text: str) -> None:
    (tmp_path / "release.yaml").write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_unquoted_min_toolchain_is_rejected(tmp_path: Path) -> None:
    (tmp_path / "release.yaml").write_text("product: x\nmin_toolchain: 1.10\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="quoted"):
        load_config(tmp_path)


def test_quoted_min_toolchain_keeps_minor(tmp_path: Path) -> None:
    (tmp_path / "release.yaml").write_text('product: x\nmin_toolchain: "1.10"\n', encoding="utf-8")
    assert load_config(tmp_path).min_toolchain == "1.10"


def test_explicit_missing_path_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path, tmp_path / "nope.yaml")
