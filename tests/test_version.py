from pathlib import Path

import pytest

from relbuild import version
from relbuild.toolchain import ToolchainError
from relbuild.version import FALLBACK_VERSION, normalize_describe, resolve_version


def _describe_returns(monkeypatch: pytest.MonkeyPatch, output: str) -> list[list[str]]:
    calls: list[list[str]] = []

    def fake(cmd, *, cwd, env=None):
        calls.append(list(cmd))
        return output

    monkeypatch.setattr(version, "run_output", fake)
    return calls


def _describe_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake(cmd, *, cwd, env=None):
        raise ToolchainError("fatal: not a git repository", returncode=128)

    monkeypatch.setattr(version, "run_output", fake)


def test_release_file_wins_over_git(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "RELEASE").write_text("  v9.9.9\n", encoding="utf-8")
    calls = _describe_returns(monkeypatch, "v1.0.0-3-gabcdef0")
    assert resolve_version(tmp_path) == "v9.9.9"
    assert calls == []


def test_git_describe_is_normalized(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _describe_returns(monkeypatch, "v1.2.3-5-gabcdef01")
    assert resolve_version(tmp_path) == "v1.2.3+5-gabcdef01"
    assert calls == [["git", "describe", "--always", "--dirty"]]


def test_fallback_when_nothing_available(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _describe_fails(monkeypatch)
    assert resolve_version(tmp_path) == FALLBACK_VERSION == "unknown-dev"


def test_empty_release_file_cascades_to_git(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "RELEASE").write_text("\n  \n", encoding="utf-8")
    _describe_returns(monkeypatch, "v2.0.0")
    assert resolve_version(tmp_path) == "v2.0.0"


def test_release_file_is_not_normalized(tmp_path: Path) -> None:
    (tmp_path / "RELEASE").write_text("v1.2.3-5-gabcdef01\n", encoding="utf-8")
    assert resolve_version(tmp_path) == "v1.2.3-5-gabcdef01"


@pytest.mark.parametrize(
    ("describe", "expected"),
    [
        ("v1.2.3-5-gabcdef01", "v1.2.3+5-gabcdef01"),
        ("v0.10.0-123-g0123456789", "v0.10.0+123-g0123456789"),
        ("v1.2.3-rc.1-17-gdeadbeef", "v1.2.3-rc.1+17-gdeadbeef"),
        ("v1.2.3-5-gabcdef01-dirty", "v1.2.3+5-gabcdef01-dirty"),
        ("v1.2.3", "v1.2.3"),
        ("v1.2.3-dirty", "v1.2.3-dirty"),
        # more than three digits of offset is not a describe suffix
        ("v1.2.3-1234-gabcdef0", "v1.2.3-1234-gabcdef0"),
        # hash too short
        ("v1.2.3-5-gabcd", "v1.2.3-5-gabcd"),
    ],
)
def test_normalize_describe(describe: str, expected: str) -> None:
    assert normalize_describe(describe) == expected


def test_dirty_untagged_tree_passes_through() -> None:
    # `git describe --always --dirty` with no tags: bare short hash plus marker.
    assert normalize_describe("abcdef0-dirty") == "abcdef0-dirty"
    assert normalize_describe("1234567-dirty") == "1234567-dirty"
