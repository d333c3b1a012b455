import getpass
import socket
from pathlib import Path

import pytest

from relbuild import metadata
from relbuild.metadata import BuildMetadata, build_metadata, render_link_flags
from relbuild.toolchain import ToolchainError


def test_timestamp_from_commit_time(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(metadata, "run_output", lambda cmd, *, cwd, env=None: "1420070400")
    assert metadata.build_stamp(tmp_path) == 1420070400


def test_timestamp_falls_back_to_wall_clock(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def fail(cmd, *, cwd, env=None):
        raise ToolchainError("no git")

    monkeypatch.setattr(metadata, "run_output", fail)
    monkeypatch.setattr(metadata.time, "time", lambda: 1700000000.7)
    assert metadata.build_stamp(tmp_path) == 1700000000


def test_user_spaces_become_hyphens(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(getpass, "getuser", lambda: "Jane Q Builder")
    assert metadata.build_user() == "Jane-Q-Builder"


def test_user_lookup_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    def fail() -> str:
        raise OSError("no user")

    monkeypatch.setattr(getpass, "getuser", fail)
    assert metadata.build_user() == "unknown-user"


def test_host_lookup_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    def fail() -> str:
        raise OSError("no host")

    monkeypatch.setattr(socket, "gethostname", fail)
    assert metadata.build_host() == "unknown-host"


def test_build_metadata_environment_default(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(metadata, "run_output", lambda cmd, *, cwd, env=None: "42")
    meta = build_metadata("v1.0.0", root=tmp_path)
    assert meta.version == "v1.0.0"
    assert meta.timestamp == 42
    assert meta.environment == "default"
    assert build_metadata("v1.0.0", root=tmp_path, environment="ci").environment == "ci"


def test_render_link_flags() -> None:
    meta = BuildMetadata(version="v1.2.3+5-gabcdef0", timestamp=42, user="alice", host="box", environment="default")
    assert render_link_flags(meta) == (
        "-w -X main.Version=v1.2.3+5-gabcdef0 -X main.BuildStamp=42 -X main.BuildUser=alice"
        " -X main.BuildHost=box -X main.BuildEnv=default"
    )


def test_render_link_flags_quotes_values_with_spaces() -> None:
    meta = BuildMetadata(version="v1", timestamp=1, user="bob", host="my box", environment="it's beta")
    flags = render_link_flags(meta)
    assert "-X 'main.BuildHost=my box'" in flags
    assert "-X \"main.BuildEnv=it's beta\"" in flags
    assert "-X main.BuildUser=bob" in flags
    both = BuildMetadata(version="v1", timestamp=1, user="bob", host="h", environment="a 'b' \"c\"")
    assert "-X main.BuildEnv=a-'b'-\"c\"" in render_link_flags(both)
