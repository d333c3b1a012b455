import hashlib
from pathlib import Path

import pytest

from relbuild.checksum import ChecksumError, write_checksum


def test_checksum_sidecar_matches_reference(tmp_path: Path) -> None:
    binary = tmp_path / "app"
    binary.write_bytes(b"hello")
    sidecar = write_checksum(binary)
    assert sidecar == tmp_path / "app.md5"
    assert sidecar.read_bytes() == b"5d41402abc4b2a76b9719d911017c592\n"


def test_checksum_is_idempotent(tmp_path: Path) -> None:
    binary = tmp_path / "app.exe"
    payload = bytes(range(256)) * 1000
    binary.write_bytes(payload)
    first = write_checksum(binary).read_bytes()
    second = write_checksum(binary).read_bytes()
    assert first == second
    assert first.decode("ascii").strip() == hashlib.md5(payload).hexdigest()
    assert (tmp_path / "app.exe.md5").exists()


def test_missing_binary_is_fatal(tmp_path: Path) -> None:
    with pytest.raises(ChecksumError):
        write_checksum(tmp_path / "missing")
    assert not (tmp_path / "missing.md5").exists()
