"""
Brief: Tests for sandboxdns.fileutil helpers.

Inputs:
  - None

Outputs:
  - None
"""

import os
import stat

import pytest

from sandboxdns import fileutil


def test_atomic_write_replaces_file_with_mode(tmp_path):
    """
    Brief: atomic_write_file replaces the target and applies the permission bits.

    Inputs:
      - existing target file

    Outputs:
      - None: asserts content, mode and no leftover temp files
    """
    target = tmp_path / "resolv.conf.hash"
    target.write_bytes(b"old")
    fileutil.atomic_write_file(str(target), b"sha256:new", 0o640)

    assert target.read_bytes() == b"sha256:new"
    assert stat.S_IMODE(os.stat(target).st_mode) == 0o640
    assert sorted(os.listdir(tmp_path)) == ["resolv.conf.hash"]


def test_atomic_write_cleans_up_on_failure(tmp_path):
    """Brief: A failed rename removes the temp file and re-raises."""
    target = tmp_path / "adir"
    target.mkdir()
    (target / "child").write_text("x")

    with pytest.raises(OSError):
        fileutil.atomic_write_file(str(target), b"data")
    assert sorted(os.listdir(tmp_path)) == ["adir"]


def test_create_file_and_copy(tmp_path):
    """Brief: create_file makes parents and an empty file; copy_file copies bytes."""
    path = tmp_path / "a" / "b" / "resolv.conf"
    fileutil.create_file(str(path))
    assert path.read_bytes() == b""

    src = tmp_path / "src"
    src.write_bytes(b"nameserver 1.1.1.1\n")
    fileutil.copy_file(str(src), str(path))
    assert path.read_bytes() == b"nameserver 1.1.1.1\n"

    with pytest.raises(FileNotFoundError):
        fileutil.copy_file(str(tmp_path / "missing"), str(path))
