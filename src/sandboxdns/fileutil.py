from __future__ import annotations

import os
import tempfile

DIR_PERM = 0o755
FILE_PERM = 0o644


def create_base_path(directory: str) -> None:
    """Brief: Create directory (and parents) with DIR_PERM when missing.

    Inputs:
      - directory: Directory path; an empty string is treated as the cwd.

    Outputs:
      - None
    """

    if not directory:
        return
    os.makedirs(directory, mode=DIR_PERM, exist_ok=True)


def create_file(path: str) -> None:
    """Brief: Create (or truncate) an empty file, creating its parent directory.

    Inputs:
      - path: File path.

    Outputs:
      - None
    """

    create_base_path(os.path.dirname(path))
    with open(path, "wb"):
        pass


def write_file(path: str, data: bytes, perm: int = FILE_PERM) -> None:
    """Brief: Write data to path, truncating it, with perm applied on creation."""

    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, perm)
    with os.fdopen(fd, "wb") as f:
        f.write(data)


def copy_file(src: str, dst: str) -> None:
    """Brief: Copy src content into dst with FILE_PERM.

    Inputs:
      - src: Source path; FileNotFoundError propagates when missing.
      - dst: Destination path.

    Outputs:
      - None
    """

    with open(src, "rb") as f:
        data = f.read()
    write_file(dst, data)


def atomic_write_file(path: str, data: bytes, perm: int = FILE_PERM) -> None:
    """Brief: Replace path with data via a directory-local temp file and rename.

    Inputs:
      - path: Destination file path.
      - data: Bytes to write.
      - perm: Permission bits applied to the temp file before the rename.

    Outputs:
      - None; on failure the temp file is removed and the error propagates.
    """

    directory = os.path.dirname(path) or "."
    fd, tmp_name = tempfile.mkstemp(dir=directory, prefix="hash")
    try:
        with os.fdopen(fd, "wb") as f:
            os.fchmod(f.fileno(), perm)
            f.write(data)
        os.rename(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
