"""Atomic file writes using temporary files + replace."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path


def read_text_exact(path: Path) -> str:
    """Read UTF-8 text without newline translation so rewrites stay byte-exact."""

    return path.read_bytes().decode("utf-8")


def write_text_atomic(path: Path, text: str) -> None:
    """Write ``text`` as UTF-8 bytes; the target is replaced only on success."""

    path.parent.mkdir(parents=True, exist_ok=True)

    fd, raw_tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f"{path.name}.",
        suffix=".tmp",
    )
    os.close(fd)
    tmp_path = Path(raw_tmp_path)

    try:
        tmp_path.write_bytes(text.encode("utf-8"))
        if path.exists():
            os.chmod(tmp_path, path.stat().st_mode & 0o777)
        tmp_path.replace(path)
    except Exception:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)
        raise
