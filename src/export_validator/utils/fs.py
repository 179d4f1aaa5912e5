"""
export-validator — filesystem utilities

File: src/export_validator/utils/fs.py
Last updated: 2026-10-18

Purpose
- Crash-safe replacement of snapshot, schema and manifest files.
- Containment checks used by the snapshot store and zip extraction.
- Scratch directories for extracted archives.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager, suppress
from pathlib import Path

PathLike = str | os.PathLike[str]


def atomic_write(
    path: PathLike,
    data: bytes | str,
    *,
    encoding: str = "utf-8",
    make_parents: bool = False,
) -> None:
    """Replace ``path`` with ``data`` so readers see either the old or the new file.

    The payload is written to a sibling ``.<name>.*.tmp`` file, fsynced and
    renamed over the target. On any failure the temp file is removed and the
    target is left as it was. Without ``make_parents`` the parent directory
    must already exist (``FileNotFoundError`` otherwise).
    """

    target = Path(path)
    if make_parents:
        target.parent.mkdir(parents=True, exist_ok=True)
    directory = target.parent.resolve(strict=True)
    payload = data.encode(encoding) if isinstance(data, str) else data

    with tempfile.NamedTemporaryFile(
        "wb", dir=directory, prefix=f".{target.name}.", suffix=".tmp", delete=False
    ) as scratch:
        staged = Path(scratch.name)
        try:
            scratch.write(payload)
            scratch.flush()
            os.fsync(scratch.fileno())
        except BaseException:
            scratch.close()
            staged.unlink(missing_ok=True)
            raise
    try:
        os.replace(staged, target)
    except BaseException:
        staged.unlink(missing_ok=True)
        raise
    sync_directory(directory)


def sync_directory(directory: Path) -> None:
    """fsync a directory so a completed rename survives power loss (POSIX only)."""

    if os.name == "nt":
        return
    with suppress(OSError):
        fd = os.open(directory, os.O_RDONLY | getattr(os, "O_DIRECTORY", 0))
        try:
            os.fsync(fd)
        finally:
            os.close(fd)


def is_within(child: PathLike, parent: PathLike) -> bool:
    """Whether ``child`` resolves to ``parent`` or somewhere below it.

    Symlinks and ``..`` are resolved first; neither path has to exist.
    """

    return Path(child).resolve().is_relative_to(Path(parent).resolve())


@contextmanager
def temp_directory(prefix: str = "export-validator-") -> Iterator[Path]:
    with tempfile.TemporaryDirectory(prefix=prefix) as scratch:
        yield Path(scratch)


__all__ = ["atomic_write", "is_within", "sync_directory", "temp_directory"]
