"""
export-validator — snapshot storage backends

File: src/export_validator/persistence/store.py
Last updated: 2026-10-18

Purpose
- Abstract the byte storage used by the version manager so that tests and
  alternative backends can replace the local filesystem.

Functional requirements
- Paths are POSIX-style and relative to the store root; escaping the root is rejected.
- ``write`` is atomic per file (temp file, fsync, ``os.replace``).
- ``lock(name)`` serializes writers across threads (process-local lock) and
  across processes (advisory ``fcntl.flock`` on ``<root>/<name>``).
- I/O failures surface as ``PersistenceError``; a missing file on ``read``
  surfaces as ``FileNotFoundError``.

Non-functional requirements
- POSIX only for the cross-process lock.
"""

from __future__ import annotations

import fcntl
import os
import shutil
import threading
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from export_validator.errors import PersistenceError
from export_validator.utils.fs import atomic_write, is_within

if TYPE_CHECKING:
    from collections.abc import Iterator
    from contextlib import AbstractContextManager


@runtime_checkable
class SnapshotStore(Protocol):
    def read(self, path: str) -> bytes: ...

    def write(self, path: str, data: bytes) -> None: ...

    def exists(self, path: str) -> bool: ...

    def delete_tree(self, path: str) -> None: ...

    def lock(self, name: str) -> AbstractContextManager[None]: ...


class LocalFileStore:
    """Filesystem-backed ``SnapshotStore`` rooted at ``root``."""

    _registry_lock = threading.Lock()
    _thread_locks: dict[str, threading.Lock] = {}

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, path: str) -> Path:
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts:
            raise PersistenceError(f"store path must be relative to the store root: {path!r}")
        target = self._root.joinpath(*relative.parts)
        if not is_within(target, self._root):
            raise PersistenceError(f"store path escapes the store root: {path!r}")
        return target

    def read(self, path: str) -> bytes:
        target = self.resolve(path)
        try:
            return target.read_bytes()
        except FileNotFoundError:
            raise
        except OSError as exc:
            raise PersistenceError(f"failed to read {target}: {exc}") from exc

    def write(self, path: str, data: bytes) -> None:
        target = self.resolve(path)
        try:
            atomic_write(target, data, make_parents=True)
        except OSError as exc:
            raise PersistenceError(f"failed to write {target}: {exc}") from exc

    def exists(self, path: str) -> bool:
        return self.resolve(path).exists()

    def delete_tree(self, path: str) -> None:
        target = self.resolve(path)
        if target.resolve() == self._root.resolve():
            raise PersistenceError("refusing to delete the store root")
        try:
            if target.is_symlink() or target.is_file():
                target.unlink()
            elif target.is_dir():
                shutil.rmtree(target)
        except OSError as exc:
            raise PersistenceError(f"failed to delete {target}: {exc}") from exc

    @contextmanager
    def lock(self, name: str) -> Iterator[None]:
        lock_path = self.resolve(name)
        thread_lock = self._thread_lock(str(lock_path.resolve()))
        with thread_lock:
            try:
                lock_path.parent.mkdir(parents=True, exist_ok=True)
                handle = lock_path.open("a+b")
            except OSError as exc:
                raise PersistenceError(f"failed to open lock file {lock_path}: {exc}") from exc
            with handle:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

    def point_symlink(self, link: str, target: str) -> None:
        """Atomically repoint ``link`` at ``target`` (a name relative to the link's directory)."""

        link_path = self.resolve(link)
        temp_link = link_path.with_name(f".{link_path.name}.tmp")
        try:
            if temp_link.is_symlink() or temp_link.exists():
                temp_link.unlink()
            os.symlink(target, temp_link)
            os.replace(temp_link, link_path)
        except OSError as exc:
            raise PersistenceError(f"failed to update symlink {link_path}: {exc}") from exc

    @classmethod
    def _thread_lock(cls, key: str) -> threading.Lock:
        with cls._registry_lock:
            existing = cls._thread_locks.get(key)
            if existing is None:
                existing = threading.Lock()
                cls._thread_locks[key] = existing
            return existing


__all__ = ["LocalFileStore", "SnapshotStore"]
