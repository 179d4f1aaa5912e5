from __future__ import annotations

import threading
from pathlib import Path

import pytest

from export_validator.errors import PersistenceError
from export_validator.persistence import LocalFileStore, SnapshotStore


def test_local_store_satisfies_protocol(tmp_path: Path) -> None:
    assert isinstance(LocalFileStore(tmp_path), SnapshotStore)


def test_write_then_read_creates_parents(tmp_path: Path) -> None:
    store = LocalFileStore(tmp_path)

    store.write("exp/v1.0.0/schemas/users.type.json", b"{}")

    assert store.exists("exp/v1.0.0/schemas/users.type.json")
    assert store.read("exp/v1.0.0/schemas/users.type.json") == b"{}"
    assert not list((tmp_path / "exp" / "v1.0.0" / "schemas").glob("*.tmp"))


def test_write_replaces_existing_content(tmp_path: Path) -> None:
    store = LocalFileStore(tmp_path)
    store.write("versions.json", b"old")
    store.write("versions.json", b"new")
    assert (tmp_path / "versions.json").read_bytes() == b"new"


def test_missing_file_raises_file_not_found(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        LocalFileStore(tmp_path).read("nope.json")


@pytest.mark.parametrize("path", ["../escape.json", "/etc/passwd", "a/../../b"])
def test_paths_outside_the_root_are_rejected(tmp_path: Path, path: str) -> None:
    store = LocalFileStore(tmp_path / "root")
    with pytest.raises(PersistenceError):
        store.write(path, b"x")


def test_symlinked_escape_is_rejected(tmp_path: Path) -> None:
    root = tmp_path / "root"
    outside = tmp_path / "outside"
    root.mkdir()
    outside.mkdir()
    (root / "link").symlink_to(outside, target_is_directory=True)

    with pytest.raises(PersistenceError):
        LocalFileStore(root).write("link/file.json", b"x")


def test_delete_tree_removes_directories_and_refuses_the_root(tmp_path: Path) -> None:
    store = LocalFileStore(tmp_path)
    store.write("exp/v1.0.0/metadata.json", b"{}")

    store.delete_tree("exp/v1.0.0")
    store.delete_tree("exp/v9.9.9")

    assert not (tmp_path / "exp" / "v1.0.0").exists()
    with pytest.raises(PersistenceError):
        store.delete_tree(".")


def test_point_symlink_repoints_atomically(tmp_path: Path) -> None:
    store = LocalFileStore(tmp_path)
    store.write("exp/v1.0.0/metadata.json", b"1")
    store.write("exp/v1.1.0/metadata.json", b"2")

    store.point_symlink("exp/latest", "v1.0.0")
    store.point_symlink("exp/latest", "v1.1.0")

    link = tmp_path / "exp" / "latest"
    assert link.is_symlink()
    assert (link / "metadata.json").read_bytes() == b"2"


def test_lock_serializes_threads(tmp_path: Path) -> None:
    store = LocalFileStore(tmp_path)
    active = 0
    peak = 0
    guard = threading.Lock()

    def worker() -> None:
        nonlocal active, peak
        with store.lock("exp/.lock"):
            with guard:
                active += 1
                peak = max(peak, active)
            threading.Event().wait(0.01)
            with guard:
                active -= 1

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert peak == 1
    assert (tmp_path / "exp" / ".lock").exists()
