from __future__ import annotations

from pathlib import Path

import pytest

from export_validator.utils.fs import atomic_write, is_within, temp_directory
from export_validator.utils.hashing import sha256_json, sha256_text


def test_atomic_write_accepts_text_and_bytes(tmp_path: Path) -> None:
    target = tmp_path / "out.json"

    atomic_write(target, "héllo")
    assert target.read_text(encoding="utf-8") == "héllo"

    atomic_write(target, b"bytes")
    assert target.read_bytes() == b"bytes"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["out.json"]


def test_atomic_write_requires_parent_unless_asked(tmp_path: Path) -> None:
    nested = tmp_path / "a" / "b" / "c.txt"
    with pytest.raises(FileNotFoundError):
        atomic_write(nested, "x")

    atomic_write(nested, "x", make_parents=True)
    assert nested.read_text(encoding="utf-8") == "x"


def test_is_within(tmp_path: Path) -> None:
    assert is_within(tmp_path / "a" / "b", tmp_path)
    assert is_within(tmp_path, tmp_path)
    assert not is_within(tmp_path / ".." / "elsewhere", tmp_path)


def test_temp_directory_is_removed_on_exit() -> None:
    with temp_directory() as path:
        (path / "f").write_text("x", encoding="utf-8")
        assert path.is_dir()
    assert not path.exists()


def test_sha256_json_ignores_key_order() -> None:
    assert sha256_json({"a": 1, "b": [1, 2]}) == sha256_json({"b": [1, 2], "a": 1})
    assert sha256_json({"a": 1}) != sha256_json({"a": 2})
    assert len(sha256_text("x")) == 64


def test_failed_atomic_write_keeps_previous_content(tmp_path: Path) -> None:
    target = tmp_path / "versions.json"
    target.write_text("old", encoding="utf-8")

    with pytest.raises(TypeError):
        atomic_write(target, 123)  # type: ignore[arg-type]

    assert target.read_text(encoding="utf-8") == "old"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["versions.json"]
