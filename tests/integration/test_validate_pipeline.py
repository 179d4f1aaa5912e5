"""
export-validator — end-to-end validation pipeline contracts

File: tests/integration/test_validate_pipeline.py
Last updated: 2026-10-18

Purpose
- Drive ``ExportValidator`` over real files on disk through several export
  revisions and check the persisted version history.

What this test file should cover
- Initial, minor, patch and major bumps across successive runs.
- Per-file decode failures become warnings without aborting the run.
- Archives, export-type profiles, explicit snapshot files and the CI gate.
- Concurrent runs against one output root publish distinct successive versions.
"""

from __future__ import annotations

import json
import threading
import zipfile
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from export_validator.config import default_config, merge_config
from export_validator.domain.models import ChangeSeverity, ChangeStatus
from export_validator.domain.schema_types import NUMBER, ObjectType, StringFormat, string
from export_validator.errors import InputError
from export_validator.validator import ExportValidator

pytestmark = pytest.mark.integration

_USERS = [{"id": 1, "email": "a@x.com"}, {"id": 2, "email": "b@x.com"}]


def _clock() -> Callable[[], datetime]:
    state = {"now": datetime(2026, 5, 1, tzinfo=UTC)}

    def tick() -> datetime:
        state["now"] += timedelta(seconds=1)
        return state["now"]

    return tick


def _config(out: Path, **overlay: Any) -> dict[str, Any]:
    base = merge_config(default_config(), {"output": {"root": str(out)}})
    return merge_config(base, overlay)


def _write_json(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")


@pytest.fixture
def export(tmp_path: Path) -> Path:
    root = tmp_path / "export"
    _write_json(root / "users.json", _USERS)
    (root / "media").mkdir()
    (root / "media" / "photo.jpg").write_bytes(b"\xff\xd8")
    (root / "settings.yaml").write_text("theme: dark\nnotify: true\n", encoding="utf-8")
    return root


def test_successive_runs_follow_semantic_versioning(export: Path, tmp_path: Path) -> None:
    out = tmp_path / "out"
    validator = ExportValidator(_config(out), clock=_clock())

    initial = validator.validate(export)
    assert initial.metadata is not None
    assert initial.metadata.version == "1.0.0"
    assert initial.changes == ()
    assert sorted(initial.snapshot.schemas) == ["settings", "users"]
    users = initial.snapshot.schemas["users"]
    assert isinstance(users, ObjectType)
    assert users.get("email") == string(StringFormat.EMAIL)

    _write_json(
        export / "users.json",
        [{"id": 1, "email": "a@x.com", "nick": "ada"}, {"id": 2, "email": "b@x.com"}],
    )
    minor = validator.validate(export)
    assert minor.metadata is not None
    assert minor.metadata.version == "1.1.0"
    assert minor.previous_version == "1.0.0"
    assert "users.nick" in {change.path for change in minor.changes}

    unchanged = validator.validate(export)
    assert unchanged.metadata is not None
    assert unchanged.changes == ()
    assert unchanged.metadata.version == "1.1.1"

    _write_json(export / "users.json", [{"id": "1", "nick": "ada"}, {"id": "2"}])
    major = validator.validate(export)
    assert major.metadata is not None
    assert major.metadata.version == "2.0.0"
    assert major.metadata.breaking is True
    breaking = {c.path for c in major.changes if c.severity is ChangeSeverity.BREAKING}
    assert {"users.id", "users.email"} <= breaking

    history = [item.version for item in validator.history()]
    assert history == ["2.0.0", "1.1.1", "1.1.0", "1.0.0"]

    export_dir = out / "generic-export"
    assert (export_dir / "latest").resolve() == (export_dir / "v2.0.0").resolve()
    changes_file = json.loads((export_dir / "v2.0.0" / "changes.json").read_text("utf-8"))
    assert changes_file["summary"]["breaking"] >= 2

    compared = validator.compare("1.0.0", "2.0.0")
    assert any(c.path == "users.email" and c.status is ChangeStatus.REMOVED for c in compared)


def test_undecodable_files_become_warnings(export: Path, tmp_path: Path) -> None:
    (export / "broken.json").write_text("{", encoding="utf-8")
    (export / "users.csv").write_text("id\n1\n", encoding="utf-8")

    result = ExportValidator(_config(tmp_path / "out")).validate(export)

    assert result.persisted
    reasons = {warning.path: warning.reason for warning in result.warnings}
    assert set(reasons) == {"export/broken.json", "export/users.json"}
    assert "already taken" in reasons["export/users.json"]
    assert "broken" not in result.snapshot.schemas
    assert result.snapshot.schemas["users"] == ObjectType((("id", NUMBER),))
    assert [item["path"] for item in result.to_dict()["warnings"]] == sorted(reasons)


def test_ci_gate_blocks_persistence(export: Path, tmp_path: Path) -> None:
    out = tmp_path / "out"
    ExportValidator(_config(out)).validate(export)
    _write_json(export / "users.json", [{"id": 1, "email": "a@x.com", "age": 3}])

    gated = ExportValidator(_config(out, ci={"fail_on": "minor"})).validate(export)

    assert gated.gate_failed
    assert not gated.persisted
    assert gated.report is None
    assert [item.version for item in ExportValidator(_config(out)).history()] == ["1.0.0"]


def test_twitter_archive_zip_uses_its_profile(tmp_path: Path) -> None:
    archive = tmp_path / "twitter-2026.zip"
    with zipfile.ZipFile(archive, "w") as bundle:
        bundle.writestr(
            "data/tweets.js",
            'window.YTD.tweets.part0 = [{"tweet": {"id": "1", "full_text": "hi"}}]',
        )
        bundle.writestr("data/manifest.txt", "archive")

    config = _config(tmp_path / "out", output={"export_type": "twitter-archive"})
    result = ExportValidator(config).validate(archive)

    assert result.persisted
    assert result.snapshot.structure.name == "twitter-2026"
    assert list(result.snapshot.schemas) == ["data_tweets"]
    assert (tmp_path / "out" / "twitter-archive" / "v1.0.0" / "schemas").is_dir()
    assert (
        tmp_path / "out" / "twitter-archive" / "v1.0.0" / "schemas" / "data_tweets.type.json"
    ).is_file()


def test_explicit_snapshot_file_is_the_baseline(export: Path, tmp_path: Path) -> None:
    out = tmp_path / "out"
    validator = ExportValidator(_config(out))
    validator.validate(export)
    baseline = out / "generic-export" / "v1.0.0" / "structure.snapshot.json"
    _write_json(export / "users.json", [{"id": 1}])
    validator.validate(export)

    _write_json(export / "users.json", _USERS)
    result = validator.validate(export, snapshot_path=baseline)

    assert result.previous_version == "1.0.0"
    assert all(change.path != "users.email" for change in result.changes)
    assert result.metadata is not None
    assert result.metadata.previous_version == "2.0.0"


def test_invalid_snapshot_file_is_an_input_error(export: Path, tmp_path: Path) -> None:
    bogus = tmp_path / "bogus.json"
    bogus.write_text('{"structure": 1}', encoding="utf-8")

    with pytest.raises(InputError, match="invalid snapshot"):
        ExportValidator(_config(tmp_path / "out")).validate(export, snapshot_path=bogus)


def test_concurrent_runs_publish_successive_versions(tmp_path: Path) -> None:
    first = tmp_path / "a" / "export"
    second = tmp_path / "b" / "export"
    _write_json(first / "users.json", _USERS)
    _write_json(second / "users.json", [{**user, "age": 30} for user in _USERS])
    out = tmp_path / "out"
    barrier = threading.Barrier(2)
    results: dict[str, Any] = {}
    errors: list[Exception] = []

    def run(path: Path) -> None:
        validator = ExportValidator(_config(out), clock=_clock())
        barrier.wait()
        try:
            results[path.parent.name] = validator.validate(path)
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=run, args=(path,)) for path in (first, second)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    metadata = sorted(
        (result.metadata for result in results.values()), key=lambda item: item.version
    )
    assert [item.previous_version for item in metadata] == [None, "1.0.0"]
    assert metadata[0].version == "1.0.0"
    assert metadata[1].version in {"1.1.0", "2.0.0"}
    later = next(result for result in results.values() if result.previous_version == "1.0.0")
    assert later.changes
    history = ExportValidator(_config(out)).history()
    assert [item.version for item in history] == [metadata[1].version, "1.0.0"]
