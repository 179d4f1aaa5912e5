"""
export-validator — unit tests for structural change detection

File: tests/unit/detection/test_change_detector.py
Last updated: 2026-10-18

Purpose
- Validate tree and schema diffing, severity classification, and ordering.

What this test file should cover
- Self-diff is empty; removed fields are breaking; added fields are minor.
- Nullable/optional widening vs narrowing, format constraint changes, union widening.
- Tree changes precede schema changes; schemas are visited by name.
"""

from __future__ import annotations

from export_validator.detection import ChangeDetector, aggregate_severity
from export_validator.domain.models import (
    ChangeKind,
    ChangeSeverity,
    ChangeStatus,
    FieldChange,
    FileNode,
    NodeKind,
    Snapshot,
)
from export_validator.domain.schema_types import (
    BOOLEAN,
    NUMBER,
    STRING,
    ArrayType,
    ObjectType,
    SchemaType,
    StringFormat,
    nullable,
    optional,
    string,
    union_of,
)
from export_validator.domain.semver import VersionBump


def _file(name: str, size: int = 1, parent: str = "export") -> FileNode:
    return FileNode(name=name, path=f"{parent}/{name}", kind=NodeKind.FILE, size=size)


def _root(*children: FileNode) -> FileNode:
    return FileNode(name="export", path="export", kind=NodeKind.DIRECTORY, children=children)


def _snapshot(schemas: dict[str, SchemaType], tree: FileNode | None = None) -> Snapshot:
    return Snapshot.build(tree if tree is not None else _root(), schemas)


def _users(**fields: SchemaType) -> ObjectType:
    return ObjectType(tuple(fields.items()))


def _detect(current: Snapshot, previous: Snapshot | None) -> list[FieldChange]:
    return ChangeDetector().detect_changes(current, previous)


def _only(changes: list[FieldChange]) -> FieldChange:
    assert len(changes) == 1, changes
    return changes[0]


def test_no_previous_snapshot_means_no_changes() -> None:
    assert _detect(_snapshot({"users": _users(id=NUMBER)}), None) == []


def test_self_diff_is_empty() -> None:
    snapshot = _snapshot(
        {"users": _users(id=NUMBER, email=nullable(string(StringFormat.EMAIL)))},
        _root(_file("users.json", 10)),
    )
    assert _detect(snapshot, snapshot) == []


def test_removed_field_is_breaking() -> None:
    previous = _snapshot({"users": _users(id=NUMBER, email=string(StringFormat.EMAIL))})
    current = _snapshot({"users": _users(id=NUMBER)})

    change = _only(_detect(current, previous))

    assert change.path == "users.email"
    assert change.status is ChangeStatus.REMOVED
    assert change.severity is ChangeSeverity.BREAKING
    assert change.migration_hint == "Remove field access: users.email"


def test_added_field_is_minor() -> None:
    previous = _snapshot({"users": _users(id=NUMBER)})
    current = _snapshot({"users": _users(id=NUMBER, nick=optional(STRING))})

    change = _only(_detect(current, previous))

    assert change.path == "users.nick"
    assert change.status is ChangeStatus.ADDED
    assert change.severity is ChangeSeverity.MINOR
    assert change.change_kinds == (ChangeKind.OPTIONAL_ADDED,)
    assert change.migration_hint


def test_file_size_change_with_identical_schema_is_a_single_patch() -> None:
    schemas = {"users": _users(id=NUMBER)}
    previous = _snapshot(schemas, _root(_file("users.json", 10)))
    current = _snapshot(schemas, _root(_file("users.json", 12)))

    change = _only(_detect(current, previous))

    assert change.path == "export/users.json"
    assert change.status is ChangeStatus.MODIFIED
    assert change.severity is ChangeSeverity.PATCH
    assert change.previous_type == "file (10 bytes)"
    assert change.current_type == "file (12 bytes)"


def test_nullable_widening_is_minor_and_narrowing_is_breaking() -> None:
    strict = _snapshot({"users": _users(name=STRING)})
    relaxed = _snapshot({"users": _users(name=nullable(STRING))})

    widened = _only(_detect(relaxed, strict))
    narrowed = _only(_detect(strict, relaxed))

    assert widened.change_kinds == (ChangeKind.NULLABLE_ADDED,)
    assert widened.severity is ChangeSeverity.MINOR
    assert narrowed.change_kinds == (ChangeKind.NULLABLE_REMOVED,)
    assert narrowed.severity is ChangeSeverity.BREAKING
    assert narrowed.migration_hint == "Add null check before using users.name"


def test_optional_changes_follow_the_same_widening_rule() -> None:
    required = _snapshot({"users": _users(name=STRING)})
    optional_name = _snapshot({"users": _users(name=optional(STRING))})

    assert _only(_detect(optional_name, required)).severity is ChangeSeverity.MINOR
    assert _only(_detect(required, optional_name)).severity is ChangeSeverity.BREAKING


def test_dropping_a_format_is_patch_and_adding_one_is_breaking() -> None:
    plain = _snapshot({"users": _users(email=STRING)})
    email = _snapshot({"users": _users(email=string(StringFormat.EMAIL))})
    url = _snapshot({"users": _users(email=string(StringFormat.URL))})

    dropped = _only(_detect(plain, email))
    added = _only(_detect(email, plain))
    replaced = _only(_detect(url, email))

    assert dropped.change_kinds == (ChangeKind.CONSTRAINT_CHANGED,)
    assert dropped.severity is ChangeSeverity.PATCH
    assert dropped.migration_hint is None
    assert added.severity is ChangeSeverity.BREAKING
    assert replaced.severity is ChangeSeverity.BREAKING


def test_widening_into_a_union_is_minor() -> None:
    previous = _snapshot({"users": _users(id=NUMBER)})
    current = _snapshot({"users": _users(id=union_of([NUMBER, STRING]))})

    change = _only(_detect(current, previous))

    assert change.change_kinds == (ChangeKind.TYPE_CHANGED,)
    assert change.severity is ChangeSeverity.MINOR


def test_dropping_a_union_member_is_breaking() -> None:
    previous = _snapshot({"users": _users(id=union_of([NUMBER, STRING]))})
    current = _snapshot({"users": _users(id=NUMBER)})

    assert _only(_detect(current, previous)).severity is ChangeSeverity.BREAKING


def test_plain_type_change_is_breaking_with_hint() -> None:
    previous = _snapshot({"users": _users(active=BOOLEAN)})
    current = _snapshot({"users": _users(active=STRING)})

    change = _only(_detect(current, previous))

    assert change.severity is ChangeSeverity.BREAKING
    assert change.change_kinds == (ChangeKind.TYPE_CHANGED,)
    assert change.previous_type == "boolean"
    assert change.current_type == "string"
    assert "update type annotations" in (change.migration_hint or "")


def test_array_elements_are_walked_with_bracket_paths() -> None:
    previous = _snapshot({"users": _users(tags=ArrayType(_users(k=NUMBER, v=STRING)))})
    current = _snapshot({"users": _users(tags=ArrayType(_users(k=NUMBER)))})

    change = _only(_detect(current, previous))

    assert change.path == "users.tags[].v"
    assert change.status is ChangeStatus.REMOVED


def test_union_members_are_paired_by_shape() -> None:
    previous = _snapshot({"feed": union_of([STRING, _users(a=NUMBER)])})
    current = _snapshot({"feed": union_of([STRING, _users(a=NUMBER, b=BOOLEAN)])})

    change = _only(_detect(current, previous))

    assert change.path == "feed.b"
    assert change.status is ChangeStatus.ADDED


def test_schema_additions_and_removals() -> None:
    previous = _snapshot({"a": NUMBER, "b": NUMBER})
    current = _snapshot({"b": NUMBER, "c": NUMBER})

    changes = _detect(current, previous)

    assert [(c.path, c.status, c.severity) for c in changes] == [
        ("a", ChangeStatus.REMOVED, ChangeSeverity.BREAKING),
        ("c", ChangeStatus.ADDED, ChangeSeverity.MINOR),
    ]


def test_tree_changes_come_before_schema_changes() -> None:
    previous = _snapshot(
        {"z": NUMBER, "users": _users(id=NUMBER)},
        _root(_file("a.json"), _file("old.json")),
    )
    current = _snapshot(
        {"users": _users(id=STRING)},
        _root(_file("a.json"), _file("b.json")),
    )

    paths = [change.path for change in _detect(current, previous)]

    assert paths == ["export/b.json", "export/old.json", "users.id", "z"]


def test_kind_mismatch_does_not_descend() -> None:
    directory = FileNode(
        name="data",
        path="export/data",
        kind=NodeKind.DIRECTORY,
        children=(_file("x.json", parent="export/data"),),
    )
    previous = _snapshot({}, _root(directory))
    current = _snapshot({}, _root(_file("data")))

    change = _only(_detect(current, previous))

    assert change.path == "export/data"
    assert change.change_kinds == (ChangeKind.TYPE_CHANGED,)
    assert change.severity is ChangeSeverity.BREAKING


def test_every_breaking_or_minor_change_has_a_hint() -> None:
    previous = _snapshot(
        {"users": _users(a=NUMBER, b=STRING, c=STRING), "old": NUMBER},
        _root(_file("gone.json")),
    )
    current = _snapshot(
        {"users": _users(a=STRING, c=nullable(STRING), d=BOOLEAN), "new": NUMBER},
        _root(_file("fresh.json")),
    )

    changes = _detect(current, previous)

    assert changes
    for change in changes:
        if change.severity is not ChangeSeverity.PATCH:
            assert change.migration_hint, change


def test_aggregate_severity_picks_the_worst_change() -> None:
    def change(severity: ChangeSeverity) -> FieldChange:
        return FieldChange(path="p", status=ChangeStatus.MODIFIED, severity=severity)

    assert aggregate_severity([]) is VersionBump.PATCH
    assert aggregate_severity([change(ChangeSeverity.PATCH)]) is VersionBump.PATCH
    assert (
        aggregate_severity([change(ChangeSeverity.PATCH), change(ChangeSeverity.MINOR)])
        is VersionBump.MINOR
    )
    assert (
        aggregate_severity([change(ChangeSeverity.MINOR), change(ChangeSeverity.BREAKING)])
        is VersionBump.MAJOR
    )
