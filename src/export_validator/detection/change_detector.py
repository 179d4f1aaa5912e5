"""
export-validator — structural change detector

File: src/export_validator/detection/change_detector.py
Last updated: 2026-10-18

Purpose
- Diff two snapshots (file tree plus inferred schemas) into an ordered list of
  classified ``FieldChange`` records.

Functional requirements
- Tree changes come first in tree order, then schema changes by schema name.
- Within a directory, added/modified children follow the current listing and
  removed children follow, in previous listing order.
- Every breaking or minor change carries a migration hint.
- Diffing a snapshot against itself yields no changes.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Final

import structlog

from export_validator.constants import SEVERITY_WEIGHT
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
    ArrayType,
    ObjectType,
    Primitive,
    SchemaType,
    UnionType,
    canonical_key,
    describe,
    shape_class,
    unwrap,
)
from export_validator.domain.semver import VersionBump

_KIND_SEVERITY: Final[dict[ChangeKind, ChangeSeverity]] = {
    ChangeKind.NULLABLE_ADDED: ChangeSeverity.MINOR,
    ChangeKind.NULLABLE_REMOVED: ChangeSeverity.BREAKING,
    ChangeKind.OPTIONAL_ADDED: ChangeSeverity.MINOR,
    ChangeKind.OPTIONAL_REMOVED: ChangeSeverity.BREAKING,
}


class ChangeDetector:
    """Stateless snapshot differ; one instance may be reused across runs."""

    def __init__(self, *, logger: Any | None = None) -> None:
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def detect_changes(self, current: Snapshot, previous: Snapshot | None) -> list[FieldChange]:
        if previous is None:
            return []

        changes: list[FieldChange] = []
        root_path = current.structure.name
        self._diff_node(current.structure, previous.structure, root_path, changes)
        tree_count = len(changes)
        self._diff_schemas(current.schemas, previous.schemas, changes)

        self._logger.debug(
            "changes_detected",
            tree_changes=tree_count,
            schema_changes=len(changes) - tree_count,
            bump=aggregate_severity(changes).value,
        )
        return changes

    # Tree diff

    def _diff_node(
        self,
        current: FileNode,
        previous: FileNode,
        path: str,
        out: list[FieldChange],
    ) -> None:
        if current.kind is not previous.kind:
            out.append(
                FieldChange(
                    path=path,
                    status=ChangeStatus.MODIFIED,
                    severity=ChangeSeverity.BREAKING,
                    change_kinds=(ChangeKind.TYPE_CHANGED,),
                    previous_type=previous.kind.value,
                    current_type=current.kind.value,
                    migration_hint=(
                        f"{path} changed from {previous.kind.value} to {current.kind.value}; "
                        "update readers that open it"
                    ),
                )
            )
            return

        if current.kind is NodeKind.FILE:
            if current.size != previous.size:
                out.append(
                    FieldChange(
                        path=path,
                        status=ChangeStatus.MODIFIED,
                        severity=ChangeSeverity.PATCH,
                        previous_type=_file_label(previous),
                        current_type=_file_label(current),
                    )
                )
            return

        previous_children = {child.name: child for child in previous.children}
        current_names = {child.name for child in current.children}
        for child in current.children:
            child_path = f"{path}/{child.name}"
            matched = previous_children.get(child.name)
            if matched is None:
                out.append(
                    FieldChange(
                        path=child_path,
                        status=ChangeStatus.ADDED,
                        severity=ChangeSeverity.MINOR,
                        current_type=child.kind.value,
                        migration_hint=f"New {child.kind.value} {child_path} is available",
                    )
                )
            else:
                self._diff_node(child, matched, child_path, out)

        for child in previous.children:
            if child.name in current_names:
                continue
            child_path = f"{path}/{child.name}"
            out.append(
                FieldChange(
                    path=child_path,
                    status=ChangeStatus.REMOVED,
                    severity=ChangeSeverity.BREAKING,
                    previous_type=child.kind.value,
                    migration_hint=f"Remove references to {child_path}",
                )
            )

    # Schema diff

    def _diff_schemas(
        self,
        current: Mapping[str, SchemaType],
        previous: Mapping[str, SchemaType],
        out: list[FieldChange],
    ) -> None:
        for name in sorted(set(current) | set(previous)):
            if name not in previous:
                out.append(
                    FieldChange(
                        path=name,
                        status=ChangeStatus.ADDED,
                        severity=ChangeSeverity.MINOR,
                        current_type=describe(current[name]),
                        migration_hint=f"New schema {name} is available",
                    )
                )
            elif name not in current:
                out.append(
                    FieldChange(
                        path=name,
                        status=ChangeStatus.REMOVED,
                        severity=ChangeSeverity.BREAKING,
                        previous_type=describe(previous[name]),
                        migration_hint=f"Remove usage of schema {name}",
                    )
                )
            else:
                self._diff_type(name, current[name], previous[name], out)

    def _diff_type(
        self,
        path: str,
        current: SchemaType,
        previous: SchemaType,
        out: list[FieldChange],
    ) -> None:
        if canonical_key(current) == canonical_key(previous):
            return

        current_core, current_optional, current_nullable = unwrap(current)
        previous_core, previous_optional, previous_nullable = unwrap(previous)

        kinds: list[ChangeKind] = []
        severities: list[ChangeSeverity] = []
        hints: list[str] = []

        if current_optional != previous_optional:
            if current_optional:
                kinds.append(ChangeKind.OPTIONAL_ADDED)
                hints.append(f"{path} may now be missing, guard reads with a default")
            else:
                kinds.append(ChangeKind.OPTIONAL_REMOVED)
                hints.append(f"{path} is now always present; producers must supply it")
        if current_nullable != previous_nullable:
            if current_nullable:
                kinds.append(ChangeKind.NULLABLE_ADDED)
                hints.append(f"{path} can now be null, add appropriate handling")
            else:
                kinds.append(ChangeKind.NULLABLE_REMOVED)
                hints.append(f"Add null check before using {path}")
        severities.extend(_KIND_SEVERITY[kind] for kind in kinds)

        # (path, current, previous) pairs to recurse into after this node is recorded.
        nested: list[tuple[str, SchemaType, SchemaType]] = []
        core_severity, core_hint = self._compare_cores(
            path, current_core, previous_core, kinds, nested
        )
        if core_severity is not None:
            severities.append(core_severity)
        if core_hint is not None:
            hints.append(core_hint)

        if kinds:
            severity = _max_severity(severities)
            out.append(
                FieldChange(
                    path=path,
                    status=ChangeStatus.MODIFIED,
                    severity=severity,
                    change_kinds=tuple(kinds),
                    previous_type=describe(previous),
                    current_type=describe(current),
                    migration_hint=None if severity is ChangeSeverity.PATCH else "; ".join(hints),
                )
            )

        for nested_path, nested_current, nested_previous in nested:
            if isinstance(nested_current, ObjectType) and isinstance(nested_previous, ObjectType):
                self._diff_fields(nested_path, nested_current, nested_previous, out)
            else:
                self._diff_type(nested_path, nested_current, nested_previous, out)

    def _compare_cores(
        self,
        path: str,
        current: SchemaType,
        previous: SchemaType,
        kinds: list[ChangeKind],
        nested: list[tuple[str, SchemaType, SchemaType]],
    ) -> tuple[ChangeSeverity | None, str | None]:
        """Classify the unwrapped types; returns the severity and hint of a core change."""

        if canonical_key(current) == canonical_key(previous):
            return None, None

        if isinstance(current, ObjectType) and isinstance(previous, ObjectType):
            nested.append((path, current, previous))
            return None, None

        if isinstance(current, ArrayType) and isinstance(previous, ArrayType):
            nested.append((f"{path}[]", current.element, previous.element))
            return None, None

        if isinstance(current, Primitive) and isinstance(previous, Primitive):
            if current.kind is previous.kind:
                kinds.append(ChangeKind.CONSTRAINT_CHANGED)
                if current.format is None:
                    return ChangeSeverity.PATCH, None
                return (
                    ChangeSeverity.BREAKING,
                    f"{path} now requires {describe(current)} (was {describe(previous)}); "
                    "validate existing values",
                )

        current_members = _members(current)
        previous_members = _members(previous)
        if isinstance(current, UnionType) or isinstance(previous, UnionType):
            current_by_class = _by_shape_class(current_members)
            previous_by_class = _by_shape_class(previous_members)
            if current_by_class is not None and previous_by_class is not None:
                for shape in sorted(set(current_by_class) & set(previous_by_class)):
                    pair_current = current_by_class[shape]
                    pair_previous = previous_by_class[shape]
                    if canonical_key(pair_current) != canonical_key(pair_previous):
                        nested.append(_nested_pair(path, pair_current, pair_previous))
                added = sorted(set(current_by_class) - set(previous_by_class))
                removed = sorted(set(previous_by_class) - set(current_by_class))
                if not removed and not added:
                    return None, None
                kinds.append(ChangeKind.TYPE_CHANGED)
                if not removed:
                    additions = ", ".join(describe(current_by_class[shape]) for shape in added)
                    return (
                        ChangeSeverity.MINOR,
                        f"{path} now also accepts {additions}; handle the additional variants",
                    )
                return ChangeSeverity.BREAKING, _type_hint(current, previous)

            previous_keys = {canonical_key(member) for member in previous_members}
            current_keys = {canonical_key(member) for member in current_members}
            if previous_keys < current_keys:
                kinds.append(ChangeKind.TYPE_CHANGED)
                return (
                    ChangeSeverity.MINOR,
                    f"{path} now also accepts {describe(current)}; handle the additional variants",
                )

        kinds.append(ChangeKind.TYPE_CHANGED)
        return ChangeSeverity.BREAKING, _type_hint(current, previous)

    def _diff_fields(
        self,
        path: str,
        current: ObjectType,
        previous: ObjectType,
        out: list[FieldChange],
    ) -> None:
        current_fields = current.as_dict()
        previous_fields = previous.as_dict()
        for name, field_type in current.fields:
            field_path = f"{path}.{name}"
            previous_type = previous_fields.get(name)
            if previous_type is None:
                out.append(
                    FieldChange(
                        path=field_path,
                        status=ChangeStatus.ADDED,
                        severity=ChangeSeverity.MINOR,
                        change_kinds=(ChangeKind.OPTIONAL_ADDED,),
                        current_type=describe(field_type),
                        migration_hint=f"New field {field_path} is available",
                    )
                )
            else:
                self._diff_type(field_path, field_type, previous_type, out)

        for name, field_type in previous.fields:
            if name in current_fields:
                continue
            field_path = f"{path}.{name}"
            out.append(
                FieldChange(
                    path=field_path,
                    status=ChangeStatus.REMOVED,
                    severity=ChangeSeverity.BREAKING,
                    change_kinds=(ChangeKind.OPTIONAL_REMOVED,),
                    previous_type=describe(field_type),
                    migration_hint=f"Remove field access: {field_path}",
                )
            )


def aggregate_severity(changes: Iterable[FieldChange]) -> VersionBump:
    """Version bump implied by ``changes``: major > minor > patch."""

    severities = {change.severity for change in changes}
    if ChangeSeverity.BREAKING in severities:
        return VersionBump.MAJOR
    if ChangeSeverity.MINOR in severities:
        return VersionBump.MINOR
    return VersionBump.PATCH


def _max_severity(severities: Sequence[ChangeSeverity]) -> ChangeSeverity:
    return max(severities, key=lambda item: SEVERITY_WEIGHT[item.value])


def _members(schema: SchemaType) -> tuple[SchemaType, ...]:
    if isinstance(schema, UnionType):
        return schema.members
    return (schema,)


def _by_shape_class(members: Sequence[SchemaType]) -> dict[str, SchemaType] | None:
    """Index members by shape class; ``None`` when two members share a class."""

    indexed: dict[str, SchemaType] = {}
    for member in members:
        shape = shape_class(member)
        if shape in indexed:
            return None
        indexed[shape] = member
    return indexed


def _nested_pair(
    path: str, current: SchemaType, previous: SchemaType
) -> tuple[str, SchemaType, SchemaType]:
    if isinstance(current, ArrayType) and isinstance(previous, ArrayType):
        return f"{path}[]", current.element, previous.element
    return path, current, previous


def _type_hint(current: SchemaType, previous: SchemaType) -> str:
    return (
        f"Type changed from {describe(previous)} to {describe(current)}, "
        "update type annotations and usage"
    )


def _file_label(node: FileNode) -> str:
    if node.size is None:
        return "file"
    return f"file ({node.size} bytes)"


__all__ = ["ChangeDetector", "aggregate_severity"]
