"""
export-validator — persisted domain records

File: src/export_validator/domain/models.py
Last updated: 2026-10-18

Purpose
- Frozen records for snapshots, field changes, version metadata and the
  version manifest, with one canonical JSON form each.

Functional requirements
- Construction validates and coerces: enum fields accept their string values,
  timestamps accept ISO-8601 text and are normalized to UTC.
- ``from_dict`` rejects unknown and missing keys; nested records are rebuilt
  through their own ``from_dict``.
- Timestamps serialize as ``YYYY-MM-DDTHH:MM:SS.ffffffZ``.
- ``Snapshot.checksum`` covers the tree shape and schema names only;
  ``Snapshot.content_hash`` also covers the schemas themselves.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Iterable, Mapping
from dataclasses import MISSING, dataclass, field, fields, is_dataclass
from datetime import UTC, datetime
from enum import Enum, StrEnum
from typing import Any, NoReturn, TypeVar

from export_validator.domain import schema_types
from export_validator.domain.schema_types import SchemaType
from export_validator.domain.semver import VersionBump, is_valid_version
from export_validator.utils.hashing import sha256_json

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

TModel = TypeVar("TModel", bound="CanonicalModel")
TEnum = TypeVar("TEnum", bound=Enum)

_MAX_TEXT = 8192
_MAX_PATH = 4096
_DIGEST = re.compile(r"[0-9a-f]{64}")
_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


class NodeKind(StrEnum):
    FILE = "file"
    DIRECTORY = "directory"


class ChangeStatus(StrEnum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"
    UNCHANGED = "unchanged"


class ChangeSeverity(StrEnum):
    BREAKING = "breaking"
    MINOR = "minor"
    PATCH = "patch"


class ChangeKind(StrEnum):
    TYPE_CHANGED = "type_changed"
    NULLABLE_ADDED = "nullable_added"
    NULLABLE_REMOVED = "nullable_removed"
    OPTIONAL_ADDED = "optional_added"
    OPTIONAL_REMOVED = "optional_removed"
    CONSTRAINT_CHANGED = "constraint_changed"


class CanonicalModel:
    """Shared JSON plumbing; subclasses are frozen dataclasses."""

    def to_dict(self) -> dict[str, JSONValue]:
        payload = _jsonable(self, type(self).__name__)
        assert isinstance(payload, dict)
        return payload

    def to_json(self, *, indent: int | None = None) -> str:
        if indent is None:
            return json.dumps(
                self.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False
            )
        return json.dumps(self.to_dict(), sort_keys=True, indent=indent, ensure_ascii=False)

    @classmethod
    def from_json(cls: type[TModel], raw: str | bytes) -> TModel:
        name = cls.__name__
        try:
            text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
            document = json.loads(text)
        except UnicodeDecodeError as exc:
            _fail(name, f"invalid UTF-8: {exc}")
        except (TypeError, json.JSONDecodeError) as exc:
            _fail(name, f"invalid JSON: {exc}")
        return cls.from_dict(_mapping(document, name))

    @classmethod
    def from_dict(cls: type[TModel], data: Mapping[str, object]) -> TModel:
        return cls(**_record_fields(cls, data))


@dataclass(frozen=True, slots=True)
class FileNode(CanonicalModel):
    """One entry of the export file tree; children keep a stable listing order."""

    name: str
    path: str
    kind: NodeKind
    size: int | None = None
    children: tuple[FileNode, ...] = ()

    def __post_init__(self) -> None:
        _text(self.name, "FileNode.name", strip=False)
        _text(self.path, "FileNode.path", max_len=_MAX_PATH, strip=False)
        _replace(self, "kind", _enum(NodeKind, self.kind, "FileNode.kind"))
        if self.size is not None:
            _count(self.size, "FileNode.size")
        children = tuple(_items(self.children, "FileNode.children"))
        if any(not isinstance(child, FileNode) for child in children):
            _fail("FileNode.children", "expected FileNode entries")
        if self.kind is NodeKind.FILE and children:
            _fail("FileNode.children", "file nodes cannot have children")
        if len({child.name for child in children}) != len(children):
            _fail("FileNode.children", f"duplicate child names under {self.path!r}")
        _replace(self, "children", children)

    @property
    def is_directory(self) -> bool:
        return self.kind is NodeKind.DIRECTORY

    def iter_files(self) -> list[FileNode]:
        """Return file nodes in depth-first tree order."""

        if self.kind is NodeKind.FILE:
            return [self]
        return [leaf for child in self.children for leaf in child.iter_files()]

    def shape(self) -> dict[str, JSONValue]:
        """Path-independent shape used for checksums."""

        shape: dict[str, JSONValue] = {
            "name": self.name,
            "kind": self.kind.value,
            "size": self.size,
        }
        if self.is_directory:
            shape["children"] = [child.shape() for child in self.children]
        return shape

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> FileNode:
        values = _record_fields(cls, data)
        values["children"] = _nested(cls, values.get("children", ()), "FileNode.children")
        return cls(**values)


@dataclass(frozen=True, slots=True)
class FieldChange(CanonicalModel):
    """A single classified difference between two snapshots."""

    path: str
    status: ChangeStatus
    severity: ChangeSeverity
    change_kinds: tuple[ChangeKind, ...] = ()
    previous_type: str | None = None
    current_type: str | None = None
    migration_hint: str | None = None

    def __post_init__(self) -> None:
        _text(self.path, "FieldChange.path", max_len=_MAX_PATH, strip=False)
        _replace(self, "status", _enum(ChangeStatus, self.status, "FieldChange.status"))
        _replace(self, "severity", _enum(ChangeSeverity, self.severity, "FieldChange.severity"))
        kinds = {
            _enum(ChangeKind, item, f"FieldChange.change_kinds[{index}]")
            for index, item in enumerate(_items(self.change_kinds, "FieldChange.change_kinds"))
        }
        _replace(self, "change_kinds", tuple(sorted(kinds, key=lambda kind: kind.value)))
        for name in ("previous_type", "current_type", "migration_hint"):
            value = getattr(self, name)
            if value is not None:
                _text(value, f"FieldChange.{name}")


@dataclass(frozen=True, slots=True)
class VersionMetadata(CanonicalModel):
    """Version record appended to the manifest; never mutated after persistence."""

    version: str
    timestamp: datetime
    change_type: VersionBump
    breaking: bool
    content_hash: str
    previous_version: str | None = None
    change_summary: str | None = None
    validator_version: str = "1.0.0"

    def __post_init__(self) -> None:
        _semver(self.version, "VersionMetadata.version")
        _replace(self, "timestamp", _utc(self.timestamp, "VersionMetadata.timestamp"))
        _replace(
            self,
            "change_type",
            _enum(VersionBump, self.change_type, "VersionMetadata.change_type"),
        )
        if not isinstance(self.breaking, bool):
            kind = type(self.breaking).__name__
            _fail("VersionMetadata.breaking", f"expected boolean, got {kind}")
        _replace(self, "content_hash", _digest(self.content_hash, "VersionMetadata.content_hash"))
        if self.previous_version is not None:
            _semver(self.previous_version, "VersionMetadata.previous_version")
        if self.change_summary is not None:
            _text(self.change_summary, "VersionMetadata.change_summary")
        _text(self.validator_version, "VersionMetadata.validator_version", max_len=64)


@dataclass(frozen=True, slots=True)
class Snapshot(CanonicalModel):
    """Immutable capture of a file tree plus its inferred schemas."""

    structure: FileNode
    schemas: Mapping[str, SchemaType]
    checksum: str
    metadata: VersionMetadata | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.structure, FileNode):
            _fail("Snapshot.structure", f"expected FileNode, got {type(self.structure).__name__}")
        schemas = dict(self.schemas)
        for name, schema in schemas.items():
            _text(name, "Snapshot.schemas.<key>", strip=False)
            if not isinstance(schema, SchemaType):
                kind = type(schema).__name__
                _fail(f"Snapshot.schemas.{name}", f"expected SchemaType, got {kind}")
        _replace(self, "schemas", schemas)
        _replace(self, "checksum", _digest(self.checksum, "Snapshot.checksum"))
        if self.metadata is not None and not isinstance(self.metadata, VersionMetadata):
            _fail("Snapshot.metadata", "expected VersionMetadata")

    @classmethod
    def build(
        cls,
        structure: FileNode,
        schemas: Mapping[str, SchemaType],
        metadata: VersionMetadata | None = None,
    ) -> Snapshot:
        """Create a snapshot with its checksum computed from ``structure`` and ``schemas``."""

        return cls(structure, dict(schemas), compute_checksum(structure, schemas), metadata)

    def content_hash(self) -> str:
        """Hash over the full structure and serialized schemas."""

        return sha256_json(
            {
                "structure": self.structure.to_dict(),
                "schemas": {
                    name: schema_types.to_dict(item) for name, item in self.schemas.items()
                },
            }
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Snapshot:
        values = _record_fields(cls, data)
        structure = _mapping(values["structure"], "Snapshot.structure")
        values["structure"] = FileNode.from_dict(structure)
        values["schemas"] = {
            str(name): schema_types.from_dict(
                _mapping(item, f"Snapshot.schemas.{name}"), f"Snapshot.schemas.{name}"
            )
            for name, item in _mapping(values["schemas"], "Snapshot.schemas").items()
        }
        if values.get("metadata") is not None:
            values["metadata"] = VersionMetadata.from_dict(
                _mapping(values["metadata"], "Snapshot.metadata")
            )
        return cls(**values)


@dataclass(frozen=True, slots=True)
class ChangeSummary(CanonicalModel):
    breaking: int = 0
    minor: int = 0
    patch: int = 0
    added: int = 0
    removed: int = 0
    modified: int = 0

    def __post_init__(self) -> None:
        for item in fields(self):
            _count(getattr(self, item.name), f"ChangeSummary.{item.name}")


@dataclass(frozen=True, slots=True)
class ChangeReport(CanonicalModel):
    """Change list for one version, persisted as ``changes.json``."""

    metadata: VersionMetadata
    summary: ChangeSummary
    changes: tuple[FieldChange, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        _replace(self, "changes", tuple(self.changes))

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ChangeReport:
        values = _record_fields(cls, data)
        values["metadata"] = VersionMetadata.from_dict(
            _mapping(values["metadata"], "ChangeReport.metadata")
        )
        values["summary"] = ChangeSummary.from_dict(
            _mapping(values["summary"], "ChangeReport.summary")
        )
        values["changes"] = _nested(FieldChange, values.get("changes", ()), "ChangeReport.changes")
        return cls(**values)


@dataclass(frozen=True, slots=True)
class ValidationWarning(CanonicalModel):
    """A per-file problem that did not abort the run."""

    path: str
    reason: str

    def __post_init__(self) -> None:
        _text(self.path, "ValidationWarning.path", max_len=_MAX_PATH, strip=False)
        _text(self.reason, "ValidationWarning.reason")


@dataclass(frozen=True, slots=True)
class VersionManifest(CanonicalModel):
    """Ordered version list (oldest first) plus the authoritative latest pointer."""

    versions: tuple[VersionMetadata, ...] = ()
    latest: str | None = None
    schema_version: int = 1

    def __post_init__(self) -> None:
        versions = tuple(self.versions)
        listed: set[str] = set()
        for index, item in enumerate(versions):
            if not isinstance(item, VersionMetadata):
                _fail(f"VersionManifest.versions[{index}]", "expected VersionMetadata")
            if item.version in listed:
                _fail("VersionManifest.versions", f"duplicate version {item.version!r}")
            listed.add(item.version)
        _replace(self, "versions", versions)
        if self.latest is None and versions:
            _fail("VersionManifest.latest", "must be set when versions exist")
        if self.latest is not None:
            _semver(self.latest, "VersionManifest.latest")
            if self.latest not in listed:
                _fail("VersionManifest.latest", f"{self.latest!r} is not a listed version")
        if isinstance(self.schema_version, bool) or not isinstance(self.schema_version, int):
            _fail("VersionManifest.schema_version", "expected integer")
        if self.schema_version < 1:
            _fail("VersionManifest.schema_version", "must be >= 1")

    @property
    def is_empty(self) -> bool:
        return self.latest is None

    def find(self, version: str) -> VersionMetadata | None:
        return next((item for item in self.versions if item.version == version), None)

    def append(self, metadata: VersionMetadata) -> VersionManifest:
        return VersionManifest((*self.versions, metadata), metadata.version, self.schema_version)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> VersionManifest:
        # An empty store is written as {"versions": [], "latest": null}; both keys must be present.
        values = _record_fields(cls, data, required=frozenset({"versions", "latest"}))
        values["versions"] = _nested(
            VersionMetadata, values["versions"], "VersionManifest.versions"
        )
        return cls(**values)


def compute_checksum(structure: FileNode, schemas: Mapping[str, SchemaType]) -> str:
    """Identity check over the tree shape and the sorted schema names."""

    return sha256_json({"structure": structure.shape(), "schema_keys": sorted(schemas)})


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _replace(record: object, name: str, value: object) -> None:
    object.__setattr__(record, name, value)


def _record_fields(
    model: type[CanonicalModel],
    data: object,
    *,
    required: frozenset[str] | None = None,
) -> dict[str, Any]:
    """Copy ``data`` after checking its keys against the dataclass fields of ``model``.

    Fields without a default are required unless ``required`` names them explicitly.
    """

    name = model.__name__
    values = _mapping(data, name)
    declared = fields(model)  # type: ignore[arg-type]
    if required is None:
        required = frozenset(
            item.name
            for item in declared
            if item.default is MISSING and item.default_factory is MISSING
        )
    unknown = sorted(set(values) - {item.name for item in declared})
    if unknown:
        _fail(name, f"unexpected fields: {unknown}")
    missing = sorted(required - set(values))
    if missing:
        _fail(name, f"missing required fields: {missing}")
    return values


def _mapping(value: object, path: str) -> dict[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")
    if any(not isinstance(key, str) for key in value):
        _fail(path, "object keys must be strings")
    return dict(value)


def _items(value: object, path: str) -> Iterable[object]:
    if not isinstance(value, (list, tuple)):
        _fail(path, f"expected array, got {type(value).__name__}")
    return value


def _nested(model: type[TModel], value: object, path: str) -> tuple[TModel, ...]:
    return tuple(
        model.from_dict(_mapping(item, f"{path}[{index}]"))
        for index, item in enumerate(_items(value, path))
    )


def _text(value: object, path: str, *, max_len: int = _MAX_TEXT, strip: bool = True) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    text = value.strip() if strip else value
    if not text:
        _fail(path, "must not be empty")
    if len(text) > max_len:
        _fail(path, f"must be <= {max_len} characters")
    return text


def _count(value: object, path: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(path, f"expected integer, got {type(value).__name__}")
    if value < 0:
        _fail(path, "must be >= 0")
    return value


def _enum(enum_type: type[TEnum], value: object, path: str) -> TEnum:
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError:
        choices = ", ".join(sorted(str(item.value) for item in enum_type))
        _fail(path, f"invalid value {value!r}; expected one of: {choices}")


def _utc(value: object, path: str) -> datetime:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError as exc:
            _fail(path, f"invalid ISO-8601 datetime ({exc})")
    if not isinstance(value, datetime):
        _fail(path, f"expected datetime or ISO-8601 string, got {type(value).__name__}")
    if value.utcoffset() is None:
        _fail(path, "datetime must be timezone-aware")
    return value.astimezone(UTC)


def _digest(value: object, path: str) -> str:
    if not isinstance(value, str) or not _DIGEST.fullmatch(value.lower()):
        _fail(path, "must be a 64-character hex SHA-256 digest")
    return value.lower()


def _semver(value: object, path: str) -> str:
    text = _text(value, path, max_len=64)
    if not is_valid_version(text):
        _fail(path, f"invalid semantic version {text!r}")
    return text


def _jsonable(value: object, path: str) -> JSONValue:
    """Convert a record (or any value inside one) to plain JSON data."""

    if isinstance(value, Enum):
        return str(value.value)
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            _fail(path, "float values must be finite")
        return value
    if isinstance(value, datetime):
        return _utc(value, path).strftime(_TIMESTAMP_FORMAT)
    if isinstance(value, SchemaType):
        return schema_types.to_dict(value)
    if isinstance(value, (list, tuple)):
        return [_jsonable(item, f"{path}[{index}]") for index, item in enumerate(value)]
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item, f"{path}.{key}") for key, item in value.items()}
    if is_dataclass(value) and not isinstance(value, type):
        return {
            item.name: _jsonable(getattr(value, item.name), f"{path}.{item.name}")
            for item in fields(value)
        }
    _fail(path, f"cannot serialize value of type {type(value).__name__}")


__all__ = [
    "CanonicalModel",
    "ChangeKind",
    "ChangeReport",
    "ChangeSeverity",
    "ChangeStatus",
    "ChangeSummary",
    "FieldChange",
    "FileNode",
    "JSONValue",
    "NodeKind",
    "Snapshot",
    "ValidationWarning",
    "VersionManifest",
    "VersionMetadata",
    "compute_checksum",
]
