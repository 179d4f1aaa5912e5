"""
export-validator — structural type model

File: src/export_validator/domain/schema_types.py
Last updated: 2026-10-18

Purpose
- Closed set of schema variants produced by inference and consumed by change detection.

Functional requirements
- Structural equality is plain dataclass equality.
- Union members are pairwise distinct by canonical key, flattened, and kept in
  canonical-key order so equal member sets compare equal.
- ``OptionalType`` is always the outermost wrapper; neither wrapper nests in itself.
- ``to_dict``/``from_dict`` round-trip through the stable JSON form.

Non-functional requirements
- Standard library only; no dependence on any code-generation library.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum, StrEnum
from typing import NoReturn, TypeAlias, TypeVar, assert_never

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

TEnum = TypeVar("TEnum", bound=Enum)

_DESCRIBE_MAX_FIELDS = 8


class PrimitiveKind(StrEnum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"
    UNKNOWN = "unknown"


class StringFormat(StrEnum):
    DATETIME = "datetime"
    UUID = "uuid"
    EMAIL = "email"
    URL = "url"


@dataclass(frozen=True, slots=True)
class Primitive:
    kind: PrimitiveKind
    format: StringFormat | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.kind, PrimitiveKind):
            object.__setattr__(self, "kind", PrimitiveKind(self.kind))
        if self.format is not None:
            if not isinstance(self.format, StringFormat):
                object.__setattr__(self, "format", StringFormat(self.format))
            if self.kind is not PrimitiveKind.STRING:
                raise ValueError(f"format {self.format} is only valid for string primitives")


@dataclass(frozen=True, slots=True)
class ObjectType:
    fields: tuple[tuple[str, SchemaType], ...] = ()

    def __post_init__(self) -> None:
        names = [name for name, _ in self.fields]
        if len(set(names)) != len(names):
            raise ValueError(f"object type has duplicate field names: {names}")

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.fields)

    @property
    def required(self) -> frozenset[str]:
        return frozenset(
            name for name, schema in self.fields if not isinstance(schema, OptionalType)
        )

    def get(self, name: str) -> SchemaType | None:
        for field_name, schema in self.fields:
            if field_name == name:
                return schema
        return None

    def as_dict(self) -> dict[str, SchemaType]:
        return dict(self.fields)


@dataclass(frozen=True, slots=True)
class ArrayType:
    element: SchemaType


@dataclass(frozen=True, slots=True)
class UnionType:
    members: tuple[SchemaType, ...]

    def __post_init__(self) -> None:
        if len(self.members) < 2:
            raise ValueError("union type needs at least two members; use union_of()")
        keys = [canonical_key(member) for member in self.members]
        if len(set(keys)) != len(keys):
            raise ValueError("union members must be structurally distinct")
        if keys != sorted(keys):
            raise ValueError("union members must be in canonical order; use union_of()")
        for member in self.members:
            if isinstance(member, (UnionType, OptionalType, NullableType)):
                raise ValueError("union members must not be unions or wrappers; use union_of()")


@dataclass(frozen=True, slots=True)
class OptionalType:
    inner: SchemaType

    def __post_init__(self) -> None:
        if isinstance(self.inner, OptionalType):
            raise ValueError("optional must not wrap optional; use optional()")


@dataclass(frozen=True, slots=True)
class NullableType:
    inner: SchemaType

    def __post_init__(self) -> None:
        if isinstance(self.inner, (NullableType, OptionalType)):
            raise ValueError("nullable must not wrap a wrapper; use nullable()")


SchemaType: TypeAlias = Primitive | ObjectType | ArrayType | UnionType | OptionalType | NullableType

STRING = Primitive(PrimitiveKind.STRING)
NUMBER = Primitive(PrimitiveKind.NUMBER)
BOOLEAN = Primitive(PrimitiveKind.BOOLEAN)
NULL = Primitive(PrimitiveKind.NULL)
UNKNOWN = Primitive(PrimitiveKind.UNKNOWN)


def string(fmt: StringFormat | str | None = None) -> Primitive:
    return Primitive(PrimitiveKind.STRING, StringFormat(fmt) if fmt is not None else None)


def optional(inner: SchemaType) -> OptionalType:
    """Wrap ``inner`` as optional, flattening nested optionals."""

    if isinstance(inner, OptionalType):
        return inner
    return OptionalType(inner)


def nullable(inner: SchemaType) -> NullableType | OptionalType:
    """Wrap ``inner`` as nullable; an optional wrapper stays outermost."""

    if isinstance(inner, NullableType):
        return inner
    if isinstance(inner, OptionalType):
        return OptionalType(nullable(inner.inner))
    return NullableType(inner)


def union_of(types: Iterable[SchemaType]) -> SchemaType:
    """Build a deduplicated, flattened union; a single member collapses to itself."""

    is_optional = False
    is_nullable = False
    by_key: dict[str, SchemaType] = {}
    pending = list(types)
    while pending:
        candidate = pending.pop(0)
        if isinstance(candidate, OptionalType):
            is_optional = True
            pending.insert(0, candidate.inner)
            continue
        if isinstance(candidate, NullableType):
            is_nullable = True
            pending.insert(0, candidate.inner)
            continue
        if isinstance(candidate, UnionType):
            pending[0:0] = list(candidate.members)
            continue
        by_key.setdefault(canonical_key(candidate), candidate)

    if not by_key:
        raise ValueError("union_of() requires at least one type")

    ordered = [by_key[key] for key in sorted(by_key)]
    result: SchemaType = ordered[0] if len(ordered) == 1 else UnionType(tuple(ordered))
    if is_nullable:
        result = nullable(result)
    if is_optional:
        result = optional(result)
    return result


def unwrap(schema: SchemaType) -> tuple[SchemaType, bool, bool]:
    """Return ``(core, is_optional, is_nullable)`` with both wrappers removed."""

    is_optional = False
    is_nullable = False
    if isinstance(schema, OptionalType):
        is_optional = True
        schema = schema.inner
    if isinstance(schema, NullableType):
        is_nullable = True
        schema = schema.inner
    return schema, is_optional, is_nullable


def to_dict(schema: SchemaType) -> dict[str, JSONValue]:
    """Serialize ``schema`` to its stable JSON form."""

    if isinstance(schema, Primitive):
        out: dict[str, JSONValue] = {"type": "primitive", "kind": schema.kind.value}
        if schema.format is not None:
            out["format"] = schema.format.value
        return out
    if isinstance(schema, ObjectType):
        return {
            "type": "object",
            "fields": [{"name": name, "schema": to_dict(item)} for name, item in schema.fields],
            "required": sorted(schema.required),
        }
    if isinstance(schema, ArrayType):
        return {"type": "array", "element": to_dict(schema.element)}
    if isinstance(schema, UnionType):
        return {"type": "union", "members": [to_dict(member) for member in schema.members]}
    if isinstance(schema, OptionalType):
        return {"type": "optional", "inner": to_dict(schema.inner)}
    if isinstance(schema, NullableType):
        return {"type": "nullable", "inner": to_dict(schema.inner)}
    assert_never(schema)


def from_dict(data: Mapping[str, object], path: str = "SchemaType") -> SchemaType:
    """Parse the stable JSON form produced by ``to_dict``."""

    if not isinstance(data, Mapping):
        _fail(path, f"expected object, got {type(data).__name__}")
    tag = data.get("type")

    if tag == "primitive":
        kind = _as_enum(PrimitiveKind, data.get("kind"), f"{path}.kind")
        raw_format = data.get("format")
        fmt = None if raw_format is None else _as_enum(StringFormat, raw_format, f"{path}.format")
        try:
            return Primitive(kind, fmt)
        except ValueError as exc:
            _fail(path, str(exc))
    if tag == "object":
        raw_fields = data.get("fields", [])
        if not isinstance(raw_fields, list):
            _fail(f"{path}.fields", "expected array")
        parsed: list[tuple[str, SchemaType]] = []
        for index, entry in enumerate(raw_fields):
            entry_path = f"{path}.fields[{index}]"
            if not isinstance(entry, Mapping):
                _fail(entry_path, "expected object")
            name = entry.get("name")
            if not isinstance(name, str):
                _fail(f"{entry_path}.name", "expected string")
            inner = entry.get("schema")
            if not isinstance(inner, Mapping):
                _fail(f"{entry_path}.schema", "expected object")
            parsed.append((name, from_dict(inner, f"{path}.{name}")))
        try:
            return ObjectType(tuple(parsed))
        except ValueError as exc:
            _fail(path, str(exc))
    if tag == "array":
        element = data.get("element")
        if not isinstance(element, Mapping):
            _fail(f"{path}.element", "expected object")
        return ArrayType(from_dict(element, f"{path}[]"))
    if tag == "union":
        members = data.get("members")
        if not isinstance(members, list) or not members:
            _fail(f"{path}.members", "expected non-empty array")
        return union_of(
            from_dict(member, f"{path}.members[{index}]") for index, member in enumerate(members)
        )
    if tag in {"optional", "nullable"}:
        inner_raw = data.get("inner")
        if not isinstance(inner_raw, Mapping):
            _fail(f"{path}.inner", "expected object")
        inner_schema = from_dict(inner_raw, path)
        return optional(inner_schema) if tag == "optional" else nullable(inner_schema)

    _fail(path, f"unknown schema type tag {tag!r}")


def canonical_key(schema: SchemaType) -> str:
    """Canonical JSON text used for structural deduplication."""

    return json.dumps(to_dict(schema), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def describe(schema: SchemaType) -> str:
    """Short human-readable rendering used in change reports and hints."""

    if isinstance(schema, Primitive):
        if schema.format is not None:
            return f"{schema.kind.value}<{schema.format.value}>"
        return schema.kind.value
    if isinstance(schema, ObjectType):
        names = list(schema.field_names[:_DESCRIBE_MAX_FIELDS])
        if len(schema.fields) > _DESCRIBE_MAX_FIELDS:
            names.append("...")
        return "object{" + ", ".join(names) + "}"
    if isinstance(schema, ArrayType):
        return f"array<{describe(schema.element)}>"
    if isinstance(schema, UnionType):
        return " | ".join(describe(member) for member in schema.members)
    if isinstance(schema, OptionalType):
        return f"optional<{describe(schema.inner)}>"
    if isinstance(schema, NullableType):
        return f"nullable<{describe(schema.inner)}>"
    assert_never(schema)


def shape_class(schema: SchemaType) -> str:
    """Coarse variant label used to pair union members across two schemas."""

    core, _, _ = unwrap(schema)
    if isinstance(core, Primitive):
        return f"primitive:{core.kind.value}"
    if isinstance(core, ObjectType):
        return "object"
    if isinstance(core, ArrayType):
        return "array"
    return "union"


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _as_enum(enum_type: type[TEnum], value: object, path: str) -> TEnum:
    if not isinstance(value, str):
        _fail(path, f"expected string enum value, got {type(value).__name__}")
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(sorted(item.value for item in enum_type))
        _fail(path, f"invalid value {value!r}; expected one of: {allowed}")


__all__ = [
    "ArrayType",
    "BOOLEAN",
    "NULL",
    "NUMBER",
    "NullableType",
    "ObjectType",
    "OptionalType",
    "Primitive",
    "PrimitiveKind",
    "STRING",
    "SchemaType",
    "StringFormat",
    "UNKNOWN",
    "UnionType",
    "canonical_key",
    "describe",
    "from_dict",
    "nullable",
    "optional",
    "shape_class",
    "string",
    "to_dict",
    "union_of",
    "unwrap",
]
