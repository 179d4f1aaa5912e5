"""
export-validator — schema inference engine

File: src/export_validator/inference/engine.py
Last updated: 2026-10-18

Purpose
- Convert a sequence of sampled raw values into a ``SchemaType``.

Functional requirements
- Sibling objects are merged field-by-field: a field missing from any sibling is
  optional; nullability follows the configured mode (strict: any null, loose:
  never, auto: null ratio strictly above 5%).
- Field types are the deduplicated union of the types of present, non-null values.
- Arrays sample up to ``max_array_sample`` elements with the configured strategy;
  empty arrays infer ``array<unknown>``.
- Values deeper than ``max_depth`` infer ``unknown``.
- With a fixed seed, repeated calls return structurally identical results.
"""

from __future__ import annotations

import random
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum
from typing import Any

import structlog

from export_validator.constants import (
    AUTO_NULLABLE_THRESHOLD,
    DEFAULT_MAX_ARRAY_SAMPLE,
    DEFAULT_MAX_DEPTH,
    DEFAULT_SAMPLE_SIZE,
)
from export_validator.domain.schema_types import (
    BOOLEAN,
    NULL,
    NUMBER,
    STRING,
    UNKNOWN,
    ArrayType,
    ObjectType,
    SchemaType,
    StringFormat,
    nullable,
    optional,
    string,
    union_of,
)
from export_validator.inference.formats import detect_format
from export_validator.inference.sampling import Sampler, SampleStrategy


class InferenceMode(StrEnum):
    STRICT = "strict"
    LOOSE = "loose"
    AUTO = "auto"


@dataclass(frozen=True, slots=True)
class InferenceConfig:
    """Inference knobs; ``seed=None`` draws random samples from system entropy."""

    mode: InferenceMode = InferenceMode.STRICT
    sample_size: int = DEFAULT_SAMPLE_SIZE
    sample_strategy: SampleStrategy = SampleStrategy.STRATIFIED
    max_depth: int = DEFAULT_MAX_DEPTH
    max_array_sample: int = DEFAULT_MAX_ARRAY_SAMPLE
    seed: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "mode", InferenceMode(self.mode))
        object.__setattr__(self, "sample_strategy", SampleStrategy(self.sample_strategy))
        for name in ("sample_size", "max_array_sample"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"InferenceConfig.{name} must be an integer >= 1")
        if isinstance(self.max_depth, bool) or not isinstance(self.max_depth, int):
            raise ValueError("InferenceConfig.max_depth must be an integer")
        if self.max_depth < 0:
            raise ValueError("InferenceConfig.max_depth must be >= 0")
        if self.seed is not None and (
            isinstance(self.seed, bool) or not isinstance(self.seed, int)
        ):
            raise ValueError("InferenceConfig.seed must be an integer or None")

    @classmethod
    def from_mapping(cls, section: Mapping[str, object]) -> InferenceConfig:
        """Build from an ``[inference]`` config section; missing keys keep defaults."""

        defaults = cls()
        seed = section.get("seed", defaults.seed)
        return cls(
            mode=InferenceMode(str(section.get("mode", defaults.mode))),
            sample_size=_as_int(section.get("sample_size", defaults.sample_size)),
            sample_strategy=SampleStrategy(
                str(section.get("sample_strategy", defaults.sample_strategy))
            ),
            max_depth=_as_int(section.get("max_depth", defaults.max_depth)),
            max_array_sample=_as_int(section.get("max_array_sample", defaults.max_array_sample)),
            seed=None if seed is None else _as_int(seed),
        )


class SchemaInferenceEngine:
    """Infers a structural type from sampled raw values (JSON-like Python data)."""

    def __init__(
        self,
        config: InferenceConfig | None = None,
        *,
        rng: random.Random | None = None,
        logger: Any | None = None,
    ) -> None:
        self._config = config if config is not None else InferenceConfig()
        self._rng = rng
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def config(self) -> InferenceConfig:
        return self._config

    def infer(self, samples: Iterable[object]) -> SchemaType:
        """Infer the type of the records in ``samples``.

        Without an injected ``rng`` every call starts from ``config.seed`` so that
        repeated calls over the same input are reproducible.
        """

        sampler = Sampler(self._config.sample_strategy, self._call_rng())
        sampled = sampler.sample(samples, self._config.sample_size)
        if not sampled:
            self._logger.debug("schema_inferred_empty", mode=self._config.mode.value)
            return UNKNOWN

        inferred = _Inference(self._config, sampler).merge(sampled, depth=0)
        self._logger.debug(
            "schema_inferred",
            sampled=len(sampled),
            mode=self._config.mode.value,
            strategy=self._config.sample_strategy.value,
        )
        return inferred

    def infer_value(self, value: object) -> SchemaType:
        """Infer the type of a single value."""

        return self.infer([value])

    def _call_rng(self) -> random.Random:
        if self._rng is not None:
            return self._rng
        return random.Random(self._config.seed)


class _Inference:
    """Single-call state: the config plus the sampler bound to this call's RNG."""

    __slots__ = ("_config", "_sampler")

    def __init__(self, config: InferenceConfig, sampler: Sampler) -> None:
        self._config = config
        self._sampler = sampler

    def merge(self, values: Sequence[object], *, depth: int) -> SchemaType:
        if depth > self._config.max_depth:
            return UNKNOWN

        members: list[SchemaType] = []
        formats: set[StringFormat | None] = set()
        objects: list[Mapping[object, object]] = []
        arrays: list[Sequence[object]] = []
        seen_null = seen_bool = seen_number = seen_unknown = False

        for value in values:
            if value is None:
                seen_null = True
            elif isinstance(value, bool):
                seen_bool = True
            elif isinstance(value, (int, float)):
                seen_number = True
            elif isinstance(value, str):
                formats.add(detect_format(value))
            elif isinstance(value, (datetime, date)):
                # YAML timestamps arrive already decoded.
                formats.add(StringFormat.DATETIME)
            elif isinstance(value, Mapping):
                objects.append(value)
            elif isinstance(value, (list, tuple)):
                arrays.append(value)
            else:
                seen_unknown = True

        if formats:
            # Mixed formats widen to a plain string.
            members.append(string(formats.pop()) if len(formats) == 1 else STRING)
        if seen_number:
            members.append(NUMBER)
        if seen_bool:
            members.append(BOOLEAN)
        if seen_null:
            members.append(NULL)
        if objects:
            members.append(self._merge_objects(objects, depth=depth))
        if arrays:
            members.append(self._merge_arrays(arrays, depth=depth))
        if seen_unknown:
            members.append(UNKNOWN)

        if not members:
            return UNKNOWN
        return union_of(members)

    def _merge_objects(
        self, objects: Sequence[Mapping[object, object]], *, depth: int
    ) -> SchemaType:
        total = len(objects)
        order: list[str] = []
        present: Counter[str] = Counter()
        null_counts: Counter[str] = Counter()
        values: dict[str, list[object]] = {}

        for obj in objects:
            for raw_key, value in obj.items():
                key = str(raw_key)
                if key not in values:
                    order.append(key)
                    values[key] = []
                present[key] += 1
                if value is None:
                    null_counts[key] += 1
                else:
                    values[key].append(value)

        fields: list[tuple[str, SchemaType]] = []
        for key in order:
            non_null = values[key]
            field_type: SchemaType
            if non_null:
                field_type = self.merge(non_null, depth=depth + 1)
                if self._is_nullable(null_counts[key], total):
                    field_type = nullable(field_type)
            else:
                field_type = NULL
            if present[key] < total:
                field_type = optional(field_type)
            fields.append((key, field_type))
        return ObjectType(tuple(fields))

    def _merge_arrays(self, arrays: Sequence[Sequence[object]], *, depth: int) -> SchemaType:
        elements: list[object] = []
        for array in arrays:
            if array:
                elements.extend(self._sampler.sample(array, self._config.max_array_sample))
        if not elements:
            return ArrayType(UNKNOWN)
        return ArrayType(self.merge(elements, depth=depth + 1))

    def _is_nullable(self, null_count: int, total: int) -> bool:
        if null_count == 0:
            return False
        mode = self._config.mode
        if mode is InferenceMode.STRICT:
            return True
        if mode is InferenceMode.LOOSE:
            return False
        return null_count / total > AUTO_NULLABLE_THRESHOLD


def _as_int(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"expected integer, got {type(value).__name__}")
    return value


__all__ = ["InferenceConfig", "InferenceMode", "SchemaInferenceEngine"]
