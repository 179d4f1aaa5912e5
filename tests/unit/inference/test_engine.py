"""
export-validator — unit tests for schema inference

File: tests/unit/inference/test_engine.py
Last updated: 2026-10-18

Purpose
- Pin the merge rules of the inference engine on small hand-written samples.

What this test file should cover
- Format detection on fields, optional and nullable wrapping per mode.
- Array element merging, depth limits, and non-JSON scalars from YAML.
"""

from __future__ import annotations

import random
from datetime import date, datetime

import pytest

from export_validator.domain.schema_types import (
    BOOLEAN,
    NULL,
    NUMBER,
    STRING,
    UNKNOWN,
    ArrayType,
    NullableType,
    ObjectType,
    OptionalType,
    StringFormat,
    nullable,
    optional,
    string,
    union_of,
)
from export_validator.inference import (
    InferenceConfig,
    InferenceMode,
    SampleStrategy,
    SchemaInferenceEngine,
)


def _engine(**kwargs: object) -> SchemaInferenceEngine:
    return SchemaInferenceEngine(InferenceConfig(**kwargs))  # type: ignore[arg-type]


def _field(schema: object, name: str) -> object:
    assert isinstance(schema, ObjectType)
    return schema.get(name)


def test_email_field_is_a_non_nullable_email_string() -> None:
    schema = _engine().infer([{"id": 1, "email": "a@x.com"}])

    assert schema == ObjectType((("id", NUMBER), ("email", string(StringFormat.EMAIL))))


def test_auto_mode_nullable_threshold_is_strictly_above_five_percent() -> None:
    engine = _engine(mode=InferenceMode.AUTO)
    one_null = [{"email": None}] + [{"email": f"u{i}@x.com"} for i in range(19)]
    two_nulls = [{"email": None}, {"email": None}] + [
        {"email": f"u{i}@x.com"} for i in range(18)
    ]

    assert _field(engine.infer(one_null), "email") == string(StringFormat.EMAIL)
    assert _field(engine.infer(two_nulls), "email") == nullable(string(StringFormat.EMAIL))


def test_strict_mode_wraps_any_null_and_loose_mode_never_does() -> None:
    records = [{"name": "a"}, {"name": None}] + [{"name": "b"}] * 50

    assert _field(_engine(mode="strict").infer(records), "name") == nullable(STRING)
    assert _field(_engine(mode="loose").infer(records), "name") == STRING


def test_missing_fields_become_optional_and_keep_first_seen_order() -> None:
    schema = _engine().infer([{"a": 1, "b": "x"}, {"c": True, "a": 2}])

    assert isinstance(schema, ObjectType)
    assert schema.field_names == ("a", "b", "c")
    assert schema.get("a") == NUMBER
    assert schema.get("b") == optional(STRING)
    assert schema.get("c") == optional(BOOLEAN)
    assert schema.required == frozenset({"a"})


def test_optional_stays_outside_nullable() -> None:
    schema = _engine().infer([{"a": None}, {"a": 1}, {}])

    field = _field(schema, "a")
    assert isinstance(field, OptionalType)
    assert isinstance(field.inner, NullableType)
    assert field.inner.inner == NUMBER


def test_field_that_is_always_null_infers_null() -> None:
    assert _field(_engine().infer([{"gone": None}, {"gone": None}]), "gone") == NULL


def test_field_types_union_across_siblings() -> None:
    schema = _engine().infer([{"v": 1}, {"v": "one"}, {"v": 2.5}])
    assert _field(schema, "v") == union_of([NUMBER, STRING])


def test_booleans_are_not_numbers() -> None:
    assert _engine().infer([True, 1]) == union_of([BOOLEAN, NUMBER])


def test_mixed_string_formats_widen_to_plain_string() -> None:
    schema = _engine().infer([{"v": "a@x.com"}, {"v": "https://x.com"}])
    assert _field(schema, "v") == STRING


def test_array_elements_are_merged_as_siblings() -> None:
    schema = _engine().infer([{"tags": [{"k": 1}, {"k": 2, "extra": "x"}]}])

    tags = _field(schema, "tags")
    assert tags == ArrayType(ObjectType((("k", NUMBER), ("extra", optional(STRING)))))


def test_empty_arrays_infer_unknown_elements() -> None:
    assert _engine().infer([[]]) == ArrayType(UNKNOWN)
    assert _engine().infer([[], [3]]) == ArrayType(NUMBER)


def test_values_deeper_than_max_depth_are_unknown() -> None:
    record = {"a": {"b": {"c": 1}}}

    assert _engine(max_depth=0).infer([record]) == ObjectType((("a", UNKNOWN),))
    assert _engine(max_depth=1).infer([record]) == ObjectType(
        (("a", ObjectType((("b", UNKNOWN),))),)
    )


def test_yaml_dates_infer_as_datetime_strings() -> None:
    schema = _engine().infer([{"at": datetime(2024, 1, 1, 8, 0)}, {"at": date(2024, 1, 2)}])
    assert _field(schema, "at") == string(StringFormat.DATETIME)


def test_unrecognized_python_values_infer_unknown() -> None:
    assert _engine().infer([object()]) == UNKNOWN


def test_no_samples_infer_unknown() -> None:
    assert _engine().infer([]) == UNKNOWN


def test_first_strategy_only_reads_sample_size_records() -> None:
    records = [{"a": 1}] * 3 + [{"a": "late"}]
    schema = _engine(sample_strategy=SampleStrategy.FIRST, sample_size=3).infer(records)
    assert _field(schema, "a") == NUMBER


def test_max_array_sample_bounds_element_inference() -> None:
    engine = _engine(sample_strategy=SampleStrategy.FIRST, max_array_sample=2)
    assert engine.infer([[1, 2, "three"]]) == ArrayType(NUMBER)


def test_injected_rng_is_used_for_sampling() -> None:
    config = InferenceConfig(sample_strategy=SampleStrategy.RANDOM, sample_size=1)
    records = [{"only_a": 1}, {"only_b": 1}]

    picked_a = SchemaInferenceEngine(config, rng=random.Random(0)).infer(records)
    assert isinstance(picked_a, ObjectType)
    assert len(picked_a.fields) == 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"sample_size": 0},
        {"max_array_sample": 0},
        {"max_depth": -1},
        {"seed": "1"},
        {"mode": "sometimes"},
    ],
)
def test_invalid_config_is_rejected(kwargs: dict[str, object]) -> None:
    with pytest.raises(ValueError):
        InferenceConfig(**kwargs)  # type: ignore[arg-type]


def test_config_from_mapping_keeps_defaults_for_missing_keys() -> None:
    config = InferenceConfig.from_mapping({"mode": "auto", "seed": 3})

    assert config.mode is InferenceMode.AUTO
    assert config.seed == 3
    assert config.sample_size == InferenceConfig().sample_size
    assert config.sample_strategy is SampleStrategy.STRATIFIED
