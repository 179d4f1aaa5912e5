"""
export-validator — configuration schema and validation.

File: src/export_validator/config/schema.py
Last updated: 2026-10-18

Purpose
- Built-in defaults for every section of ``export-validator.toml``.
- Strict validation that reports every problem at once, each with a dotted
  field path (``inference.sample_size``, ``exports.slack.extensions[0]``).

Functional requirements
- Sections: ``meta``, ``inference``, ``output``, ``ci``, ``observability``,
  ``exports.<type>`` and ``profiles.<name>``.
- Unknown keys are errors; so are missing required keys outside profiles.
- Profiles overlay ``inference``, ``output``, ``ci`` and ``observability``;
  ``strict``, ``loose`` and ``ci`` ship built in.
- A ``meta.schema_version`` other than the supported one fails with a hint on
  which side needs upgrading.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, NotRequired, TypedDict

from export_validator.constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_MAX_ARRAY_SAMPLE,
    DEFAULT_MAX_DEPTH,
    DEFAULT_SAMPLE_SIZE,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
BUILTIN_PROFILE_NAMES: Final[tuple[str, ...]] = ("strict", "loose", "ci")

INFERENCE_MODES: Final[tuple[str, ...]] = ("strict", "loose", "auto")
SAMPLE_STRATEGIES: Final[tuple[str, ...]] = ("first", "random", "stratified")
FAIL_ON_LEVELS: Final[tuple[str, ...]] = ("breaking", "minor", "patch")
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")
LOG_FORMATS: Final[tuple[str, ...]] = ("json", "text")

_SLUG = re.compile(r"[a-z][a-z0-9_-]*")
_OUTPUT_NAME = re.compile(r"[A-Za-z0-9][A-Za-z0-9._-]*")

# (section, key) pairs holding filesystem paths; the loader anchors them.
PATH_FIELDS: Final[tuple[tuple[str, str], ...]] = (
    ("output", "root"),
    ("observability", "log_dir"),
)


class MetaConfig(TypedDict):
    schema_version: int


class InferenceSection(TypedDict):
    mode: Literal["strict", "loose", "auto"]
    sample_size: int
    sample_strategy: Literal["first", "random", "stratified"]
    max_depth: int
    max_array_sample: int
    seed: NotRequired[int]


class OutputConfig(TypedDict):
    root: str
    export_type: str
    latest_symlink: bool


class CIConfig(TypedDict, total=False):
    fail_on: Literal["patch", "minor", "breaking"]


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_format: Literal["json", "text"]
    log_dir: str


class ExportTypeConfig(TypedDict, total=False):
    name: str
    description: str
    output_name: str
    extensions: list[str]


class ProfileOverlay(TypedDict, total=False):
    inference: dict[str, object]
    output: dict[str, object]
    ci: dict[str, object]
    observability: dict[str, object]


class ValidatorConfig(TypedDict):
    meta: MetaConfig
    inference: InferenceSection
    output: OutputConfig
    ci: CIConfig
    observability: ObservabilityConfig
    exports: dict[str, ExportTypeConfig]
    profiles: dict[str, ProfileOverlay]


DEFAULT_CONFIG: Final[ValidatorConfig] = {
    "meta": {"schema_version": ConfigSchemaVersion},
    "inference": {
        "mode": "strict",
        "sample_size": DEFAULT_SAMPLE_SIZE,
        "sample_strategy": "stratified",
        "max_depth": DEFAULT_MAX_DEPTH,
        "max_array_sample": DEFAULT_MAX_ARRAY_SAMPLE,
    },
    "output": {"root": "exports/", "export_type": "generic", "latest_symlink": True},
    "ci": {},
    "observability": {"log_level": "INFO", "log_format": "json", "log_dir": "logs/"},
    "exports": {},
    "profiles": {
        # Any new field or type change fails the build.
        "strict": {"inference": {"mode": "strict"}, "ci": {"fail_on": "minor"}},
        "loose": {"inference": {"mode": "loose"}},
        # Reproducible sampling, no symlink churn, fail only on breaking changes.
        "ci": {
            "inference": {"seed": 0},
            "output": {"latest_symlink": False},
            "ci": {"fail_on": "breaking"},
        },
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised with every issue found, one ``- path: message`` line each."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        lines = [f"- {issue.path}: {issue.message}" for issue in self.issues]
        super().__init__("invalid config:\n" + ("\n".join(lines) or "- <root>: invalid"))


class _Invalid(Exception):
    """A single field check failed; ``message`` becomes the issue text."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


Check = Callable[[object], object]


def _text(value: object) -> str:
    if not isinstance(value, str):
        raise _Invalid(f"expected string, got {type(value).__name__}")
    stripped = value.strip()
    if not stripped:
        raise _Invalid("must not be empty")
    return stripped


def _path_text(value: object) -> str:
    text = _text(value)
    if "\x00" in text:
        raise _Invalid("must not contain NUL bytes")
    return text


def _flag(value: object) -> bool:
    if not isinstance(value, bool):
        raise _Invalid(f"expected boolean, got {type(value).__name__}")
    return value


def _integer(minimum: int | None = None) -> Check:
    def check(value: object) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise _Invalid(f"expected integer, got {type(value).__name__}")
        if minimum is not None and value < minimum:
            raise _Invalid(f"must be >= {minimum}")
        return value

    return check


def _one_of(choices: tuple[str, ...]) -> Check:
    def check(value: object) -> str:
        text = _text(value)
        if text not in choices:
            raise _Invalid(f"invalid value {text!r}; expected one of: {', '.join(sorted(choices))}")
        return text

    return check


def _matching(pattern: re.Pattern[str], message: str) -> Check:
    def check(value: object) -> str:
        text = _text(value)
        if not pattern.fullmatch(text):
            raise _Invalid(message)
        return text

    return check


def _schema_version(value: object) -> int:
    version = _integer(minimum=1)(value)
    assert isinstance(version, int)
    if version != ConfigSchemaVersion:
        raise _Invalid(migration_guidance(version))
    return version


@dataclass(frozen=True, slots=True)
class _Field:
    check: Check
    required: bool = True


# Field order is the order issues are reported in within a section.
_SECTIONS: Final[dict[str, dict[str, _Field]]] = {
    "meta": {"schema_version": _Field(_schema_version)},
    "inference": {
        "mode": _Field(_one_of(INFERENCE_MODES)),
        "sample_strategy": _Field(_one_of(SAMPLE_STRATEGIES)),
        "sample_size": _Field(_integer(minimum=1)),
        "max_array_sample": _Field(_integer(minimum=1)),
        "max_depth": _Field(_integer(minimum=0)),
        "seed": _Field(_integer(), required=False),
    },
    "output": {
        "root": _Field(_path_text),
        "export_type": _Field(_matching(_SLUG, "must match ^[a-z][a-z0-9_-]*$")),
        "latest_symlink": _Field(_flag),
    },
    "ci": {"fail_on": _Field(_one_of(FAIL_ON_LEVELS), required=False)},
    "observability": {
        "log_level": _Field(_one_of(LOG_LEVELS)),
        "log_format": _Field(_one_of(LOG_FORMATS)),
        "log_dir": _Field(_path_text),
    },
}
_REQUIRED_SECTIONS: Final[frozenset[str]] = frozenset(
    {"meta", "inference", "output", "observability"}
)
_OVERLAY_SECTIONS: Final[tuple[str, ...]] = ("ci", "inference", "observability", "output")


def _extension_list(value: object, path: str, issues: _Issues) -> list[str]:
    if not isinstance(value, list):
        raise _Invalid(f"expected array, got {type(value).__name__}")
    found: set[str] = set()
    for index, item in enumerate(value):
        item_path = f"{path}[{index}]"
        try:
            extension = _text(item)
        except _Invalid as exc:
            issues.add(item_path, exc.message)
            continue
        if not extension.startswith(".") or "/" in extension:
            issues.add(item_path, "extension must start with '.' (example: .json)")
            continue
        found.add(extension.lower())
    return sorted(found)


_EXPORT_FIELDS: Final[dict[str, _Field]] = {
    "name": _Field(_text, required=False),
    "description": _Field(_text, required=False),
    "output_name": _Field(
        _matching(
            _OUTPUT_NAME, "must be a single path segment of letters, digits, '.', '_' or '-'"
        ),
        required=False,
    ),
}


class _Issues:
    def __init__(self) -> None:
        self.items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self.items.append(ConfigValidationIssue(path, message))

    def mapping(self, value: object, path: str) -> dict[str, object] | None:
        if not isinstance(value, Mapping):
            self.add(path, f"expected object, got {type(value).__name__}")
            return None
        if not all(isinstance(key, str) for key in value):
            self.add(path, "object keys must be strings")
            return None
        return dict(value)

    def fields(
        self,
        payload: Mapping[str, object],
        rules: Mapping[str, _Field],
        path: str,
        *,
        partial: bool = False,
        extra_keys: frozenset[str] = frozenset(),
    ) -> dict[str, Any]:
        """Check ``payload`` against ``rules``; return the keys that passed."""

        for key in sorted(payload):
            if key not in rules and key not in extra_keys:
                self.add(f"{path}.{key}", "unknown field")
        if not partial:
            for key in sorted(rules):
                if rules[key].required and key not in payload:
                    self.add(f"{path}.{key}", "missing required field")
        accepted: dict[str, Any] = {}
        for key, rule in rules.items():
            if key not in payload:
                continue
            try:
                accepted[key] = rule.check(payload[key])
            except _Invalid as exc:
                self.add(f"{path}.{key}", exc.message)
        return accepted


def default_config() -> ValidatorConfig:
    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    """Explain what to upgrade when ``meta.schema_version`` is not the supported one."""

    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade export-validator.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the export-validator package"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto a copy of ``base``; nested tables merge key by key."""

    merged: dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = merge_config(current, value)
        elif isinstance(value, Mapping):
            merged[key] = merge_config({}, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def apply_profile_overlay(config: Mapping[str, object], profile: str | None) -> dict[str, Any]:
    """Merge ``profiles.<profile>`` over ``config`` and validate the result."""

    name = (profile or "").strip()
    if not name:
        return merge_config({}, config)
    profiles = config.get("profiles")
    overlay = profiles.get(name) if isinstance(profiles, Mapping) else None
    if not isinstance(overlay, Mapping):
        raise ConfigValidationError(
            [ConfigValidationIssue("profiles", f"profile {name!r} is not defined")]
        )
    return assert_valid_config(merge_config(config, overlay), active_profile=name)


def validate_config(
    config: Mapping[str, object] | object,
    *,
    active_profile: str | None = None,
) -> ConfigValidationResult:
    """Validate a whole config; ``config`` is ``None`` on the result when any issue was found."""

    issues = _Issues()
    root = issues.mapping(config, "<root>")
    if root is None:
        return ConfigValidationResult(None, tuple(issues.items))

    known = set(_SECTIONS) | {"exports", "profiles"}
    for key in sorted(root):
        if key not in known:
            issues.add(key, "unknown field")
    for key in sorted(_REQUIRED_SECTIONS - set(root)):
        issues.add(key, "missing required field")

    validated: dict[str, Any] = {}
    for section in sorted(known):
        if root.get(section) is None:
            continue
        payload = issues.mapping(root[section], section)
        if payload is None:
            continue
        if section == "exports":
            validated[section] = _validate_exports(payload, issues)
        elif section == "profiles":
            validated[section] = _validate_profiles(payload, issues)
        else:
            validated[section] = issues.fields(payload, _SECTIONS[section], section)

    profile = (active_profile or "").strip()
    if profile and profile not in validated.get("profiles", {}):
        issues.add("profiles", f"profile {profile!r} is not defined")

    if issues.items:
        return ConfigValidationResult(None, tuple(issues.items))
    return ConfigValidationResult(validated, ())


def assert_valid_config(
    config: Mapping[str, object] | object,
    *,
    active_profile: str | None = None,
) -> dict[str, Any]:
    result = validate_config(config, active_profile=active_profile)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_exports(payload: Mapping[str, object], issues: _Issues) -> dict[str, Any]:
    exports: dict[str, Any] = {}
    for export_type in sorted(payload):
        path = f"exports.{export_type}"
        if not _SLUG.fullmatch(export_type):
            issues.add(path, "export type must match ^[a-z][a-z0-9_-]*$")
            continue
        entry = issues.mapping(payload[export_type], path)
        if entry is None:
            continue
        parsed = issues.fields(
            entry, _EXPORT_FIELDS, path, extra_keys=frozenset({"extensions"})
        )
        if "extensions" in entry:
            try:
                parsed["extensions"] = _extension_list(
                    entry["extensions"], f"{path}.extensions", issues
                )
            except _Invalid as exc:
                issues.add(f"{path}.extensions", exc.message)
        exports[export_type] = parsed
    return exports


def _validate_profiles(payload: Mapping[str, object], issues: _Issues) -> dict[str, Any]:
    profiles: dict[str, Any] = {}
    for name in sorted(payload):
        path = f"profiles.{name}"
        if not _SLUG.fullmatch(name):
            issues.add(path, "profile name must match ^[a-z][a-z0-9_-]*$")
            continue
        overlay = issues.mapping(payload[name], path)
        if overlay is None:
            continue
        for key in sorted(set(overlay) - set(_OVERLAY_SECTIONS)):
            issues.add(f"{path}.{key}", "unknown field")
        sections: dict[str, Any] = {}
        for section in _OVERLAY_SECTIONS:
            if overlay.get(section) is None:
                continue
            body = issues.mapping(overlay[section], f"{path}.{section}")
            if body is not None:
                sections[section] = issues.fields(
                    body, _SECTIONS[section], f"{path}.{section}", partial=True
                )
        profiles[name] = sections
    return profiles


__all__ = [
    "BUILTIN_PROFILE_NAMES",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "ExportTypeConfig",
    "FAIL_ON_LEVELS",
    "INFERENCE_MODES",
    "LOG_FORMATS",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "ProfileOverlay",
    "SAMPLE_STRATEGIES",
    "ValidatorConfig",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
