"""
export-validator — runtime config loader.

File: src/export_validator/config/loader.py
Last updated: 2026-10-18

Purpose
- Build the effective validator config by stacking layers over the built-in
  defaults: ``export-validator.toml``, a named profile, ``EXPORT_VALIDATOR_*``
  environment variables and finally CLI flags.

Functional requirements
- Layer order (last wins): defaults, file, profile, env, CLI.
- An explicitly named config file must exist; the default one is optional.
- Env variables are declared in ``ENV_VARIABLES``; values are coerced to the
  declared type and rejected with the variable name when they do not parse.
- ``output.root`` and ``observability.log_dir`` resolve against the directory
  holding the config file (or the cwd when there is none).
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from export_validator.config.schema import (
    PATH_FIELDS,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
)

DEFAULT_CONFIG_FILE: Final[str] = "export-validator.toml"
ENV_PREFIX: Final[str] = "EXPORT_VALIDATOR_"
PROFILE_ENV: Final[str] = f"{ENV_PREFIX}PROFILE"

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "y", "on"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "no", "n", "off"})


class ConfigLoadError(ValueError):
    """Raised when the config file or an override cannot be read."""


def _parse_bool(raw: str) -> bool:
    lowered = raw.lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ValueError("expected one of true/false, yes/no, on/off, 1/0")


def _parse_int(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError("expected an integer") from None


@dataclass(frozen=True, slots=True)
class EnvVariable:
    """One ``EXPORT_VALIDATOR_*`` variable and the config key it sets."""

    section: str
    key: str
    parse: Callable[[str], object] = str

    @property
    def name(self) -> str:
        return f"{ENV_PREFIX}{self.section.upper()}_{self.key.upper()}"

    def read(self, environ: Mapping[str, str]) -> object | None:
        raw = environ.get(self.name)
        if raw is None:
            return None
        try:
            return self.parse(raw.strip())
        except ValueError as exc:
            raise ConfigLoadError(f"{self.name} ({self.section}.{self.key}): {exc}") from exc


# Export definitions and profiles are file-only.
ENV_VARIABLES: Final[tuple[EnvVariable, ...]] = (
    EnvVariable("inference", "mode"),
    EnvVariable("inference", "sample_size", _parse_int),
    EnvVariable("inference", "sample_strategy"),
    EnvVariable("inference", "max_depth", _parse_int),
    EnvVariable("inference", "max_array_sample", _parse_int),
    EnvVariable("inference", "seed", _parse_int),
    EnvVariable("output", "root"),
    EnvVariable("output", "export_type"),
    EnvVariable("output", "latest_symlink", _parse_bool),
    EnvVariable("ci", "fail_on"),
    EnvVariable("observability", "log_level"),
    EnvVariable("observability", "log_format"),
    EnvVariable("observability", "log_dir"),
)


def load_config(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return the validated effective config.

    ``cli_overrides`` uses dotted keys (``"inference.mode"``); ``None`` values
    mean "flag not given" and are skipped. A ``"profile"`` key selects a
    profile when ``profile`` is not passed directly.
    """

    env = os.environ if environ is None else environ
    overrides = dict(cli_overrides or {})
    if config_path is None:
        source = Path.cwd() / DEFAULT_CONFIG_FILE
        file_layer = _read_toml(source, required=False)
    else:
        source = Path(config_path).expanduser()
        file_layer = _read_toml(source, required=True)

    selected = _select_profile(profile, overrides, env)

    config = assert_valid_config(merge_config(default_config(), file_layer))
    if selected is not None:
        config = apply_profile_overlay(config, selected)
    config = merge_config(config, env_overrides(env))
    config = merge_config(config, _nest_overrides(overrides))

    config = normalize_paths(config, base_dir=source.resolve().parent)
    return assert_valid_config(config, active_profile=selected)


def env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Collect the config overlay described by ``EXPORT_VALIDATOR_*`` variables."""

    overlay: dict[str, Any] = {}
    for variable in ENV_VARIABLES:
        value = variable.read(environ)
        if value is not None:
            overlay.setdefault(variable.section, {})[variable.key] = value
    return overlay


def normalize_paths(config: Mapping[str, object], *, base_dir: Path) -> dict[str, Any]:
    """Make the path-valued settings absolute POSIX strings anchored at ``base_dir``."""

    normalized = merge_config({}, config)
    for section, key in PATH_FIELDS:
        block = normalized.get(section)
        if isinstance(block, dict) and isinstance(block.get(key), str):
            block[key] = _anchor(block[key], base_dir)
    return normalized


def dump_effective_config(config: Mapping[str, object]) -> str:
    """Canonical JSON for ``export-validator config --json`` and debugging."""

    return json.dumps(config, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _read_toml(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.is_file():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigLoadError(f"cannot read config file {path}: {exc}") from exc


def _select_profile(
    explicit: str | None, overrides: dict[str, object], environ: Mapping[str, str]
) -> str | None:
    candidate = overrides.pop("profile", None)
    if explicit is not None:
        candidate = explicit
    elif candidate is None:
        candidate = environ.get(PROFILE_ENV)
    if candidate is None:
        return None
    if not isinstance(candidate, str):
        raise ConfigLoadError("profile override must be a string")
    return candidate.strip() or None


def _nest_overrides(overrides: Mapping[str, object]) -> dict[str, Any]:
    nested: dict[str, Any] = {}
    for dotted, value in overrides.items():
        if value is None:
            continue
        *parents, leaf = dotted.split(".")
        if not leaf or not all(parents):
            raise ConfigLoadError(f"invalid CLI override key {dotted!r}")
        cursor = nested
        for part in parents:
            cursor = cursor.setdefault(part, {})
        cursor[leaf] = value
    return nested


def _anchor(raw: str, base_dir: Path) -> str:
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.normpath(candidate)).as_posix()


__all__ = [
    "ConfigLoadError",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "ENV_VARIABLES",
    "EnvVariable",
    "dump_effective_config",
    "env_overrides",
    "load_config",
    "normalize_paths",
]
