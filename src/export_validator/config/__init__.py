"""
export-validator config package public API.

File: src/export_validator/config/__init__.py
Last updated: 2026-10-18

Purpose
- Export config loading/validation entrypoints and public error types.
"""

from export_validator.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ENV_VARIABLES,
    ConfigLoadError,
    EnvVariable,
    dump_effective_config,
    env_overrides,
    load_config,
    normalize_paths,
)
from export_validator.config.schema import (
    BUILTIN_PROFILE_NAMES,
    DEFAULT_CONFIG,
    FAIL_ON_LEVELS,
    INFERENCE_MODES,
    PATH_FIELDS,
    SAMPLE_STRATEGIES,
    ConfigSchemaVersion,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    ProfileOverlay,
    ValidatorConfig,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    migration_guidance,
    validate_config,
)

__all__ = [
    "BUILTIN_PROFILE_NAMES",
    "ConfigLoadError",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "ENV_VARIABLES",
    "EnvVariable",
    "FAIL_ON_LEVELS",
    "INFERENCE_MODES",
    "PATH_FIELDS",
    "ProfileOverlay",
    "SAMPLE_STRATEGIES",
    "ValidatorConfig",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "env_overrides",
    "load_config",
    "merge_config",
    "migration_guidance",
    "normalize_paths",
    "validate_config",
]
