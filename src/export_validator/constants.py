"""Stable constants shared across the inference, detection, and versioning stages."""

from __future__ import annotations

from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1
SNAPSHOT_SCHEMA_VERSION: Final[int] = 1
MANIFEST_SCHEMA_VERSION: Final[int] = 1

# Version produced for the first snapshot of an export identity.
INITIAL_VERSION: Final[str] = "1.0.0"

# Per-export output layout.
MANIFEST_FILENAME: Final[str] = "versions.json"
LOCK_FILENAME: Final[str] = ".versions.lock"
LATEST_LINK_NAME: Final[str] = "latest"
VERSION_DIR_PREFIX: Final[str] = "v"
METADATA_FILENAME: Final[str] = "metadata.json"
STRUCTURE_FILENAME: Final[str] = "structure.json"
SNAPSHOT_FILENAME: Final[str] = "structure.snapshot.json"
CHANGES_FILENAME: Final[str] = "changes.json"
SCHEMAS_DIRNAME: Final[str] = "schemas"
SCHEMA_FILE_SUFFIX: Final[str] = ".type.json"

# Structured file extensions understood by the file processor.
STRUCTURED_EXTENSIONS: Final[frozenset[str]] = frozenset(
    {".json", ".jsonl", ".ndjson", ".csv", ".xml", ".yaml", ".yml"}
)

# Inference defaults.
DEFAULT_SAMPLE_SIZE: Final[int] = 1000
DEFAULT_MAX_ARRAY_SAMPLE: Final[int] = 100
DEFAULT_MAX_DEPTH: Final[int] = 10
STRATIFIED_HEAD_SIZE: Final[int] = 1000
AUTO_NULLABLE_THRESHOLD: Final[float] = 0.05

# Worker threads for stat calls and per-file decoding.
DEFAULT_DECODE_WORKERS: Final[int] = 8

# Severity ordering used by CI gating (higher is more severe).
SEVERITY_WEIGHT: Final[dict[str, int]] = {
    "patch": 1,
    "minor": 2,
    "breaking": 3,
}

__all__ = [
    "AUTO_NULLABLE_THRESHOLD",
    "CHANGES_FILENAME",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_DECODE_WORKERS",
    "DEFAULT_MAX_ARRAY_SAMPLE",
    "DEFAULT_MAX_DEPTH",
    "DEFAULT_SAMPLE_SIZE",
    "INITIAL_VERSION",
    "LATEST_LINK_NAME",
    "LOCK_FILENAME",
    "MANIFEST_FILENAME",
    "MANIFEST_SCHEMA_VERSION",
    "METADATA_FILENAME",
    "SCHEMAS_DIRNAME",
    "SCHEMA_FILE_SUFFIX",
    "SEVERITY_WEIGHT",
    "SNAPSHOT_FILENAME",
    "SNAPSHOT_SCHEMA_VERSION",
    "STRATIFIED_HEAD_SIZE",
    "STRUCTURED_EXTENSIONS",
    "STRUCTURE_FILENAME",
    "VERSION_DIR_PREFIX",
]
