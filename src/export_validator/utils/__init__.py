"""Filesystem, hashing and worker-pool helpers shared across the pipeline."""

from export_validator.utils.concurrency import WorkerPool, map_ordered
from export_validator.utils.fs import atomic_write, is_within, sync_directory, temp_directory
from export_validator.utils.hashing import sha256_bytes, sha256_json, sha256_text

__all__ = [
    "WorkerPool",
    "atomic_write",
    "is_within",
    "map_ordered",
    "sha256_bytes",
    "sha256_json",
    "sha256_text",
    "sync_directory",
    "temp_directory",
]
