"""
export-validator — content digests

File: src/export_validator/utils/hashing.py
Last updated: 2026-10-18

Purpose
- SHA-256 hex digests for snapshot checksums and version content hashes.
- JSON payloads are hashed in canonical form (sorted keys, compact separators,
  UTF-8), so equal schemas hash equally whatever order they were built in.
"""

from __future__ import annotations

import hashlib
import json


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def sha256_text(text: str, *, encoding: str = "utf-8") -> str:
    return sha256_bytes(text.encode(encoding))


def sha256_json(payload: object) -> str:
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return sha256_text(canonical)


__all__ = ["sha256_bytes", "sha256_json", "sha256_text"]
