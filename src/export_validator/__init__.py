"""
export-validator — package root

File: src/export_validator/__init__.py
Last updated: 2026-10-18

Purpose
- Infer structural schemas from semi-structured exports, diff them against the
  previous snapshot, and assign semantic versions to every observed state.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).

Key interfaces / contracts
- ``ExportValidator`` (``export_validator.validator``) is the pipeline facade.
- Heavy submodules are imported lazily by callers.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
