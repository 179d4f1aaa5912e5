"""Byte storage for version manifests and snapshots."""

from export_validator.persistence.store import LocalFileStore, SnapshotStore

__all__ = ["LocalFileStore", "SnapshotStore"]
