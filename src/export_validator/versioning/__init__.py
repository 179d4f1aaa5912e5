"""Semantic versioning of persisted snapshots."""

from export_validator.versioning.version_manager import VersionManager, VersionPlan

__all__ = ["VersionManager", "VersionPlan"]
