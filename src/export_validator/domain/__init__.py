"""Domain layer: structural type model, snapshot records, and semantic versions."""

from export_validator.domain.models import (
    ChangeKind,
    ChangeReport,
    ChangeSeverity,
    ChangeStatus,
    ChangeSummary,
    FieldChange,
    FileNode,
    NodeKind,
    Snapshot,
    ValidationWarning,
    VersionManifest,
    VersionMetadata,
    compute_checksum,
)
from export_validator.domain.semver import SemVer, VersionBump

__all__ = [
    "ChangeKind",
    "ChangeReport",
    "ChangeSeverity",
    "ChangeStatus",
    "ChangeSummary",
    "FieldChange",
    "FileNode",
    "NodeKind",
    "SemVer",
    "Snapshot",
    "ValidationWarning",
    "VersionBump",
    "VersionManifest",
    "VersionMetadata",
    "compute_checksum",
]
