"""
export-validator — version manager

File: src/export_validator/versioning/version_manager.py
Last updated: 2026-10-18

Purpose
- Assign semantic versions to snapshots of one export identity and persist them
  as immutable per-version directories plus a manifest.

Functional requirements
- The first version is always ``1.0.0`` with change type ``initial``; later
  versions bump the latest one (major/minor/patch, lower components reset).
- All version files are written before the manifest is replaced; the manifest's
  ``latest`` field is authoritative and only changes on a successful publish.
- A version directory left behind by a failed run (never published) is
  replaced by the next run that claims that version.
- A corrupt manifest reads as an empty history but blocks ``create_version``.
- Version creation is serialized per export identity; ``commit`` also holds the
  lock while the caller diffs against the latest snapshot.

Non-functional requirements
- The ``latest`` symlink is a convenience only; failures to refresh it are logged.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import structlog

from export_validator.constants import (
    CHANGES_FILENAME,
    INITIAL_VERSION,
    LATEST_LINK_NAME,
    LOCK_FILENAME,
    MANIFEST_FILENAME,
    METADATA_FILENAME,
    SCHEMA_FILE_SUFFIX,
    SCHEMAS_DIRNAME,
    SNAPSHOT_FILENAME,
    STRUCTURE_FILENAME,
    VERSION_DIR_PREFIX,
)
from export_validator.domain import schema_types
from export_validator.domain.models import (
    FieldChange,
    Snapshot,
    VersionManifest,
    VersionMetadata,
)
from export_validator.domain.semver import SemVer, VersionBump
from export_validator.errors import CorruptManifestError, PersistenceError, VersionNotFoundError
from export_validator.persistence.store import LocalFileStore, SnapshotStore
from export_validator.reporting.change_report import (
    build_change_report,
    build_summary,
    summarize,
)


@dataclass(frozen=True, slots=True)
class VersionPlan:
    """The bump for the next version, the changes behind it and an optional summary."""

    change_type: VersionBump
    changes: tuple[FieldChange, ...] = ()
    change_summary: str | None = None


class VersionManager:
    """Versioned snapshot history for the export stored under ``export_dir``."""

    def __init__(
        self,
        store: SnapshotStore,
        export_dir: str,
        *,
        latest_symlink: bool = True,
        validator_version: str = "1.0.0",
        clock: Callable[[], datetime] | None = None,
        logger: Any | None = None,
    ) -> None:
        if not export_dir or export_dir.startswith("/"):
            raise ValueError("export_dir must be a non-empty relative path")
        self._store = store
        self._export_dir = export_dir.rstrip("/")
        self._latest_symlink = latest_symlink
        self._validator_version = validator_version
        self._clock = clock if clock is not None else _utc_now
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def export_dir(self) -> str:
        return self._export_dir

    # Writes

    def create_version(
        self,
        change_type: VersionBump | str,
        snapshot: Snapshot,
        *,
        changes: Sequence[FieldChange] = (),
        change_summary: str | None = None,
    ) -> Snapshot:
        """Persist ``snapshot`` as the next version and return it with metadata attached.

        Raises ``ValueError`` for ``initial`` on a non-empty history,
        ``CorruptManifestError`` when the manifest cannot be read, and
        ``PersistenceError`` when any file cannot be written.
        """

        plan = VersionPlan(VersionBump(change_type), tuple(changes), change_summary)
        with self._store.lock(self._path(LOCK_FILENAME)):
            return self._publish(self._read_manifest(strict=True), snapshot, plan)

    def commit(
        self,
        snapshot: Snapshot,
        decide: Callable[[Snapshot | None], VersionPlan | None],
    ) -> Snapshot | None:
        """Publish ``snapshot`` with the plan ``decide`` makes from the latest persisted snapshot.

        The latest snapshot is read, ``decide`` runs and the version is written
        under one lock, so concurrent runs never plan against a stale baseline.
        ``decide`` gets ``None`` on an empty history and may return ``None`` to
        persist nothing. On an empty history the version is always ``initial``.
        """

        with self._store.lock(self._path(LOCK_FILENAME)):
            manifest = self._read_manifest(strict=True)
            latest = None if manifest.latest is None else manifest.find(manifest.latest)
            plan = decide(None if latest is None else self._read_snapshot(latest))
            if plan is None:
                return None
            return self._publish(manifest, snapshot, plan)

    # Reads

    def get_latest_version(self) -> VersionMetadata | None:
        manifest = self._read_manifest(strict=False)
        if manifest.latest is None:
            return None
        return manifest.find(manifest.latest)

    def get_version(self, version: str) -> VersionMetadata:
        manifest = self._read_manifest(strict=False)
        found = manifest.find(_normalize_version(version))
        if found is None:
            raise VersionNotFoundError(version)
        return found

    def get_version_history(self, limit: int | None = None) -> list[VersionMetadata]:
        """Versions newest first, truncated to ``limit`` when given."""

        if limit is not None and limit < 0:
            raise ValueError("limit must be >= 0")
        history = list(reversed(self._read_manifest(strict=False).versions))
        return history if limit is None else history[:limit]

    def load_snapshot(self, version: str) -> Snapshot:
        return self._read_snapshot(self.get_version(version))

    def load_latest_snapshot(self) -> Snapshot | None:
        latest = self.get_latest_version()
        if latest is None:
            return None
        return self._read_snapshot(latest)

    def compare_versions(self, version_a: str, version_b: str) -> tuple[Snapshot, Snapshot]:
        return self.load_snapshot(version_a), self.load_snapshot(version_b)

    # Internals

    def _publish(
        self, manifest: VersionManifest, snapshot: Snapshot, plan: VersionPlan
    ) -> Snapshot:
        if manifest.latest is None:
            version = INITIAL_VERSION
            bump = VersionBump.INITIAL
        elif plan.change_type is VersionBump.INITIAL:
            raise ValueError(
                f"cannot create an initial version: history already at {manifest.latest}"
            )
        else:
            version = str(SemVer.parse(manifest.latest).bump(plan.change_type))
            bump = plan.change_type

        changes = plan.changes
        change_summary = plan.change_summary
        if change_summary is None and bump is VersionBump.INITIAL:
            change_summary = "Initial version"
        elif change_summary is None:
            change_summary = summarize(build_summary(changes))

        metadata = VersionMetadata(
            version=version,
            timestamp=self._clock(),
            change_type=bump,
            breaking=bump is VersionBump.MAJOR,
            content_hash=snapshot.content_hash(),
            previous_version=manifest.latest,
            change_summary=change_summary,
            validator_version=self._validator_version,
        )
        versioned = Snapshot(
            structure=snapshot.structure,
            schemas=snapshot.schemas,
            checksum=snapshot.checksum,
            metadata=metadata,
        )
        report = build_change_report(metadata, changes)

        version_dir = self._version_dir(version)
        if self._store.exists(version_dir):
            self._logger.warning("orphan_version_replaced", version=version, path=version_dir)
            self._store.delete_tree(version_dir)

        try:
            self._write_json(f"{version_dir}/{METADATA_FILENAME}", metadata.to_dict())
            self._write_json(f"{version_dir}/{STRUCTURE_FILENAME}", snapshot.structure.to_dict())
            self._write_json(f"{version_dir}/{SNAPSHOT_FILENAME}", versioned.to_dict())
            self._write_json(f"{version_dir}/{CHANGES_FILENAME}", report.to_dict())
            for name, schema in sorted(versioned.schemas.items()):
                self._write_json(
                    f"{version_dir}/{SCHEMAS_DIRNAME}/{name}{SCHEMA_FILE_SUFFIX}",
                    schema_types.to_dict(schema),
                )
            self._write_json(self._path(MANIFEST_FILENAME), manifest.append(metadata).to_dict())
        except PersistenceError:
            self._logger.error("version_write_failed", version=version, path=version_dir)
            raise
        except OSError as exc:
            self._logger.error("version_write_failed", version=version, path=version_dir)
            raise PersistenceError(f"failed to persist version {version}: {exc}") from exc

        self._refresh_latest_link(version)
        self._logger.info(
            "version_created",
            version=version,
            change_type=bump.value,
            previous_version=manifest.latest,
            changes=len(changes),
        )
        return versioned

    def _read_snapshot(self, metadata: VersionMetadata) -> Snapshot:
        path = f"{self._version_dir(metadata.version)}/{SNAPSHOT_FILENAME}"
        try:
            raw = self._store.read(path)
        except FileNotFoundError as exc:
            raise PersistenceError(f"snapshot file missing for version {metadata.version}") from exc
        try:
            return Snapshot.from_json(raw)
        except ValueError as exc:
            raise PersistenceError(
                f"snapshot file for version {metadata.version} is invalid: {exc}"
            ) from exc

    def _path(self, name: str) -> str:
        return f"{self._export_dir}/{name}"

    def _version_dir(self, version: str) -> str:
        return self._path(f"{VERSION_DIR_PREFIX}{version}")

    def _write_json(self, path: str, payload: object) -> None:
        text = json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False) + "\n"
        self._store.write(path, text.encode("utf-8"))

    def _read_manifest(self, *, strict: bool) -> VersionManifest:
        path = self._path(MANIFEST_FILENAME)
        try:
            raw = self._store.read(path)
        except FileNotFoundError:
            return VersionManifest()
        try:
            return VersionManifest.from_json(raw)
        except ValueError as exc:
            if strict:
                raise CorruptManifestError(path, str(exc)) from exc
            self._logger.warning("manifest_corrupt", path=path, reason=str(exc))
            return VersionManifest()

    def _refresh_latest_link(self, version: str) -> None:
        if not self._latest_symlink or not isinstance(self._store, LocalFileStore):
            return
        try:
            self._store.point_symlink(
                self._path(LATEST_LINK_NAME), f"{VERSION_DIR_PREFIX}{version}"
            )
        except PersistenceError as exc:
            self._logger.warning("latest_link_failed", version=version, reason=str(exc))


def _normalize_version(version: str) -> str:
    try:
        return str(SemVer.parse(version))
    except ValueError as exc:
        raise VersionNotFoundError(version) from exc


def _utc_now() -> datetime:
    return datetime.now(UTC)


__all__ = ["VersionManager", "VersionPlan"]
