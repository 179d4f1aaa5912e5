"""
export-validator — validation pipeline facade

File: src/export_validator/validator.py
Last updated: 2026-10-18

Purpose
- Run one validation: process the input, infer a schema per structured file,
  diff against the previous snapshot, and persist the next version.

Functional requirements
- The previous snapshot is the latest persisted version, or an explicit
  snapshot file when one is given.
- Files that cannot be decoded are reported as warnings and their schema is omitted.
- The first observed state becomes ``1.0.0``; later states bump by the most
  severe detected change.
- When a CI threshold is configured and reached, nothing is persisted and the
  result is flagged as a failed gate.
- Reading the latest version, diffing against it and publishing the next one
  happen under the store lock, so concurrent runs never share a baseline.
- Each file is decoded lazily and inferred in the worker that reads it.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from export_validator import __version__
from export_validator.config.schema import default_config
from export_validator.constants import DEFAULT_DECODE_WORKERS
from export_validator.detection import ChangeDetector, aggregate_severity
from export_validator.domain.models import (
    ChangeReport,
    ChangeSeverity,
    FieldChange,
    Snapshot,
    ValidationWarning,
    VersionMetadata,
)
from export_validator.domain.schema_types import SchemaType
from export_validator.domain.semver import VersionBump
from export_validator.errors import (
    ExportValidatorError,
    InputError,
    ParseError,
    UnsupportedFormatError,
)
from export_validator.inference import InferenceConfig, SchemaInferenceEngine
from export_validator.ingestion import FileProcessor, ProcessedInput
from export_validator.observability import correlation_scope
from export_validator.persistence import LocalFileStore, SnapshotStore
from export_validator.registry import ExportProfile, ExportProfileRegistry
from export_validator.reporting import build_change_report, build_summary, should_fail
from export_validator.utils.concurrency import map_ordered
from export_validator.versioning import VersionManager, VersionPlan


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of one ``validate`` call.

    ``metadata`` and ``report`` are ``None`` when the CI gate stopped the run
    before anything was persisted.
    """

    snapshot: Snapshot
    changes: tuple[FieldChange, ...] = ()
    metadata: VersionMetadata | None = None
    warnings: tuple[ValidationWarning, ...] = ()
    report: ChangeReport | None = None
    previous_version: str | None = None
    gate_failed: bool = False

    @property
    def persisted(self) -> bool:
        return self.metadata is not None

    def to_dict(self) -> dict[str, object]:
        return {
            "version": None if self.metadata is None else self.metadata.to_dict(),
            "previous_version": self.previous_version,
            "checksum": self.snapshot.checksum,
            "schemas": sorted(self.snapshot.schemas),
            "summary": build_summary(self.changes).to_dict(),
            "changes": [change.to_dict() for change in self.changes],
            "warnings": [warning.to_dict() for warning in self.warnings],
            "gate_failed": self.gate_failed,
        }


@dataclass(frozen=True, slots=True)
class _InferredSchemas:
    schemas: dict[str, SchemaType] = field(default_factory=dict)
    warnings: list[ValidationWarning] = field(default_factory=list)


@dataclass(slots=True)
class _Outcome:
    changes: tuple[FieldChange, ...] = ()
    previous_version: str | None = None


class ExportValidator:
    """Pipeline over one export identity, configured from an effective config mapping."""

    def __init__(
        self,
        config: Mapping[str, Any] | None = None,
        *,
        registry: ExportProfileRegistry | None = None,
        store: SnapshotStore | None = None,
        clock: Callable[[], datetime] | None = None,
        logger: Any | None = None,
    ) -> None:
        effective: Mapping[str, Any] = config if config is not None else default_config()
        output = effective["output"]
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._registry = (
            registry
            if registry is not None
            else ExportProfileRegistry.from_config(effective.get("exports", {}))
        )
        self._profile = self._registry.get_or_default(output.get("export_type"))
        self._inference = InferenceConfig.from_mapping(effective["inference"])
        ci_section = effective.get("ci", {})
        fail_on = ci_section.get("fail_on")
        self._fail_on = None if fail_on is None else ChangeSeverity(fail_on)
        self._store = store if store is not None else LocalFileStore(output["root"])
        self._engine = SchemaInferenceEngine(self._inference)
        self._detector = ChangeDetector()
        self._versions = VersionManager(
            self._store,
            self._profile.output_name,
            latest_symlink=bool(output.get("latest_symlink", True)),
            validator_version=__version__,
            clock=clock,
        )

    @property
    def profile(self) -> ExportProfile:
        return self._profile

    @property
    def versions(self) -> VersionManager:
        return self._versions

    def validate(
        self,
        input_path: str | os.PathLike[str],
        *,
        snapshot_path: str | os.PathLike[str] | None = None,
    ) -> ValidationResult:
        """Validate ``input_path`` and persist the resulting version.

        Raises ``InputError`` for unusable inputs or snapshot files and
        ``PersistenceError`` when the version store cannot be read or written.
        """

        with correlation_scope(export_type=self._profile.type):
            with FileProcessor(extensions=self._profile.extensions) as processor:
                processed = processor.process(input_path)
                inferred = self._infer_schemas(processed)

            snapshot = Snapshot.build(processed.root, inferred.schemas)
            explicit = None if snapshot_path is None else self._load_snapshot_file(snapshot_path)
            warnings = tuple(inferred.warnings)
            outcome = _Outcome()

            def decide(latest: Snapshot | None) -> VersionPlan | None:
                previous = explicit if snapshot_path is not None else latest
                if previous is None:
                    return VersionPlan(VersionBump.INITIAL)
                outcome.changes = tuple(self._detector.detect_changes(snapshot, previous))
                if previous.metadata is not None:
                    outcome.previous_version = previous.metadata.version
                if should_fail(outcome.changes, self._fail_on):
                    return None
                return VersionPlan(aggregate_severity(outcome.changes), outcome.changes)

            versioned = self._versions.commit(snapshot, decide)
            changes = outcome.changes
            if versioned is None:
                self._logger.warning(
                    "ci_gate_failed",
                    fail_on=None if self._fail_on is None else self._fail_on.value,
                    changes=len(changes),
                    previous_version=outcome.previous_version,
                )
                return ValidationResult(
                    snapshot=snapshot,
                    changes=changes,
                    warnings=warnings,
                    previous_version=outcome.previous_version,
                    gate_failed=True,
                )

            metadata = versioned.metadata
            assert metadata is not None
            with correlation_scope(version=metadata.version):
                self._logger.info(
                    "validation_complete",
                    change_type=metadata.change_type.value,
                    schemas=len(snapshot.schemas),
                    warnings=len(warnings),
                )
            return ValidationResult(
                snapshot=versioned,
                changes=changes,
                metadata=metadata,
                warnings=warnings,
                report=build_change_report(metadata, changes),
                previous_version=outcome.previous_version,
            )

    def history(self, limit: int | None = None) -> list[VersionMetadata]:
        return self._versions.get_version_history(limit)

    def compare(self, from_version: str, to_version: str) -> list[FieldChange]:
        """Changes going from ``from_version`` to ``to_version``."""

        previous, current = self._versions.compare_versions(from_version, to_version)
        return self._detector.detect_changes(current, previous)

    def _infer_schemas(self, processed: ProcessedInput) -> _InferredSchemas:
        result = _InferredSchemas()
        claimed: dict[str, str] = {}
        for node_path, source in processed.sources.items():
            if source.schema_name in claimed:
                reason = f"schema name {source.schema_name!r} already taken by another file"
                result.warnings.append(ValidationWarning(path=node_path, reason=reason))
                self._logger.warning("schema_name_collision", path=node_path)
            else:
                claimed[source.schema_name] = node_path

        def infer(node_path: str) -> SchemaType | ExportValidatorError:
            records = processed.sources[node_path].records()
            try:
                return self._engine.infer(records)
            except (ParseError, UnsupportedFormatError) as exc:
                return exc
            finally:
                records.close()

        paths = list(claimed.values())
        inferred = map_ordered(infer, paths, max_concurrency=DEFAULT_DECODE_WORKERS)
        for node_path, schema in zip(paths, inferred, strict=True):
            if isinstance(schema, ExportValidatorError):
                result.warnings.append(ValidationWarning(path=node_path, reason=str(schema)))
                self._logger.warning("file_decode_failed", path=node_path, reason=str(schema))
                continue
            result.schemas[processed.sources[node_path].schema_name] = schema
        result.warnings.sort(key=lambda warning: warning.path)
        return result

    def _load_snapshot_file(self, snapshot_path: str | os.PathLike[str]) -> Snapshot:
        path = Path(snapshot_path)
        try:
            return Snapshot.from_json(path.read_bytes())
        except OSError as exc:
            raise InputError(f"cannot read snapshot file {path}: {exc.strerror or exc}") from exc
        except ValueError as exc:
            raise InputError(f"invalid snapshot file {path}: {exc}") from exc


__all__ = ["ExportValidator", "ValidationResult"]
