"""
export-validator — change report assembly and CI gating

File: src/export_validator/reporting/change_report.py
Last updated: 2026-10-18

Purpose
- Aggregate a change list into the ``ChangeReport`` persisted as ``changes.json``.
- Decide whether a CI run should fail for a given severity threshold.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence

from export_validator.constants import SEVERITY_WEIGHT
from export_validator.domain.models import (
    ChangeReport,
    ChangeSeverity,
    ChangeStatus,
    ChangeSummary,
    FieldChange,
    VersionMetadata,
)


def build_summary(changes: Iterable[FieldChange]) -> ChangeSummary:
    severities: Counter[ChangeSeverity] = Counter()
    statuses: Counter[ChangeStatus] = Counter()
    for change in changes:
        severities[change.severity] += 1
        statuses[change.status] += 1
    return ChangeSummary(
        breaking=severities[ChangeSeverity.BREAKING],
        minor=severities[ChangeSeverity.MINOR],
        patch=severities[ChangeSeverity.PATCH],
        added=statuses[ChangeStatus.ADDED],
        removed=statuses[ChangeStatus.REMOVED],
        modified=statuses[ChangeStatus.MODIFIED],
    )


def build_change_report(
    metadata: VersionMetadata, changes: Sequence[FieldChange]
) -> ChangeReport:
    return ChangeReport(metadata=metadata, summary=build_summary(changes), changes=tuple(changes))


def summarize(summary: ChangeSummary) -> str:
    """One-line text such as ``"1 breaking, 2 added"``; ``"No changes"`` when empty."""

    parts = [
        f"{count} {label}"
        for count, label in (
            (summary.breaking, "breaking"),
            (summary.added, "added"),
            (summary.removed, "removed"),
            (summary.modified, "modified"),
        )
        if count
    ]
    return ", ".join(parts) if parts else "No changes"


def should_fail(changes: Iterable[FieldChange], fail_on: ChangeSeverity | str | None) -> bool:
    """True when any change is at least as severe as ``fail_on`` (patch < minor < breaking)."""

    if fail_on is None:
        return False
    threshold = SEVERITY_WEIGHT[ChangeSeverity(fail_on).value]
    return any(SEVERITY_WEIGHT[change.severity.value] >= threshold for change in changes)


__all__ = ["build_change_report", "build_summary", "should_fail", "summarize"]
