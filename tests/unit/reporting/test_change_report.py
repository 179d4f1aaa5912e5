from __future__ import annotations

from datetime import UTC, datetime

import pytest

from export_validator.domain.models import (
    ChangeReport,
    ChangeSeverity,
    ChangeStatus,
    FieldChange,
    VersionMetadata,
)
from export_validator.domain.semver import VersionBump
from export_validator.reporting import build_change_report, build_summary, should_fail, summarize

_CHANGES = (
    FieldChange(path="users.email", status=ChangeStatus.REMOVED, severity=ChangeSeverity.BREAKING),
    FieldChange(path="users.nick", status=ChangeStatus.ADDED, severity=ChangeSeverity.MINOR),
    FieldChange(path="users.bio", status=ChangeStatus.ADDED, severity=ChangeSeverity.MINOR),
    FieldChange(path="export/a.json", status=ChangeStatus.MODIFIED, severity=ChangeSeverity.PATCH),
)


def test_build_summary_counts_severities_and_statuses() -> None:
    summary = build_summary(_CHANGES)

    assert summary.breaking == 1
    assert summary.minor == 2
    assert summary.patch == 1
    assert summary.added == 2
    assert summary.removed == 1
    assert summary.modified == 1


def test_summarize_lists_non_zero_counts() -> None:
    assert summarize(build_summary(_CHANGES)) == "1 breaking, 2 added, 1 removed, 1 modified"
    assert summarize(build_summary([])) == "No changes"


@pytest.mark.parametrize(
    ("fail_on", "expected"),
    [
        (None, False),
        ("breaking", True),
        (ChangeSeverity.MINOR, True),
        ("patch", True),
    ],
)
def test_should_fail_thresholds(fail_on: ChangeSeverity | str | None, expected: bool) -> None:
    assert should_fail(_CHANGES, fail_on) is expected


def test_should_fail_ignores_less_severe_changes() -> None:
    minor_only = [change for change in _CHANGES if change.severity is not ChangeSeverity.BREAKING]

    assert not should_fail(minor_only, "breaking")
    assert should_fail(minor_only, "minor")
    assert not should_fail([], "patch")


def test_change_report_round_trips_through_json() -> None:
    metadata = VersionMetadata(
        version="2.0.0",
        timestamp=datetime(2026, 1, 1, tzinfo=UTC),
        change_type=VersionBump.MAJOR,
        breaking=True,
        content_hash="0" * 64,
        previous_version="1.0.0",
    )

    report = build_change_report(metadata, list(_CHANGES))

    assert report.changes == _CHANGES
    assert ChangeReport.from_json(report.to_json()) == report
