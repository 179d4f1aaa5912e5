"""Change report assembly and CI gating."""

from export_validator.reporting.change_report import (
    build_change_report,
    build_summary,
    should_fail,
    summarize,
)

__all__ = ["build_change_report", "build_summary", "should_fail", "summarize"]
