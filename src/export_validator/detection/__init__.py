"""Snapshot differencing and change classification."""

from export_validator.detection.change_detector import ChangeDetector, aggregate_severity

__all__ = ["ChangeDetector", "aggregate_severity"]
