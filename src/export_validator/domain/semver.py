"""Semantic version values used to label persisted snapshots."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Final

_SEMVER_RE: Final[re.Pattern[str]] = re.compile(r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)$")


class VersionBump(StrEnum):
    INITIAL = "initial"
    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"


@dataclass(frozen=True, slots=True, order=True)
class SemVer:
    major: int
    minor: int
    patch: int

    def __post_init__(self) -> None:
        for name in ("major", "minor", "patch"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"SemVer.{name} must be a non-negative integer")

    @classmethod
    def parse(cls, text: str) -> SemVer:
        if not isinstance(text, str):
            raise ValueError(f"expected version string, got {type(text).__name__}")
        match = _SEMVER_RE.fullmatch(text.strip().removeprefix("v"))
        if match is None:
            raise ValueError(f"invalid semantic version: {text!r}")
        return cls(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    def bump(self, kind: VersionBump) -> SemVer:
        """Return the next version; lower components reset to zero."""

        if kind is VersionBump.MAJOR:
            return SemVer(self.major + 1, 0, 0)
        if kind is VersionBump.MINOR:
            return SemVer(self.major, self.minor + 1, 0)
        if kind is VersionBump.PATCH:
            return SemVer(self.major, self.minor, self.patch + 1)
        raise ValueError(f"cannot bump an existing version with {kind.value!r}")

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def is_valid_version(text: str) -> bool:
    return isinstance(text, str) and _SEMVER_RE.fullmatch(text) is not None


__all__ = ["SemVer", "VersionBump", "is_valid_version"]
