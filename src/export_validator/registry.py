"""
export-validator — export profile registry

File: src/export_validator/registry.py
Last updated: 2026-10-18

Purpose
- Map an export type (``telegram``, ``google-takeout``, ...) to the output
  directory its version history lives in and the file extensions decoded for it.

Functional requirements
- Built-in profiles are registered by ``ExportProfileRegistry.default()``.
- ``[exports.<type>]`` config entries override or extend built-ins field by field.
- Unknown export types fall back to ``generic``.
- Registries are plain objects passed to the pipeline; there is no module-level instance.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Final

import structlog

from export_validator.constants import STRUCTURED_EXTENSIONS

GENERIC_EXPORT_TYPE: Final[str] = "generic"

_EXPORT_TYPE_RE: Final[re.Pattern[str]] = re.compile(r"^[a-z][a-z0-9_-]*$")
_OUTPUT_NAME_RE: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def _normalize_extension(raw: str) -> str:
    text = raw.strip().lower()
    if not text:
        raise ValueError("file extension must not be empty")
    return text if text.startswith(".") else f".{text}"


@dataclass(frozen=True, slots=True)
class ExportProfile:
    """How one export type is stored and which files are decoded for it."""

    type: str
    name: str
    description: str
    output_name: str
    extensions: frozenset[str] = field(default=STRUCTURED_EXTENSIONS)

    def __post_init__(self) -> None:
        if not _EXPORT_TYPE_RE.fullmatch(self.type):
            raise ValueError(f"invalid export type {self.type!r}")
        if not self.name.strip():
            raise ValueError(f"export type {self.type!r} needs a display name")
        if not _OUTPUT_NAME_RE.fullmatch(self.output_name):
            raise ValueError(
                f"export type {self.type!r} has invalid output_name {self.output_name!r}"
            )
        extensions = frozenset(_normalize_extension(ext) for ext in self.extensions)
        if not extensions:
            raise ValueError(f"export type {self.type!r} must decode at least one extension")
        object.__setattr__(self, "extensions", extensions)

    def to_dict(self) -> dict[str, object]:
        return {
            "type": self.type,
            "name": self.name,
            "description": self.description,
            "output_name": self.output_name,
            "extensions": sorted(self.extensions),
        }


_BUILTIN_PROFILES: Final[tuple[ExportProfile, ...]] = (
    ExportProfile(
        type="telegram",
        name="Telegram Export",
        description="Telegram chat export with HTML and media files",
        output_name="telegram-export",
    ),
    ExportProfile(
        type="google-takeout",
        name="Google Takeout",
        description="Google account data export",
        output_name="google-takeout",
    ),
    ExportProfile(
        type="twitter-archive",
        name="Twitter Archive",
        description="Twitter/X account archive with JS-wrapped JSON files",
        output_name="twitter-archive",
        extensions=STRUCTURED_EXTENSIONS | {".js"},
    ),
    ExportProfile(
        type=GENERIC_EXPORT_TYPE,
        name="Generic Export",
        description="Generic data export with mixed file types",
        output_name="generic-export",
    ),
)


class ExportProfileRegistry:
    """Lookup table of export profiles keyed by export type."""

    def __init__(
        self,
        profiles: Iterable[ExportProfile] = (),
        *,
        logger: Any | None = None,
    ) -> None:
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._profiles: dict[str, ExportProfile] = {}
        for profile in profiles:
            self.register(profile)

    @classmethod
    def default(cls, *, logger: Any | None = None) -> ExportProfileRegistry:
        return cls(_BUILTIN_PROFILES, logger=logger)

    @classmethod
    def from_config(
        cls,
        exports: Mapping[str, Mapping[str, object]],
        *,
        logger: Any | None = None,
    ) -> ExportProfileRegistry:
        """Built-in profiles overlaid with validated ``[exports.<type>]`` entries."""

        registry = cls.default(logger=logger)
        for export_type in sorted(exports):
            entry = exports[export_type]
            base = registry.get(export_type)
            if base is None:
                base = ExportProfile(
                    type=export_type,
                    name=export_type,
                    description="",
                    output_name=export_type,
                )
            overrides: dict[str, Any] = {
                key: entry[key] for key in ("name", "description", "output_name") if key in entry
            }
            if "extensions" in entry:
                raw_extensions = entry["extensions"]
                if not isinstance(raw_extensions, Iterable) or isinstance(raw_extensions, str):
                    raise ValueError(f"exports.{export_type}.extensions must be a list")
                overrides["extensions"] = frozenset(str(item) for item in raw_extensions)
            registry.register(replace(base, **overrides))
        return registry

    def register(self, profile: ExportProfile) -> None:
        if profile.type in self._profiles:
            self._logger.debug("export_type_overridden", export_type=profile.type)
        self._profiles[profile.type] = profile

    def get(self, export_type: str) -> ExportProfile | None:
        return self._profiles.get(export_type)

    def get_or_default(self, export_type: str | None) -> ExportProfile:
        if export_type is not None and export_type in self._profiles:
            return self._profiles[export_type]
        generic = self._profiles.get(GENERIC_EXPORT_TYPE)
        if generic is None:
            raise LookupError(f"unknown export type {export_type!r} and no generic profile")
        if export_type is not None:
            self._logger.warning(
                "export_type_unknown", export_type=export_type, fallback=GENERIC_EXPORT_TYPE
            )
        return generic

    def list(self) -> list[str]:
        return sorted(self._profiles)

    def profiles(self) -> list[ExportProfile]:
        return [self._profiles[key] for key in sorted(self._profiles)]

    def __contains__(self, export_type: object) -> bool:
        return export_type in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)


__all__ = ["GENERIC_EXPORT_TYPE", "ExportProfile", "ExportProfileRegistry"]
