"""Plain-text rendering for export-validator CLI output.

File: src/export_validator/ui/render.py
Last updated: 2026-10-18

Purpose
- Human-readable output for validate/history/compare/exports/config.
- Severity labels are colored only on a TTY, and never when ``--no-color`` or
  ``NO_COLOR`` is set.
"""

from __future__ import annotations

import os
import re
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Final, TextIO

_SEVERITY_COLORS: Final[dict[str, str]] = {
    "breaking": "\033[31m",
    "minor": "\033[33m",
    "patch": "\033[36m",
}
_RESET: Final[str] = "\033[0m"
_ANSI_RE: Final[re.Pattern[str]] = re.compile(r"\033\[[0-9;]*m")


def visible_width(text: str) -> int:
    return len(_ANSI_RE.sub("", text))


def format_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> list[str]:
    """Left-aligned columns separated by two spaces, with a dashed rule under the header.

    Widths ignore ANSI escapes so colored severity cells stay aligned. Short rows
    are padded with empty cells.
    """

    widths = [visible_width(header) for header in headers]
    padded_rows = [[*row, *[""] * (len(headers) - len(row))][: len(headers)] for row in rows]
    for row in padded_rows:
        widths = [max(width, visible_width(cell)) for width, cell in zip(widths, row)]

    def line(cells: Sequence[str]) -> str:
        parts = [cell + " " * (width - visible_width(cell)) for cell, width in zip(cells, widths)]
        return "  ".join(parts).rstrip()

    return [line(headers), "  ".join("-" * width for width in widths)] + [
        line(row) for row in padded_rows
    ]


@dataclass(slots=True)
class CLIRenderer:
    no_color: bool = False
    verbose: bool = False
    stream: TextIO = field(default_factory=lambda: sys.stdout)
    color: bool = field(init=False)

    def __post_init__(self) -> None:
        isatty = getattr(self.stream, "isatty", None)
        self.color = (
            not self.no_color
            and not os.environ.get("NO_COLOR")
            and callable(isatty)
            and bool(isatty())
        )

    def _write(self, line: str = "") -> None:
        self.stream.write(line + "\n")

    def kv(self, key: str, value: object) -> None:
        self._write(f"{key}: {value}")

    def text(self, line: str) -> None:
        self._write(line)

    def section(self, title: str) -> None:
        self._write()
        self._write(title)

    def warning(self, text: str) -> None:
        self._write(f"  Warning: {text}")

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            self._write(f"  {prefix}{entry}")

    def severity(self, level: str) -> str:
        color = _SEVERITY_COLORS.get(level)
        if color is None or not self.color:
            return level
        return f"{color}{level}{_RESET}"

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> None:
        """Print ``rows`` under ``headers``; nothing at all when there are no rows."""

        if not rows:
            return
        if title:
            self.section(title)
        for line in format_table(headers, rows):
            self._write(f"  {line}")


def create_renderer(*, no_color: bool = False, verbose: bool = False) -> CLIRenderer:
    return CLIRenderer(no_color=no_color, verbose=verbose)


__all__ = ["CLIRenderer", "create_renderer", "format_table", "visible_width"]
