"""Console entrypoint: runs the CLI and turns failures into the documented exit codes."""

from __future__ import annotations

import sys
import traceback
from collections.abc import Iterator, Sequence
from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    GATE_FAILED = 1
    CONFIG_ERROR = 2
    PERSISTENCE_ERROR = 3
    INTERNAL_ERROR = 4

    @classmethod
    def for_exception(cls, exc: BaseException) -> ExitCode:
        """Classify ``exc`` by the first recognised error along its cause chain."""

        from export_validator.config import ConfigLoadError, ConfigValidationError
        from export_validator.errors import InputError, PersistenceError, VersionNotFoundError

        user_errors = (ConfigLoadError, ConfigValidationError, InputError, VersionNotFoundError)
        for link in _causes(exc):
            if isinstance(link, PersistenceError):
                return cls.PERSISTENCE_ERROR
            if isinstance(link, user_errors):
                return cls.CONFIG_ERROR
        return cls.INTERNAL_ERROR


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Run ``export-validator`` and return its exit code instead of raising."""

    try:
        from export_validator.ui.cli import run_cli

        return _as_exit_code(run_cli(argv))
    except SystemExit as exc:
        # argparse exits 2 on usage errors and 0 for --help/--version.
        return _as_exit_code(exc.code)
    except Exception as exc:  # noqa: BLE001 - process boundary
        code = ExitCode.for_exception(exc)
        if code is ExitCode.INTERNAL_ERROR:
            traceback.print_exception(exc, file=sys.stderr)
        else:
            print(f"error: {str(exc).strip() or type(exc).__name__}", file=sys.stderr)
        return int(code)


def _as_exit_code(raw: object) -> int:
    if raw is None:
        return int(ExitCode.SUCCESS)
    if isinstance(raw, int) and raw in set(ExitCode):
        return raw
    if isinstance(raw, str) and raw.strip():
        print(raw.strip(), file=sys.stderr)
    return int(ExitCode.INTERNAL_ERROR)


def _causes(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None


__all__ = ["ExitCode", "cli_entrypoint"]
