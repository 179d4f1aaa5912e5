"""Command-line interface router for export-validator."""

from __future__ import annotations

import argparse
import json
import sys
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from export_validator import __version__
from export_validator.config import (
    FAIL_ON_LEVELS,
    INFERENCE_MODES,
    SAMPLE_STRATEGIES,
    ConfigLoadError,
    ConfigValidationError,
    load_config,
)
from export_validator.domain.models import FieldChange, VersionMetadata
from export_validator.observability import correlation_scope, setup_logging, shutdown_logging
from export_validator.registry import ExportProfileRegistry
from export_validator.reporting import build_summary, summarize
from export_validator.ui.render import CLIRenderer, create_renderer
from export_validator.validator import ExportValidator, ValidationResult


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="export-validator",
        description=(
            "export-validator — schema inference and semantic versioning for data exports.\n\n"
            "Common workflows:\n"
            "  export-validator validate ./export       Snapshot and version an export\n"
            "  export-validator history                 List persisted versions\n"
            "  export-validator compare 1.0.0 1.1.0     Diff two persisted versions\n"
            "  export-validator exports                 List known export types\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to TOML config (default: ./export-validator.toml if present).",
    )
    common.add_argument("--profile", default=None, help="Optional config profile overlay name.")
    common.add_argument(
        "--output",
        "-o",
        default=None,
        help="Root directory holding versioned snapshots (overrides output.root).",
    )
    common.add_argument(
        "--export-type",
        "-t",
        default=None,
        help="Export type selecting the version history (overrides output.export_type).",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output and mirror logs to stderr.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # validate ------------------------------------------------------------
    validate_parser = subparsers.add_parser(
        "validate",
        parents=[common],
        help="Infer schemas for an export and persist the next version",
        description=(
            "Process a directory, .zip archive or structured file, diff it against the\n"
            "previous snapshot and persist the next semantic version."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    validate_parser.add_argument("input", help="Export directory, .zip archive, or file")
    validate_parser.add_argument("--mode", choices=INFERENCE_MODES, default=None)
    validate_parser.add_argument("--sample-size", type=int, default=None)
    validate_parser.add_argument("--sample-strategy", choices=SAMPLE_STRATEGIES, default=None)
    validate_parser.add_argument("--max-array-sample", type=int, default=None)
    validate_parser.add_argument("--max-depth", type=int, default=None)
    validate_parser.add_argument("--seed", type=int, default=None, help="Sampling seed")
    validate_parser.add_argument(
        "--snapshot",
        default=None,
        help="Compare against this snapshot file instead of the latest version",
    )
    validate_parser.add_argument(
        "--fail-on",
        choices=FAIL_ON_LEVELS,
        default=None,
        help="Exit 1 without persisting when a change of this severity or worse is found",
    )
    validate_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    validate_parser.set_defaults(handler=_cmd_validate)

    # history -------------------------------------------------------------
    history_parser = subparsers.add_parser(
        "history",
        parents=[common],
        help="List persisted versions, newest first",
    )
    history_parser.add_argument("--limit", type=int, default=None, help="Show at most N versions")
    history_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    history_parser.set_defaults(handler=_cmd_history)

    # compare -------------------------------------------------------------
    compare_parser = subparsers.add_parser(
        "compare",
        parents=[common],
        help="Show the changes between two persisted versions",
    )
    compare_parser.add_argument("from_version", metavar="FROM", help="Older version")
    compare_parser.add_argument("to_version", metavar="TO", help="Newer version")
    compare_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    compare_parser.set_defaults(handler=_cmd_compare)

    # exports -------------------------------------------------------------
    exports_parser = subparsers.add_parser(
        "exports",
        parents=[common],
        help="List registered export types",
    )
    exports_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    exports_parser.set_defaults(handler=_cmd_exports)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show the effective configuration",
    )
    config_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    config_parser.set_defaults(handler=_cmd_config)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_validate(args: argparse.Namespace) -> int:
    overrides: dict[str, object] = {
        "inference.mode": args.mode,
        "inference.sample_size": args.sample_size,
        "inference.sample_strategy": args.sample_strategy,
        "inference.max_array_sample": args.max_array_sample,
        "inference.max_depth": args.max_depth,
        "inference.seed": args.seed,
        "ci.fail_on": args.fail_on,
    }
    config = _load_effective_config(args, overrides)
    input_path = _require_str(getattr(args, "input", None), "input")
    snapshot_path = _optional_str(getattr(args, "snapshot", None))

    run_id = _new_run_id()
    handle = setup_logging(
        config["observability"], run_id=run_id, log_to_stderr=_flag(args, "verbose")
    )
    try:
        with correlation_scope(run_id=run_id):
            validator = ExportValidator(config)
            result = validator.validate(input_path, snapshot_path=snapshot_path)
    finally:
        shutdown_logging(handle)

    exit_code = 1 if result.gate_failed else 0
    payload: dict[str, object] = {
        "command": "validate",
        "run_id": run_id,
        "export_type": validator.profile.type,
        **result.to_dict(),
    }
    if _flag(args, "json"):
        _emit_json(payload)
        return exit_code

    renderer = _get_renderer(args)
    _render_validation(renderer, result, export_type=validator.profile.type)
    if renderer.verbose:
        renderer.kv("Log file", handle.log_path)
    return exit_code


def _cmd_history(args: argparse.Namespace) -> int:
    limit = getattr(args, "limit", None)
    if limit is not None and limit < 0:
        raise CLIError("--limit must be >= 0", exit_code=2)
    config = _load_effective_config(args)
    validator = ExportValidator(config)
    history = validator.history(limit)

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "history",
                "export_type": validator.profile.type,
                "versions": [item.to_dict() for item in history],
            }
        )
        return 0

    renderer = _get_renderer(args)
    if not history:
        renderer.text(f"No versions recorded for {validator.profile.name}")
        return 0
    renderer.table(
        ["Version", "Date", "Type", "Breaking", "Summary"],
        [_history_row(item) for item in history],
        title=f"Version history: {validator.profile.name}",
    )
    return 0


def _cmd_compare(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    from_version = _require_str(getattr(args, "from_version", None), "FROM")
    to_version = _require_str(getattr(args, "to_version", None), "TO")
    validator = ExportValidator(config)
    changes = validator.compare(from_version, to_version)
    summary = build_summary(changes)

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "compare",
                "from": from_version,
                "to": to_version,
                "summary": summary.to_dict(),
                "changes": [change.to_dict() for change in changes],
            }
        )
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Comparing", f"{from_version} -> {to_version}")
    renderer.kv("Summary", summarize(summary))
    _render_changes(renderer, changes)
    return 0


def _cmd_exports(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    registry = ExportProfileRegistry.from_config(config.get("exports", {}))
    profiles = registry.profiles()

    if _flag(args, "json"):
        _emit_json({"command": "exports", "exports": [item.to_dict() for item in profiles]})
        return 0

    renderer = _get_renderer(args)
    renderer.table(
        ["Type", "Name", "Output", "Description"],
        [[item.type, item.name, item.output_name, item.description] for item in profiles],
        title="Export types:",
    )
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    profile = _optional_str(getattr(args, "profile", None))

    if _flag(args, "json"):
        _emit_json({"command": "config", "active_profile": profile, "config": config})
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Active profile", profile or "(default)")
    renderer.text(json.dumps(config, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(no_color=_flag(args, "no_color"), verbose=_flag(args, "verbose"))


def _render_validation(
    renderer: CLIRenderer, result: ValidationResult, *, export_type: str
) -> None:
    renderer.kv("Export type", export_type)
    if result.metadata is not None:
        renderer.kv("Version", result.metadata.version)
        renderer.kv("Change type", result.metadata.change_type.value)
    renderer.kv("Previous version", result.previous_version or "(none)")
    renderer.kv("Schemas", len(result.snapshot.schemas))
    renderer.kv("Summary", summarize(build_summary(result.changes)))
    _render_changes(renderer, result.changes)
    if result.warnings:
        renderer.section("Warnings:")
        for warning in result.warnings:
            renderer.warning(f"{warning.path}: {warning.reason}")
    if result.gate_failed:
        renderer.section("CI gate failed: version not persisted")


def _render_changes(renderer: CLIRenderer, changes: Sequence[FieldChange]) -> None:
    if not changes:
        return
    renderer.table(
        ["Severity", "Status", "Path", "Change"],
        [
            [
                renderer.severity(change.severity.value),
                change.status.value,
                change.path,
                _type_transition(change),
            ]
            for change in changes
        ],
        title="Changes:",
    )
    if renderer.verbose:
        hints = [
            f"{change.path}: {change.migration_hint}" for change in changes if change.migration_hint
        ]
        if hints:
            renderer.section("Migration hints:")
            renderer.items(hints)


def _type_transition(change: FieldChange) -> str:
    if change.previous_type and change.current_type:
        return f"{change.previous_type} -> {change.current_type}"
    return change.current_type or change.previous_type or ""


def _history_row(item: VersionMetadata) -> list[str]:
    return [
        item.version,
        item.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
        item.change_type.value,
        "yes" if item.breaking else "no",
        item.change_summary or "",
    ]


# ---------------------------------------------------------------------------
# Config and argument helpers
# ---------------------------------------------------------------------------


def _load_effective_config(
    args: argparse.Namespace, overrides: Mapping[str, object] | None = None
) -> dict[str, Any]:
    config_path = _optional_str(getattr(args, "config_path", None))
    profile = _optional_str(getattr(args, "profile", None))
    cli_overrides: dict[str, object] = dict(overrides or {})
    output = _optional_str(getattr(args, "output", None))
    if output is not None:
        # Absolute so that it is not re-anchored at the config file's directory.
        cli_overrides["output.root"] = str(Path(output).expanduser().resolve())
    cli_overrides["output.export_type"] = _optional_str(getattr(args, "export_type", None))

    try:
        return load_config(config_path, profile=profile, cli_overrides=cli_overrides)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _new_run_id() -> str:
    return f"{datetime.now(UTC):%Y%m%dT%H%M%SZ}-{uuid.uuid4().hex[:8]}"


def _require_str(value: object, name: str) -> str:
    if not isinstance(value, str):
        raise CLIError(f"invalid {name}: expected string", exit_code=2)
    cleaned = value.strip()
    if not cleaned:
        raise CLIError(f"invalid {name}: value cannot be empty", exit_code=2)
    return cleaned


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise CLIError("invalid optional string argument", exit_code=2)
    cleaned = value.strip()
    return cleaned or None


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "build_parser", "run_cli"]


if __name__ == "__main__":
    raise SystemExit(run_cli())
