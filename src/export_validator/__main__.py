"""Module entrypoint for ``python -m export_validator``."""

from __future__ import annotations

from export_validator.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
