"""
export-validator — structured file decoders

File: src/export_validator/ingestion/decoders.py
Last updated: 2026-10-18

Purpose
- Decode one structured export file into the records handed to inference.

Functional requirements
- JSON: a top-level array yields its items; any other value is one record.
- JSON Lines (``.jsonl``/``.ndjson``): one record per non-blank line.
- CSV: header row; cells typed as int/float/bool where unambiguous, empty cell is null.
- XML: the root element becomes one nested record (attributes ``@name``, text
  ``#text``, repeated child tags become lists, scalar text is typed).
- YAML: ``yaml.safe_load_all``; a single list document yields its items.
- JS-wrapped JSON (``window.YTD.<name>.part<N> = [...]``) as shipped in Twitter archives.
- Malformed content raises ``ParseError``; unknown extensions raise ``UnsupportedFormatError``.
- ``iter_records`` is lazy: JSON Lines and CSV are read one line at a time as
  records are consumed. ``decode_records`` collects up to ``limit`` of them.
"""

from __future__ import annotations

import csv
import itertools
import json
import re
import xml.etree.ElementTree as ET
from collections.abc import Callable, Generator, Iterator
from pathlib import Path
from typing import Final

import yaml

from export_validator.errors import ParseError, UnsupportedFormatError

Decoder = Callable[[Path], Iterator[object]]

_INT_RE: Final[re.Pattern[str]] = re.compile(r"^[+-]?(0|[1-9]\d*)$")
_FLOAT_RE: Final[re.Pattern[str]] = re.compile(
    r"^[+-]?((\d+\.\d*|\.\d+)([eE][+-]?\d+)?|\d+[eE][+-]?\d+)$"
)
_JS_WRAPPED_RE: Final[re.Pattern[str]] = re.compile(
    r"^\s*window\.YTD\.[A-Za-z0-9_]+\.part\d+\s*=\s*", re.ASCII
)


def iter_records(path: str | Path) -> Generator[object, None, None]:
    """Yield the records of ``path`` by extension; see module docstring for per-format rules.

    ``UnsupportedFormatError`` is raised immediately; read and parse failures
    surface as ``ParseError`` while iterating. Close the iterator to release the
    file early.
    """

    target = Path(path)
    decoder = _DECODERS.get(target.suffix.lower())
    if decoder is None:
        raise UnsupportedFormatError(str(target), target.suffix.lower())
    return _guarded(target, decoder)


def decode_records(path: str | Path, limit: int | None = None) -> list[object]:
    if limit is not None and limit < 1:
        raise ValueError("limit must be >= 1")
    records = iter_records(path)
    try:
        return list(records if limit is None else itertools.islice(records, limit))
    finally:
        records.close()


def supported_extensions() -> frozenset[str]:
    return frozenset(_DECODERS)


def coerce_scalar(text: str) -> object:
    """Type a textual cell: bools, integers, and floats; everything else stays text."""

    lowered = text.strip().lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    stripped = text.strip()
    if _INT_RE.fullmatch(stripped):
        return int(stripped)
    if _FLOAT_RE.fullmatch(stripped):
        return float(stripped)
    return text


def _guarded(path: Path, decoder: Decoder) -> Generator[object, None, None]:
    try:
        yield from decoder(path)
    except UnicodeDecodeError as exc:
        raise ParseError(str(path), f"invalid UTF-8: {exc.reason}") from exc
    except OSError as exc:
        raise ParseError(str(path), f"cannot read file: {exc.strerror or exc}") from exc


def _decode_json(path: Path) -> Iterator[object]:
    try:
        document = json.loads(path.read_text(encoding="utf-8-sig"))
    except json.JSONDecodeError as exc:
        raise ParseError(str(path), f"invalid JSON at line {exc.lineno}: {exc.msg}") from exc
    yield from _records_from_document(document)


def _decode_js_wrapped(path: Path) -> Iterator[object]:
    text = path.read_text(encoding="utf-8-sig")
    match = _JS_WRAPPED_RE.match(text)
    if match is None:
        raise ParseError(str(path), "not a window.YTD data file")
    payload = text[match.end():].strip().rstrip(";")
    try:
        document = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ParseError(str(path), f"invalid wrapped JSON: {exc.msg}") from exc
    yield from _records_from_document(document)


def _decode_json_lines(path: Path) -> Iterator[object]:
    with path.open("r", encoding="utf-8-sig") as handle:
        for number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ParseError(str(path), f"invalid JSON on line {number}: {exc.msg}") from exc
            yield record


def _decode_csv(path: Path) -> Iterator[object]:
    with path.open("r", encoding="utf-8-sig", newline="") as handle:
        reader = csv.DictReader(handle)
        while True:
            try:
                row = next(reader)
            except StopIteration:
                return
            except csv.Error as exc:
                raise ParseError(
                    str(path), f"invalid CSV at line {reader.line_num}: {exc}"
                ) from exc
            if None in row:
                raise ParseError(str(path), f"row {reader.line_num} has more cells than the header")
            yield {
                key: None if value is None or value == "" else coerce_scalar(value)
                for key, value in row.items()
            }


def _decode_xml(path: Path) -> Iterator[object]:
    try:
        root = ET.parse(path).getroot()
    except ET.ParseError as exc:
        raise ParseError(str(path), f"invalid XML: {exc}") from exc
    yield _element_to_value(root)


def _decode_yaml(path: Path) -> Iterator[object]:
    try:
        with path.open("r", encoding="utf-8-sig") as handle:
            documents = [doc for doc in yaml.safe_load_all(handle) if doc is not None]
    except yaml.YAMLError as exc:
        raise ParseError(str(path), f"invalid YAML: {exc}") from exc
    if len(documents) == 1:
        yield from _records_from_document(documents[0])
    else:
        yield from documents


def _records_from_document(document: object) -> list[object]:
    return document if isinstance(document, list) else [document]


def _element_to_value(element: ET.Element) -> object:
    out: dict[str, object] = {
        f"@{name}": coerce_scalar(value) for name, value in element.attrib.items()
    }
    for child in element:
        value = _element_to_value(child)
        existing = out.get(child.tag)
        if child.tag not in out:
            out[child.tag] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            out[child.tag] = [existing, value]

    text = (element.text or "").strip()
    if not out:
        return coerce_scalar(text) if text else None
    if text:
        out["#text"] = coerce_scalar(text)
    return out


_DECODERS: Final[dict[str, Decoder]] = {
    ".json": _decode_json,
    ".jsonl": _decode_json_lines,
    ".ndjson": _decode_json_lines,
    ".csv": _decode_csv,
    ".xml": _decode_xml,
    ".yaml": _decode_yaml,
    ".yml": _decode_yaml,
    ".js": _decode_js_wrapped,
}


__all__ = ["coerce_scalar", "decode_records", "iter_records", "supported_extensions"]
