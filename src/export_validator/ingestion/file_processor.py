"""
export-validator — export input processing

File: src/export_validator/ingestion/file_processor.py
Last updated: 2026-10-18

Purpose
- Turn an input path (directory, ``.zip`` archive, or single structured file)
  into a ``FileNode`` tree plus one sample source per structured file.

Functional requirements
- Children are listed in name order; node paths are ``root/child/...``.
- Archives are extracted into a temporary directory owned by the processor and
  removed by ``close()``; members escaping the extraction root are rejected.
- The archive root is named after the archive stem.
- Schema names are the root-relative path without extension, with path
  separators replaced by ``_``.
- Symbolic links inside a tree are skipped (logged at debug level); they are
  neither followed nor listed.

Non-functional requirements
- File sizes are collected with a bounded worker pool; results are re-ordered so
  concurrency is not observable in the tree.
"""

from __future__ import annotations

import os
import zipfile
from collections.abc import Generator, Iterable
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from types import TracebackType
from typing import Any

import structlog

from export_validator.constants import DEFAULT_DECODE_WORKERS, STRUCTURED_EXTENSIONS
from export_validator.domain.models import FileNode, NodeKind
from export_validator.errors import InputError
from export_validator.ingestion.decoders import decode_records, iter_records
from export_validator.utils.concurrency import map_ordered
from export_validator.utils.fs import is_within, temp_directory


@dataclass(frozen=True, slots=True)
class SampleSource:
    """A structured file plus the schema name its records are inferred under."""

    path: Path
    relative_path: str
    schema_name: str

    def load(self, limit: int | None = None) -> list[object]:
        return decode_records(self.path, limit)

    def records(self) -> Generator[object, None, None]:
        """Lazily decoded records; close the generator to release the file early."""

        return iter_records(self.path)


@dataclass(frozen=True, slots=True)
class ProcessedInput:
    root: FileNode
    sources: dict[str, SampleSource] = field(default_factory=dict)


class FileProcessor:
    """Builds file trees from export inputs; use as a context manager to clean up archives."""

    def __init__(
        self,
        *,
        extensions: Iterable[str] = STRUCTURED_EXTENSIONS,
        max_concurrency: int = DEFAULT_DECODE_WORKERS,
        logger: Any | None = None,
    ) -> None:
        self._extensions = frozenset(ext.lower() for ext in extensions)
        self._max_concurrency = max_concurrency
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._stack = ExitStack()

    def __enter__(self) -> FileProcessor:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._stack.close()

    def process(self, input_path: str | os.PathLike[str]) -> ProcessedInput:
        path = Path(input_path)
        if not path.exists():
            raise InputError(f"input path does not exist: {path}")

        if path.is_dir():
            return self._process_tree(path, path.name or path.resolve().name)
        if path.suffix.lower() == ".zip":
            return self._process_tree(self._extract(path), path.stem)
        if path.is_file() and path.suffix.lower() in self._extensions:
            node = FileNode(
                name=path.name,
                path=path.name,
                kind=NodeKind.FILE,
                size=path.stat().st_size,
            )
            source = SampleSource(path=path, relative_path=path.name, schema_name=path.stem)
            return ProcessedInput(root=node, sources={node.path: source})
        raise InputError(f"unsupported input type: {path}")

    def _process_tree(self, directory: Path, root_name: str) -> ProcessedInput:
        sources: dict[str, SampleSource] = {}
        root = self._build_directory(directory, root_name, PurePosixPath(), sources)
        self._logger.debug(
            "input_processed",
            root=root_name,
            files=len(root.iter_files()),
            structured=len(sources),
        )
        return ProcessedInput(root=root, sources=sources)

    def _build_directory(
        self,
        directory: Path,
        node_path: str,
        relative: PurePosixPath,
        sources: dict[str, SampleSource],
    ) -> FileNode:
        try:
            with os.scandir(directory) as scan:
                entries = sorted(scan, key=lambda entry: entry.name)
        except OSError as exc:
            raise InputError(f"cannot list directory {directory}: {exc.strerror or exc}") from exc

        for entry in entries:
            if entry.is_symlink():
                self._logger.debug("symlink_skipped", path=f"{node_path}/{entry.name}")
        entries = [entry for entry in entries if not entry.is_symlink()]
        files = [entry for entry in entries if not entry.is_dir(follow_symlinks=False)]
        sizes = dict(
            zip(
                (entry.name for entry in files),
                map_ordered(_entry_size, files, max_concurrency=self._max_concurrency),
                strict=True,
            )
        )

        children: list[FileNode] = []
        for entry in entries:
            child_path = f"{node_path}/{entry.name}"
            child_relative = relative / entry.name
            if entry.name in sizes:
                children.append(
                    FileNode(
                        name=entry.name,
                        path=child_path,
                        kind=NodeKind.FILE,
                        size=sizes[entry.name],
                    )
                )
                suffix = Path(entry.name).suffix.lower()
                if suffix in self._extensions:
                    sources[child_path] = SampleSource(
                        path=Path(entry.path),
                        relative_path=str(child_relative),
                        schema_name=schema_name_for(child_relative),
                    )
                else:
                    self._logger.debug("file_skipped", path=child_path, extension=suffix)
            else:
                children.append(
                    self._build_directory(Path(entry.path), child_path, child_relative, sources)
                )

        name = node_path.rsplit("/", 1)[-1]
        return FileNode(
            name=name, path=node_path, kind=NodeKind.DIRECTORY, children=tuple(children)
        )

    def _extract(self, archive: Path) -> Path:
        destination = self._stack.enter_context(temp_directory())
        try:
            with zipfile.ZipFile(archive) as bundle:
                for member in bundle.infolist():
                    if not is_within(destination / member.filename, destination):
                        raise InputError(
                            f"archive member escapes extraction root: {member.filename}"
                        )
                bundle.extractall(destination)
        except zipfile.BadZipFile as exc:
            raise InputError(f"invalid zip archive {archive}: {exc}") from exc
        except OSError as exc:
            raise InputError(f"cannot extract {archive}: {exc.strerror or exc}") from exc
        self._logger.info("archive_extracted", archive=str(archive))
        return destination


def schema_name_for(relative: PurePosixPath | str) -> str:
    """``messages/chat.json`` becomes ``messages_chat``."""

    pure = PurePosixPath(relative)
    without_suffix = pure.with_suffix("") if pure.suffix else pure
    return str(without_suffix).replace("/", "_").replace("\\", "_")


def _entry_size(entry: os.DirEntry[str]) -> int | None:
    try:
        return entry.stat(follow_symlinks=False).st_size
    except OSError:
        return None


__all__ = ["FileProcessor", "ProcessedInput", "SampleSource", "schema_name_for"]
