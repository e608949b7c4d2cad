from __future__ import annotations

import logging
import zipfile
from typing import BinaryIO, Callable, Sequence

from .config import DEFAULT_MAX_NESTING_DEPTH
from .errors import EntryUnavailableError, NestingDepthExceededError, ScanIOError
from .matcher import is_class_artifact, is_nested_archive, matches
from .models import ScanReport
from .readers import ArchiveEntryReader, StreamEntryReader, ZipFileEntryReader

logger = logging.getLogger(__name__)

ClassFileCallback = Callable[[BinaryIO], None]


class ArchiveWalker:
    """
    Walk a jar/zip archive and every archive nested inside it.

    Top-level entries are read through ``zipfile``; nested archives can only
    be read forward, so they are walked with a ``StreamEntryReader`` layered
    on the enclosing entry's stream.
    """

    def __init__(
        self,
        *,
        max_nesting_depth: int = DEFAULT_MAX_NESTING_DEPTH,
        report: ScanReport | None = None,
    ) -> None:
        self.max_nesting_depth = max_nesting_depth
        self.report = report if report is not None else ScanReport()

    def walk(
        self,
        archive: zipfile.ZipFile,
        prefixes: Sequence[str],
        on_class_file: ClassFileCallback,
    ) -> None:
        logger.debug("Scanning %s", archive.filename)
        self.report.summary.archives_scanned += 1
        self.walk_entries(ZipFileEntryReader(archive), prefixes, on_class_file)

    def walk_entries(
        self,
        reader: ArchiveEntryReader,
        prefixes: Sequence[str],
        on_class_file: ClassFileCallback,
    ) -> None:
        while reader.advance():
            entry = reader.current
            if entry.is_dir:
                continue
            logger.debug("Scanning entry %s", reader.entry_path())
            if is_nested_archive(entry.name):
                self._walk_nested(reader, prefixes, on_class_file)
            if is_class_artifact(entry.name) and matches(entry.name, prefixes):
                self._deliver(reader, on_class_file)

    def _walk_nested(
        self,
        reader: ArchiveEntryReader,
        prefixes: Sequence[str],
        on_class_file: ClassFileCallback,
    ) -> None:
        path = reader.entry_path()
        depth = reader.depth + 1
        if depth > self.max_nesting_depth:
            raise NestingDepthExceededError(path, self.max_nesting_depth)
        try:
            stream = reader.open_current()
        except EntryUnavailableError as exc:
            logger.warning("Unable to scan %s: %s", path, exc)
            self.report.record_issue(path, "NESTED_ARCHIVE_UNAVAILABLE", str(exc))
            return
        with stream:
            self.report.summary.nested_archives_scanned += 1
            nested = StreamEntryReader(stream, label=path, depth=depth)
            self.walk_entries(nested, prefixes, on_class_file)

    def _deliver(self, reader: ArchiveEntryReader, on_class_file: ClassFileCallback) -> None:
        # Streamed entries with a data descriptor have no size up front.
        size = reader.current.size
        try:
            stream = reader.open_current()
        except EntryUnavailableError as exc:
            raise ScanIOError(f"Unable to read class file {reader.entry_path()}: {exc}") from exc
        # Closing a nested entry's stream releases only that entry.
        with stream:
            on_class_file(stream)
        self.report.summary.artifacts_delivered += 1
        if size is not None:
            self.report.summary.bytes_delivered += size
