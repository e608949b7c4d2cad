from __future__ import annotations

import logging
import zipfile
import zlib
from typing import Sequence

from .archive import ArchiveWalker
from .config import ScanSettings
from .directory import DirectoryWalker
from .errors import ScanIOError
from .models import ClasspathElement, ClassFileProcessor, ElementKind, ScanReport
from .resolver import ClasspathResolver, FilesystemResolver

logger = logging.getLogger(__name__)

# zipfile raises UnicodeDecodeError for malformed central-directory names.
_IO_ERRORS = (OSError, EOFError, zipfile.BadZipFile, zlib.error, UnicodeDecodeError)


class ClasspathScanner:
    """
    Deliver every class artifact reachable from a set of classpath prefixes.

    Elements are walked depth-first, one at a time. ``finish`` is called on
    the processor only when every element was visited; any I/O failure
    aborts the scan with ``ScanIOError`` instead.
    """

    def __init__(
        self,
        settings: ScanSettings | None = None,
        *,
        resolver: ClasspathResolver | None = None,
    ) -> None:
        self.settings = settings or ScanSettings()
        self.resolver = resolver or FilesystemResolver(self.settings.search_roots)
        self.report = ScanReport()

    @property
    def issues(self):
        return self.report.issues

    @property
    def summary(self):
        return self.report.summary

    def scan(self, prefixes: Sequence[str], processor: ClassFileProcessor) -> None:
        self.report = ScanReport()
        prefixes = list(prefixes)
        elements = self.resolver.resolve_unique(prefixes)
        logger.info("Scanning %d classpath element(s) for %s", len(elements), prefixes)

        directory_walker = DirectoryWalker(
            follow_symlinks=self.settings.follow_symlinks, report=self.report
        )
        archive_walker = ArchiveWalker(
            max_nesting_depth=self.settings.max_nesting_depth, report=self.report
        )
        try:
            for element in elements:
                self._scan_element(element, prefixes, processor, directory_walker, archive_walker)
        except _IO_ERRORS as exc:
            raise ScanIOError(f"Classpath scan failed: {exc}") from exc

        processor.finish()
        logger.info(
            "Scan finished: %d artifact(s) delivered, %d issue(s)",
            self.report.summary.artifacts_delivered,
            self.report.summary.issues_count,
        )

    def _scan_element(
        self,
        element: ClasspathElement,
        prefixes: Sequence[str],
        processor: ClassFileProcessor,
        directory_walker: DirectoryWalker,
        archive_walker: ArchiveWalker,
    ) -> None:
        self.report.summary.elements_scanned += 1
        path = element.path
        if element.kind is ElementKind.DIRECTORY:
            self.report.summary.directories_scanned += 1
            directory_walker.walk(path, processor.process)
        elif element.kind is ElementKind.ARCHIVE:
            with zipfile.ZipFile(path) as archive:
                archive_walker.walk(archive, prefixes, processor.process)
        else:
            directory_walker.scan_file(path, path.name, processor.process)


def scan(
    prefixes: Sequence[str],
    processor: ClassFileProcessor,
    settings: ScanSettings | None = None,
) -> None:
    """Scan ``prefixes`` with a fresh ``ClasspathScanner``."""
    ClasspathScanner(settings).scan(prefixes, processor)
