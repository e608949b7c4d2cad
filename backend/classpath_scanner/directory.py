from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import BinaryIO, Callable, Set

from .matcher import is_class_artifact
from .models import ScanReport

logger = logging.getLogger(__name__)

ClassFileCallback = Callable[[BinaryIO], None]


class DirectoryWalker:
    """Deliver every ``.class`` file below a directory classpath element."""

    def __init__(self, *, follow_symlinks: bool = True, report: ScanReport | None = None) -> None:
        self.follow_symlinks = follow_symlinks
        self.report = report if report is not None else ScanReport()

    def walk(self, root: Path, on_class_file: ClassFileCallback) -> None:
        root = Path(root)
        visited: Set[str] = set()
        self._walk_folder(root, len(str(root)) + 1, on_class_file, visited)

    def _walk_folder(
        self,
        folder: Path,
        prefix_size: int,
        on_class_file: ClassFileCallback,
        visited: Set[str],
    ) -> None:
        real = os.path.realpath(folder)
        if real in visited:
            logger.debug("Skipping already visited directory %s", folder)
            return
        visited.add(real)

        try:
            with os.scandir(folder) as iterator:
                children = sorted(iterator, key=lambda item: item.name)
        except OSError as exc:
            # Stale or unreadable directories are scanned as empty.
            logger.warning("Unable to list %s: %s", folder, exc)
            self.report.record_issue(str(folder), "DIRECTORY_UNREADABLE", str(exc))
            return

        for child in children:
            if self._is_dir(child):
                self._walk_folder(Path(child.path), prefix_size, on_class_file, visited)
            elif self._is_file(child):
                relative_path = child.path[prefix_size:] if prefix_size <= len(child.path) else ""
                self.scan_file(Path(child.path), relative_path, on_class_file)

    def scan_file(self, path: Path, relative_path: str, on_class_file: ClassFileCallback) -> bool:
        """Deliver ``path`` when ``relative_path`` names a class file."""
        if not is_class_artifact(relative_path):
            return False
        logger.debug("Delivering %s", relative_path)
        with open(path, "rb") as stream:
            size = os.fstat(stream.fileno()).st_size
            on_class_file(stream)
        self.report.summary.artifacts_delivered += 1
        self.report.summary.bytes_delivered += size
        return True

    def _is_dir(self, entry: os.DirEntry) -> bool:
        try:
            return entry.is_dir(follow_symlinks=self.follow_symlinks)
        except OSError:
            return False

    def _is_file(self, entry: os.DirEntry) -> bool:
        try:
            return entry.is_file(follow_symlinks=self.follow_symlinks)
        except OSError:
            return False
