from __future__ import annotations

import logging
import os
import zipfile
from pathlib import Path
from typing import Iterable, Iterator, List, Protocol, Sequence

from .matcher import is_archive_file
from .models import ClasspathElement, ElementKind

logger = logging.getLogger(__name__)


class ClasspathResolver(Protocol):
    def resolve_unique(self, prefixes: Sequence[str]) -> List[ClasspathElement]: ...


def classify(path: Path) -> ElementKind:
    if path.is_dir():
        return ElementKind.DIRECTORY
    if is_archive_file(str(path)):
        return ElementKind.ARCHIVE
    return ElementKind.FILE


class FilesystemResolver:
    """
    Turn classpath prefixes into canonical, de-duplicated scan roots.

    A prefix naming an existing path is used as-is. Otherwise every search
    root is consulted: ``root/prefix`` when it exists, and any archive (the
    root itself or a jar/zip directly inside it) holding an entry whose name
    starts with the prefix.
    """

    def __init__(self, search_roots: Iterable[Path] | None = None) -> None:
        self.search_roots = [Path(root) for root in (search_roots or [Path.cwd()])]

    def resolve_unique(self, prefixes: Sequence[str]) -> List[ClasspathElement]:
        elements: List[ClasspathElement] = []
        seen: set[str] = set()
        for prefix in prefixes:
            found = False
            for candidate in self._candidates(prefix):
                found = True
                canonical = os.path.realpath(candidate)
                if canonical in seen:
                    continue
                seen.add(canonical)
                path = Path(canonical)
                elements.append(ClasspathElement(path=path, kind=classify(path)))
            if not found:
                logger.debug("No classpath element found for %s", prefix)
        return elements

    def _candidates(self, prefix: str) -> Iterator[Path]:
        direct = Path(prefix).expanduser()
        if direct.exists():
            yield direct
            return
        for root in self.search_roots:
            if root.is_dir():
                nested = root / prefix
                if nested.exists():
                    yield nested
                yield from (
                    archive for archive in _archives_in(root) if _archive_contains(archive, prefix)
                )
            elif root.is_file() and is_archive_file(str(root)):
                if _archive_contains(root, prefix):
                    yield root


def _archives_in(root: Path) -> List[Path]:
    try:
        return sorted(
            child for child in root.iterdir() if child.is_file() and is_archive_file(child.name)
        )
    except OSError as exc:
        logger.warning("Unable to list search root %s: %s", root, exc)
        return []


def _archive_contains(archive: Path, prefix: str) -> bool:
    try:
        with zipfile.ZipFile(archive) as zf:
            return any(name.startswith(prefix) for name in zf.namelist())
    except (OSError, zipfile.BadZipFile, UnicodeDecodeError) as exc:
        logger.warning("Unable to inspect archive %s: %s", archive, exc)
        return False
