from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import BinaryIO, List, Optional, Protocol, runtime_checkable


class ElementKind(str, Enum):
    DIRECTORY = "directory"
    ARCHIVE = "archive"
    FILE = "file"


@dataclass(frozen=True, slots=True)
class ClasspathElement:
    path: Path
    kind: ElementKind


@dataclass(slots=True)
class ArchiveEntry:
    name: str
    is_dir: bool
    size: Optional[int] = None
    depth: int = 0


@dataclass(slots=True)
class ScanIssue:
    path: str
    code: str
    message: str


@dataclass(slots=True)
class ScanSummary:
    elements_scanned: int = 0
    directories_scanned: int = 0
    archives_scanned: int = 0
    nested_archives_scanned: int = 0
    artifacts_delivered: int = 0
    bytes_delivered: int = 0
    issues_count: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "elements_scanned": self.elements_scanned,
            "directories_scanned": self.directories_scanned,
            "archives_scanned": self.archives_scanned,
            "nested_archives_scanned": self.nested_archives_scanned,
            "artifacts_delivered": self.artifacts_delivered,
            "bytes_delivered": self.bytes_delivered,
            "issues_count": self.issues_count,
        }


@dataclass(slots=True)
class ScanReport:
    """Diagnostics gathered while walking one set of classpath elements."""

    summary: ScanSummary = field(default_factory=ScanSummary)
    issues: List[ScanIssue] = field(default_factory=list)

    def record_issue(self, path: str, code: str, message: str) -> None:
        self.issues.append(ScanIssue(path=path, code=code, message=message))
        self.summary.issues_count = len(self.issues)


@runtime_checkable
class ClassFileProcessor(Protocol):
    """
    Receives the bytes of every discovered class artifact.

    ``process`` must consume the stream before returning; the stream is
    closed as soon as the call ends. ``finish`` is invoked once after the
    last classpath element has been visited.
    """

    def process(self, stream: BinaryIO) -> None: ...

    def finish(self) -> None: ...
