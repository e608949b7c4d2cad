"""
Pytest configuration and fixtures
"""
from __future__ import annotations

import io
import sys
import zipfile
from pathlib import Path
from typing import Callable, Mapping, Union

import pytest


# Define paths
PROJECT_ROOT = Path(__file__).resolve().parent.parent
BACKEND_ROOT = PROJECT_ROOT / "backend"

if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


EntryTree = Mapping[str, Union[bytes, "EntryTree"]]


class _Unseekable(io.RawIOBase):
    """Write-only sink that forces zipfile to emit data descriptors."""

    def __init__(self) -> None:
        self.sink = io.BytesIO()

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        return self.sink.write(data)

    def seekable(self) -> bool:
        return False


def archive_bytes(
    entries: EntryTree,
    *,
    compression: int = zipfile.ZIP_DEFLATED,
    streamed: bool = False,
) -> bytes:
    """
    Build a zip archive in memory.

    Values may be bytes or another mapping, which becomes a nested archive
    built with the same options. Names ending in "/" become directory
    entries. ``streamed`` writes through a non-seekable sink so every entry
    carries a data descriptor instead of sizes in its local header.
    """
    target = _Unseekable() if streamed else io.BytesIO()
    with zipfile.ZipFile(target, "w", compression) as zf:
        for name, content in entries.items():
            if isinstance(content, Mapping):
                content = archive_bytes(content, compression=compression, streamed=streamed)
            zf.writestr(name, content)
    return target.sink.getvalue() if streamed else target.getvalue()


# Path fixtures
@pytest.fixture(scope="session")
def project_root() -> Path:
    """Fixture providing path to project root"""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def backend_root() -> Path:
    """Fixture providing path to backend directory"""
    return BACKEND_ROOT


@pytest.fixture
def write_archive(tmp_path: Path) -> Callable[..., Path]:
    """Write an archive built by ``archive_bytes`` below ``tmp_path``."""

    def _write(name: str, entries: EntryTree, **options) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(archive_bytes(entries, **options))
        return path

    return _write


@pytest.fixture
def class_tree(tmp_path: Path) -> tuple[Path, dict[str, bytes]]:
    """A ``lib/`` directory holding two class files and two other files."""
    root = tmp_path / "lib"
    (root / "sub").mkdir(parents=True)
    files = {
        "A.class": b"\xca\xfe\xba\xbeA",
        "sub/B.class": b"\xca\xfe\xba\xbeB",
    }
    for relative, payload in files.items():
        (root / relative).write_bytes(payload)
    (root / "README.md").write_text("# not a class\n")
    (root / "sub" / "B.java").write_text("class B {}\n")
    return root, files


@pytest.fixture
def zip_bytes() -> Callable[..., bytes]:
    """Expose ``archive_bytes`` to tests that need raw archive payloads."""
    return archive_bytes
