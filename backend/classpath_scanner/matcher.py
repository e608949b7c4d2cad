from __future__ import annotations

from typing import Iterable

CLASS_SUFFIX = ".class"
ARCHIVE_SUFFIXES = (".jar", ".zip")


def matches(path: str, prefixes: Iterable[str]) -> bool:
    # Plain string prefix test; "com/foo" also matches "com/foobar/X.class".
    return any(path.startswith(prefix) for prefix in prefixes)


def is_class_artifact(name: str) -> bool:
    return name.endswith(CLASS_SUFFIX)


def is_nested_archive(name: str) -> bool:
    """Classify an archive entry name; suffixes are case-sensitive here."""
    return name.endswith(ARCHIVE_SUFFIXES)


def is_archive_file(path: str) -> bool:
    """Classify a top-level classpath file; suffixes are case-insensitive here."""
    return path.lower().endswith(ARCHIVE_SUFFIXES)
