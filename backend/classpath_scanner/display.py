from __future__ import annotations

from typing import Iterable

from .models import ScanIssue
from .processors import ArtifactDigest


_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB", "PB")


def format_bytes(size: int) -> str:
    """Scale a byte count to the largest binary unit that keeps it >= 1."""
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{value:.2f} {_SIZE_UNITS[unit]}"


def format_digest_rows(digests: Iterable[ArtifactDigest]) -> str:
    """Build an aligned two-space padded table of artifact digests."""
    rows = [(digest.md5, format_bytes(digest.size_bytes)) for digest in digests]
    header = ("MD5", "SIZE")
    widths = [len(header[0]), len(header[1])]
    for md5, size in rows:
        widths[0] = max(widths[0], len(md5))
        widths[1] = max(widths[1], len(size))
    line = f"{header[0]:<{widths[0]}}  {header[1]:<{widths[1]}}"
    formatted = [f"{md5:<{widths[0]}}  {size:<{widths[1]}}" for md5, size in rows]
    return "\n".join([line, "-" * len(line), *formatted])


def format_issues(issues: Iterable[ScanIssue]) -> list[str]:
    return [f"{issue.code} {issue.path} {issue.message}" for issue in issues]
