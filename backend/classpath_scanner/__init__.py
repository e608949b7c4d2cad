"""
Classpath scanning package.

Walks directories, jar/zip archives and archives nested inside archives,
streaming the bytes of every compiled class file to a processor.
"""

from .config import ScanSettings
from .errors import (
    ConfigurationError,
    EntryUnavailableError,
    NestingDepthExceededError,
    ScanIOError,
    ScannerError,
)
from .models import ClassFileProcessor, ClasspathElement, ElementKind, ScanIssue, ScanSummary
from .resolver import FilesystemResolver
from .scanner import ClasspathScanner, scan

__all__ = [
    "ClassFileProcessor",
    "ClasspathElement",
    "ClasspathScanner",
    "ConfigurationError",
    "ElementKind",
    "EntryUnavailableError",
    "FilesystemResolver",
    "NestingDepthExceededError",
    "ScanIOError",
    "ScanIssue",
    "ScanSettings",
    "ScanSummary",
    "ScannerError",
    "scan",
]
