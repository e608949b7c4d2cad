from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping

from dotenv import load_dotenv

from .errors import ConfigurationError

ROOTS_ENV = "CLASSPATH_SCANNER_ROOTS"
MAX_DEPTH_ENV = "CLASSPATH_SCANNER_MAX_DEPTH"
FOLLOW_SYMLINKS_ENV = "CLASSPATH_SCANNER_FOLLOW_SYMLINKS"

DEFAULT_MAX_NESTING_DEPTH = 32

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(slots=True)
class ScanSettings:
    """
    Tunables for a classpath scan.

    ``search_roots`` are only consulted by the filesystem resolver when a
    prefix is not itself an existing path. ``max_nesting_depth`` bounds how
    many archives deep the walker may descend; the top-level archive is
    depth 0.
    """

    search_roots: List[Path] = field(default_factory=lambda: [Path.cwd()])
    max_nesting_depth: int = DEFAULT_MAX_NESTING_DEPTH
    follow_symlinks: bool = True

    def __post_init__(self) -> None:
        if self.max_nesting_depth < 0:
            raise ConfigurationError(
                f"max_nesting_depth must be >= 0, got {self.max_nesting_depth}"
            )

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, *, dotenv: bool = True
    ) -> "ScanSettings":
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ

        settings = cls()
        raw_roots = environ.get(ROOTS_ENV)
        if raw_roots:
            settings.search_roots = [
                Path(item).expanduser() for item in raw_roots.split(os.pathsep) if item
            ]
        raw_depth = environ.get(MAX_DEPTH_ENV)
        if raw_depth:
            settings.max_nesting_depth = _parse_depth(raw_depth)
        raw_follow = environ.get(FOLLOW_SYMLINKS_ENV)
        if raw_follow:
            settings.follow_symlinks = _parse_bool(FOLLOW_SYMLINKS_ENV, raw_follow)
        return settings


def _parse_depth(raw: str) -> int:
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(f"{MAX_DEPTH_ENV} must be an integer, got {raw!r}") from exc
    if value < 0:
        raise ConfigurationError(f"{MAX_DEPTH_ENV} must be >= 0, got {value}")
    return value


def _parse_bool(name: str, raw: str) -> bool:
    token = raw.strip().lower()
    if token in _TRUE_VALUES:
        return True
    if token in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean flag, got {raw!r}")
