from __future__ import annotations


class ScannerError(Exception):
    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.code = code


class ScanIOError(ScannerError):
    """Unrecoverable I/O failure; aborts the whole scan."""

    def __init__(self, message: str, code: str = "SCAN_IO_ERROR") -> None:
        super().__init__(message, code)


class NestingDepthExceededError(ScannerError):
    def __init__(self, path: str, max_depth: int) -> None:
        super().__init__(
            f"Nested archive {path} exceeds the maximum nesting depth of {max_depth}.",
            "NESTING_DEPTH_EXCEEDED",
        )
        self.path = path
        self.max_depth = max_depth


class EntryUnavailableError(ScannerError):
    def __init__(self, message: str, code: str = "ENTRY_UNAVAILABLE") -> None:
        super().__init__(message, code)


class ConfigurationError(ScannerError):
    def __init__(self, message: str, code: str = "INVALID_CONFIGURATION") -> None:
        super().__init__(message, code)
