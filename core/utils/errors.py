"""Custom exceptions for core logic."""

from __future__ import annotations

from pathlib import Path


class UnterminatedBlockError(Exception):
    """Raised when a delimited block has no unescaped closing delimiter."""

    def __init__(
        self,
        message: str,
        *,
        delimiter: str,
        start: int,
        path: Path | None = None,
    ) -> None:
        super().__init__(message)
        self.delimiter = delimiter
        self.start = start
        self.path = path


class ManifestError(Exception):
    """Raised when the pipeline manifest cannot be loaded or validated."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class SnapshotError(Exception):
    """Raised when a snapshot document is not a JSON object."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path
