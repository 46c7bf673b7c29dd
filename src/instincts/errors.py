"""Exception hierarchy for the instinct store."""

from __future__ import annotations

from pathlib import Path


class InstinctStoreError(Exception):
    """Base class for every error raised by the instinct store."""


class CorruptStoreError(InstinctStoreError):
    """The store's own file exists but cannot be parsed or violates invariants."""

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Corrupt instinct store at {self.path}: {reason}")


class InvalidImportError(InstinctStoreError):
    """An import source cannot be read as a document with an instincts array."""

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Invalid instincts file {self.path}: {reason}")


class StoreWriteError(InstinctStoreError):
    """Writing a document to disk failed."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        super().__init__(f"Could not write instinct document to {self.path}")
