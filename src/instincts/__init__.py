"""
instincts - a persisted store of confidence-scored learned patterns.
"""

# PatternStore - add/reinforce, query, decay, export and import over one JSON file.
# InstinctCandidate - an observed pattern offered to the store.
from .patterns import InstinctCandidate, PatternStore

# Instinct - a single learned pattern record (immutable).
# InstinctDocument - the persisted root document.
# ExportDocument - a document stamped with export metadata.
# load_document / save_document - whole-document JSON persistence.
from .store import (
    ExportDocument,
    Instinct,
    InstinctDocument,
    load_document,
    save_document,
)

# Error hierarchy raised by the store.
from .errors import (
    CorruptStoreError,
    InstinctStoreError,
    InvalidImportError,
    StoreWriteError,
)

__all__ = [
    "CorruptStoreError",
    "ExportDocument",
    "Instinct",
    "InstinctCandidate",
    "InstinctDocument",
    "InstinctStoreError",
    "InvalidImportError",
    "PatternStore",
    "StoreWriteError",
    "load_document",
    "save_document",
]
