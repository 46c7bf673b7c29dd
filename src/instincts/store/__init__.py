"""Instinct records and their JSON persistence.

This module provides:
- Immutable data models (frozen Pydantic models) for instincts and documents
- Whole-document load/save against a single JSON file, sync and async
- Atomic writes (temp file + rename) so readers never see a partial document
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import threading
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from instincts.errors import CorruptStoreError, InvalidImportError, StoreWriteError

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "1.0"
EXPORT_VERSION = "1.0"

MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 1.0
DEFAULT_CONFIDENCE = 0.3


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    # Timestamps written without an offset are taken to be UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Immutable Data Models (frozen Pydantic models)
# ---------------------------------------------------------------------------


class Instinct(BaseModel):
    """A single learned pattern with a confidence score (immutable).

    Unknown keys are kept as extras so records written by other tools survive
    a load/save cycle unchanged.
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    id: str = Field(min_length=1, description="Identity key, unique within a document.")
    context: str | None = Field(
        default=None,
        description="Free-form grouping tag used by context queries.",
    )
    confidence: float = Field(
        ge=MIN_CONFIDENCE,
        le=MAX_CONFIDENCE,
        strict=True,
        description="Strength of evidence for the pattern.",
    )
    usage_count: int = Field(
        default=1,
        ge=1,
        alias="usageCount",
        description="Number of times the pattern has been observed.",
    )
    created_at: datetime | None = Field(default=None, alias="createdAt")
    last_used: datetime | None = Field(default=None, alias="lastUsed")
    type: str | None = None
    description: str | None = None
    examples: list[str] | None = None
    source: str | None = None

    @field_validator("created_at", "last_used")
    @classmethod
    def normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)


class InstinctDocument(BaseModel):
    """The root persisted object: all instincts plus bookkeeping (immutable)."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    instincts: list[Instinct] = Field(default_factory=list)
    version: str = DEFAULT_VERSION
    last_updated: datetime | None = Field(default=None, alias="lastUpdated")

    @field_validator("last_updated")
    @classmethod
    def normalize_timestamp(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @model_validator(mode="after")
    def check_unique_ids(self) -> InstinctDocument:
        counts = Counter(instinct.id for instinct in self.instincts)
        duplicates = sorted(key for key, count in counts.items() if count > 1)
        if duplicates:
            raise ValueError(f"duplicate instinct ids: {', '.join(duplicates)}")
        return self


class ExportDocument(InstinctDocument):
    """A document written for sharing, stamped with export metadata."""

    exported_at: datetime = Field(default_factory=utc_now, alias="exportedAt")
    export_version: str = Field(default=EXPORT_VERSION, alias="exportVersion")


class _ImportSource(InstinctDocument):
    # Unlike the store's own file, an import source must carry the array.
    instincts: list[Instinct]


# ---------------------------------------------------------------------------
# Serialization (pure functions)
# ---------------------------------------------------------------------------


def _document_payload(document: InstinctDocument) -> dict[str, Any]:
    """Build the JSON payload; absent optional record fields are omitted."""
    payload = document.model_dump(mode="json", by_alias=True)
    payload["instincts"] = [
        instinct.model_dump(mode="json", by_alias=True, exclude_none=True)
        for instinct in document.instincts
    ]
    return payload


def _render(document: InstinctDocument) -> str:
    return json.dumps(_document_payload(document), indent=2, ensure_ascii=False) + "\n"


def _describe(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {first['msg']}" if location else first["msg"]


def _unreadable(path: Path, reason: str, cause: Exception, *, strict: bool) -> InstinctDocument:
    if strict:
        raise CorruptStoreError(path, reason) from cause
    logger.warning(
        "Ignoring unreadable instinct store %s (%s); using an empty document",
        path,
        reason,
    )
    return InstinctDocument()


def _deserialize_document(path: Path, data: bytes, *, strict: bool) -> InstinctDocument:
    if not data.strip():
        return InstinctDocument()
    try:
        return InstinctDocument.model_validate_json(data)
    except ValidationError as exc:
        return _unreadable(path, _describe(exc), exc, strict=strict)


def _temp_path(path: Path) -> Path:
    return path.with_name(f".{path.name}.{os.getpid()}.{threading.get_ident()}.tmp")


def _discard(tmp_path: Path) -> None:
    with contextlib.suppress(OSError):
        tmp_path.unlink(missing_ok=True)


def _stamp(document: InstinctDocument, now: datetime | None) -> InstinctDocument:
    return document.model_copy(update={"last_updated": now or utc_now()})


# ---------------------------------------------------------------------------
# Sync I/O
# ---------------------------------------------------------------------------


def load_document(path: str | Path, *, strict: bool = False) -> InstinctDocument:
    """Load the document at ``path``.

    A missing or blank file yields an empty document. Unreadable or
    unparsable content raises CorruptStoreError when ``strict`` is set and
    otherwise falls back to an empty document with a logged warning.
    """
    path = Path(path)
    if not path.exists():
        return InstinctDocument()
    try:
        data = path.read_bytes()
    except OSError as exc:
        return _unreadable(path, str(exc), exc, strict=strict)
    return _deserialize_document(path, data, strict=strict)


def write_document(path: str | Path, document: InstinctDocument) -> None:
    """Write ``document`` as-is, replacing the target atomically."""
    path = Path(path)
    tmp_path = _temp_path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(_render(document), encoding="utf-8")
        os.replace(tmp_path, path)
    except OSError as exc:
        _discard(tmp_path)
        raise StoreWriteError(path) from exc


def save_document(
    path: str | Path,
    document: InstinctDocument,
    *,
    now: datetime | None = None,
) -> InstinctDocument:
    """Stamp ``lastUpdated`` and write the whole document. Returns the stamped copy."""
    stamped = _stamp(document, now)
    write_document(path, stamped)
    logger.debug("Saved %d instincts to %s", len(stamped.instincts), path)
    return stamped


def load_import_source(path: str | Path) -> InstinctDocument:
    """Load a document offered for import, rejecting anything unusable."""
    path = Path(path)
    if not path.exists():
        raise InvalidImportError(path, "file not found")
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise InvalidImportError(path, str(exc)) from exc
    try:
        return _ImportSource.model_validate_json(data)
    except ValidationError as exc:
        raise InvalidImportError(path, _describe(exc)) from exc


# ---------------------------------------------------------------------------
# Async I/O (for concurrent collaborators)
# ---------------------------------------------------------------------------


async def aload_document(path: str | Path, *, strict: bool = False) -> InstinctDocument:
    """Load the document at ``path`` asynchronously using aiofiles."""
    path = Path(path)
    if not path.exists():
        return InstinctDocument()
    try:
        async with aiofiles.open(path, mode="rb") as f:
            data = await f.read()
    except OSError as exc:
        return _unreadable(path, str(exc), exc, strict=strict)
    return _deserialize_document(path, data, strict=strict)


async def asave_document(
    path: str | Path,
    document: InstinctDocument,
    *,
    now: datetime | None = None,
) -> InstinctDocument:
    """Stamp and write the whole document asynchronously using aiofiles."""
    path = Path(path)
    stamped = _stamp(document, now)
    tmp_path = _temp_path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(tmp_path, mode="w", encoding="utf-8") as f:
            await f.write(_render(stamped))
        await aiofiles.os.replace(tmp_path, path)
    except OSError as exc:
        _discard(tmp_path)
        raise StoreWriteError(path) from exc
    logger.debug("Saved %d instincts to %s", len(stamped.instincts), path)
    return stamped


__all__ = [
    "DEFAULT_CONFIDENCE",
    "DEFAULT_VERSION",
    "EXPORT_VERSION",
    "MAX_CONFIDENCE",
    "MIN_CONFIDENCE",
    "ExportDocument",
    "Instinct",
    "InstinctDocument",
    "aload_document",
    "asave_document",
    "load_document",
    "load_import_source",
    "save_document",
    "utc_now",
    "write_document",
]
