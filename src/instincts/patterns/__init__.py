"""Confidence-scored pattern store built on the JSON persistence layer.

Every mutating operation is one full load -> mutate -> save cycle. Records
are immutable; updates are expressed as pure functions that return new
records, and the store swaps them into the document before saving.
"""

from __future__ import annotations

import logging
import threading
import weakref
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

from instincts.config import InstinctSettings
from instincts.store import (
    DEFAULT_CONFIDENCE,
    MAX_CONFIDENCE,
    MIN_CONFIDENCE,
    ExportDocument,
    Instinct,
    InstinctDocument,
    aload_document,
    load_document,
    load_import_source,
    save_document,
    utc_now,
    write_document,
)

logger = logging.getLogger(__name__)

REINFORCEMENT_STEP = 0.1
DECAY_STEP = 0.05
DEFAULT_DECAY_DAYS = 30
DEFAULT_HIGH_CONFIDENCE = 0.7

Clock: TypeAlias = Callable[[], datetime]

# Candidate keys that the store owns and never copies from the caller.
_STORE_MANAGED = frozenset(
    {
        "confidence",
        "usage_count",
        "usageCount",
        "created_at",
        "createdAt",
        "last_used",
        "lastUsed",
    }
)


class InstinctCandidate(BaseModel):
    """A pattern observed by a collaborator and offered to the store.

    Confidence is optional and unbounded here; the store clamps it.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str = Field(min_length=1)
    context: str | None = None
    confidence: float | None = None
    type: str | None = None
    description: str | None = None
    examples: list[str] | None = None
    source: str | None = None


# ---------------------------------------------------------------------------
# Pure Functions (confidence transitions and merge rules)
# ---------------------------------------------------------------------------


def clamp_confidence(value: float) -> float:
    """Bound a confidence value to the stored range."""
    return min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, value))


def _new_instinct(candidate: InstinctCandidate, now: datetime) -> Instinct:
    fields = {
        key: value
        for key, value in candidate.model_dump(exclude_none=True).items()
        if key not in _STORE_MANAGED
    }
    return Instinct(
        **fields,
        confidence=clamp_confidence(candidate.confidence or DEFAULT_CONFIDENCE),
        usage_count=1,
        created_at=now,
        last_used=now,
    )


def _reinforce(instinct: Instinct, now: datetime) -> Instinct:
    return instinct.model_copy(
        update={
            "confidence": min(MAX_CONFIDENCE, instinct.confidence + REINFORCEMENT_STEP),
            "last_used": now,
            "usage_count": instinct.usage_count + 1,
        }
    )


def _decay(instinct: Instinct, now: datetime, days_threshold: float) -> Instinct:
    if instinct.last_used is None:
        return instinct
    idle_days = (now - instinct.last_used) / timedelta(days=1)
    if idle_days <= days_threshold:
        return instinct
    return instinct.model_copy(
        update={"confidence": max(MIN_CONFIDENCE, instinct.confidence - DECAY_STEP)}
    )


def _merge_instincts(
    local: Sequence[Instinct],
    incoming: Sequence[Instinct],
) -> list[Instinct]:
    """Merge incoming records into local ones keyed by id (pure function).

    Unknown ids are appended. A known id is replaced only by a record with
    strictly higher confidence, in its original position; local wins ties.
    """
    merged = {instinct.id: instinct for instinct in local}
    for instinct in incoming:
        current = merged.get(instinct.id)
        if current is None or instinct.confidence > current.confidence:
            merged[instinct.id] = instinct
    return list(merged.values())


# ---------------------------------------------------------------------------
# Per-path locking
# ---------------------------------------------------------------------------


class _PathLock:
    """Re-entrant lock for one store path; dropped once no store holds it."""

    __slots__ = ("_lock", "__weakref__")

    def __init__(self) -> None:
        self._lock = threading.RLock()

    def __enter__(self) -> _PathLock:
        self._lock.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._lock.release()


_PATH_LOCKS: weakref.WeakValueDictionary[Path, _PathLock] = weakref.WeakValueDictionary()
_PATH_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Path) -> _PathLock:
    """Return the process-wide lock serializing writers of ``path``."""
    key = path.resolve()
    with _PATH_LOCKS_GUARD:
        lock = _PATH_LOCKS.get(key)
        if lock is None:
            lock = _PATH_LOCKS[key] = _PathLock()
        return lock


# ---------------------------------------------------------------------------
# Pattern Store
# ---------------------------------------------------------------------------


class PatternStore:
    """Instinct store persisted as a single JSON document.

    Nothing is cached between calls: each operation reloads the file, and
    mutating operations hold a per-path lock for their whole
    read-modify-write cycle, so stores sharing a path within one process
    never lose each other's updates. Separate processes still race and the
    last writer wins.
    """

    __slots__ = ("_path", "_strict", "_now", "_lock")

    def __init__(
        self,
        path: str | Path,
        *,
        strict: bool = False,
        now: Clock = utc_now,
    ) -> None:
        """Initialize the store.

        Args:
            path: JSON file holding the instinct document.
            strict: If True, a corrupt store file raises CorruptStoreError
                instead of being treated as empty.
            now: Clock used for every timestamp the store writes.
        """
        self._path = Path(path).expanduser()
        self._strict = strict
        self._now = now
        self._lock = _lock_for(self._path)

    @classmethod
    def from_settings(cls, settings: InstinctSettings) -> PatternStore:
        """Build a store from configured settings."""
        return cls(settings.store_path, strict=settings.strict_load)

    @property
    def path(self) -> Path:
        """Location of the underlying JSON file."""
        return self._path

    def _save(self, document: InstinctDocument, now: datetime) -> InstinctDocument:
        return save_document(self._path, document, now=now)

    # --- Reads ---

    def load(self) -> InstinctDocument:
        """Return the current document."""
        return load_document(self._path, strict=self._strict)

    async def aload(self) -> InstinctDocument:
        """Return the current document, reading asynchronously."""
        return await aload_document(self._path, strict=self._strict)

    def get(self, instinct_id: str) -> Instinct | None:
        """Return the record with ``instinct_id``, if any."""
        return next(
            (instinct for instinct in self.load().instincts if instinct.id == instinct_id),
            None,
        )

    def query_by_context(self, context: str | None = None) -> list[Instinct]:
        """Return records tagged with ``context``, or all records if it is empty."""
        return [
            instinct
            for instinct in self.load().instincts
            if not context or instinct.context == context
        ]

    def query_by_confidence(
        self, threshold: float = DEFAULT_HIGH_CONFIDENCE
    ) -> list[Instinct]:
        """Return records whose confidence is at least ``threshold``."""
        return [
            instinct
            for instinct in self.load().instincts
            if instinct.confidence >= threshold
        ]

    # --- Writes ---

    def add_or_update(self, candidate: InstinctCandidate | Mapping[str, Any]) -> Instinct:
        """Record an observation of a pattern.

        A new id is stored with the candidate's confidence (default 0.3).
        A known id is reinforced: +0.1 confidence up to 1.0, one more use,
        and a fresh ``lastUsed``. Returns the stored record.
        """
        if not isinstance(candidate, InstinctCandidate):
            candidate = InstinctCandidate.model_validate(candidate)

        with self._lock:
            document = self.load()
            now = self._now()
            instincts = list(document.instincts)
            index = next(
                (idx for idx, instinct in enumerate(instincts) if instinct.id == candidate.id),
                None,
            )
            if index is None:
                record = _new_instinct(candidate, now)
                instincts.append(record)
                logger.debug("New instinct %s (confidence %.2f)", record.id, record.confidence)
            else:
                record = _reinforce(instincts[index], now)
                instincts[index] = record
                logger.debug(
                    "Reinforced instinct %s to %.2f after %d uses",
                    record.id,
                    record.confidence,
                    record.usage_count,
                )
            self._save(document.model_copy(update={"instincts": instincts}), now)
        return record

    def decay_unused(self, days_threshold: float = DEFAULT_DECAY_DAYS) -> InstinctDocument:
        """Lower confidence by 0.05 (floor 0.1) for records idle over ``days_threshold`` days.

        The document is saved even when no record changed.
        """
        with self._lock:
            document = self.load()
            now = self._now()
            instincts = [_decay(instinct, now, days_threshold) for instinct in document.instincts]
            decayed = sum(
                before.confidence != after.confidence
                for before, after in zip(document.instincts, instincts)
            )
            saved = self._save(document.model_copy(update={"instincts": instincts}), now)
        logger.info(
            "Decayed %d of %d instincts idle over %s days",
            decayed,
            len(instincts),
            days_threshold,
        )
        return saved

    def export_to(self, destination: str | Path) -> ExportDocument:
        """Write a copy of the store, stamped with export metadata, to ``destination``."""
        destination = Path(destination).expanduser()
        if destination.resolve() == self._path.resolve():
            raise ValueError(f"Export destination {destination} is the store file itself")

        document = self.load()
        # A store seeded from an earlier export still carries its stamps.
        extras = {
            key: value
            for key, value in (document.model_extra or {}).items()
            if key not in {"exportedAt", "exportVersion"}
        }
        exported = ExportDocument(
            instincts=document.instincts,
            version=document.version,
            last_updated=document.last_updated,
            exported_at=self._now(),
            **extras,
        )
        write_document(destination, exported)
        logger.info("Exported %d instincts to %s", len(exported.instincts), destination)
        return exported

    def import_from(self, source: str | Path) -> InstinctDocument:
        """Merge the document at ``source`` into the store.

        Raises InvalidImportError, without touching the store file, when the
        source is missing, unparsable, or has no ``instincts`` array.
        """
        incoming = load_import_source(Path(source).expanduser())

        with self._lock:
            document = self.load()
            merged = _merge_instincts(document.instincts, incoming.instincts)
            saved = self._save(document.model_copy(update={"instincts": merged}), self._now())
        logger.info(
            "Imported %d instincts from %s; store now holds %d",
            len(incoming.instincts),
            source,
            len(merged),
        )
        return saved


__all__ = [
    "DECAY_STEP",
    "DEFAULT_DECAY_DAYS",
    "DEFAULT_HIGH_CONFIDENCE",
    "REINFORCEMENT_STEP",
    "InstinctCandidate",
    "PatternStore",
    "clamp_confidence",
]
