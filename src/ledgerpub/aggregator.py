"""Local browsing view over a fetched record snapshot.

Holds the last snapshot from ``LedgerReader`` and applies filter, sort and
pagination, always in that order, so pages are deterministic.  Hiding a
record only affects this view; the ledger never changes, and a hidden
record comes back on the next load.
"""

from __future__ import annotations

import logging
import math
import re
import unicodedata
from collections.abc import Iterable
from enum import StrEnum

from pydantic import BaseModel

from ledgerpub.config import LedgerPubConfig
from ledgerpub.errors import ReadError
from ledgerpub.models import Record, SchemaVersion
from ledgerpub.reader import LedgerReader

logger = logging.getLogger(__name__)

_DIGITS_RE = re.compile(r"([0-9]+)")


class SortKey(StrEnum):
    """Supported orderings of the view."""

    NEWEST_FIRST = "newest-first"
    TITLE_ASCENDING = "title-ascending"
    TITLE_DESCENDING = "title-descending"


class Page(BaseModel):
    """One page of the filtered, sorted view."""

    items: list[Record]
    page_number: int
    page_size: int
    total_items: int
    total_pages: int
    has_next: bool


def natural_key(text: str) -> tuple[tuple[tuple[int, int, str], ...], str]:
    """Sort key comparing case- and accent-insensitively, digit runs as numbers.

    ``"paper2"`` sorts before ``"paper10"`` and ``"Alpha"`` before ``"beta"``.
    """
    decomposed = unicodedata.normalize("NFKD", text)
    folded = "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()
    parts: list[tuple[int, int, str]] = []
    for index, part in enumerate(_DIGITS_RE.split(folded)):
        if index % 2:
            parts.append((0, int(part), part))
        elif part:
            parts.append((1, 0, part))
    return tuple(parts), text


def _newest_first_key(record: Record) -> tuple[bool, float]:
    if record.created_at is None:
        return True, 0.0
    return False, -record.created_at.timestamp()


def collapse_migrated(
    records: Iterable[Record], canonical_version: SchemaVersion = SchemaVersion.HASHED_TITLE
) -> list[Record]:
    """Drop non-canonical records whose ``(author, title)`` also has a canonical record."""
    records = list(records)
    canonical = {(r.author, r.title) for r in records if r.schema_version is canonical_version}
    return [
        r
        for r in records
        if r.schema_version is canonical_version or (r.author, r.title) not in canonical
    ]


class RecordAggregator:
    """Snapshot plus search/sort/paginate/hide for browsing."""

    def __init__(
        self,
        records: Iterable[Record] = (),
        *,
        canonical_version: SchemaVersion | int = SchemaVersion.HASHED_TITLE,
    ) -> None:
        self.canonical_version = SchemaVersion(canonical_version)
        self._snapshot: list[Record] = []
        self._hidden: set[str] = set()
        self.query = ""
        self.sort_key = SortKey.NEWEST_FIRST
        self.error = ""
        self.load(records)

    @classmethod
    def from_config(
        cls, config: LedgerPubConfig, records: Iterable[Record] = ()
    ) -> RecordAggregator:
        return cls(records, canonical_version=config.publish.schema_version)

    # ── Snapshot ─────────────────────────────────────────────────

    def load(self, records: Iterable[Record]) -> None:
        """Replace the snapshot; hidden records become visible again."""
        self._snapshot = collapse_migrated(records, self.canonical_version)
        self._hidden.clear()

    async def refresh(self, reader: LedgerReader) -> list[Record]:
        """Fetch a fresh snapshot.

        A failed fetch leaves an empty view with ``error`` set instead of
        raising.
        """
        try:
            records = await reader.fetch_all()
        except ReadError as exc:
            logger.warning("Refresh failed: %s", exc)
            self.error = str(exc)
            self.load([])
            return []
        self.error = ""
        self.load(records)
        return self.snapshot

    @property
    def snapshot(self) -> list[Record]:
        """Visible records in ledger order."""
        return [r for r in self._snapshot if r.record_id not in self._hidden]

    # ── View operations ──────────────────────────────────────────

    def search(self, query: str) -> list[Record]:
        """Filter by case-insensitive title substring; empty query matches all."""
        self.query = query
        return self._filtered()

    def sort(self, key: SortKey | str) -> list[Record]:
        """Order the current filter result by ``key``.

        Raises ValueError for an unknown key.
        """
        self.sort_key = SortKey(key)
        return self._sorted(self._filtered())

    def paginate(self, page_size: int, page_number: int) -> Page:
        """Return a 1-based page of the filtered, then sorted, view."""
        if page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}")
        if page_number < 1:
            raise ValueError(f"page_number must be positive, got {page_number}")

        ordered = self._sorted(self._filtered())
        total_pages = math.ceil(len(ordered) / page_size)
        start = (page_number - 1) * page_size
        return Page(
            items=ordered[start : start + page_size],
            page_number=page_number,
            page_size=page_size,
            total_items=len(ordered),
            total_pages=total_pages,
            has_next=page_number < total_pages,
        )

    def hide(self, record_id: str) -> bool:
        """Suppress a record from this view only.

        Returns False if no visible record has that id.
        """
        if record_id in self._hidden or not any(r.record_id == record_id for r in self._snapshot):
            return False
        self._hidden.add(record_id)
        return True

    # ── Private helpers ──────────────────────────────────────────

    def _filtered(self) -> list[Record]:
        needle = self.query.casefold()
        visible = self.snapshot
        if not needle:
            return visible
        return [r for r in visible if needle in r.title.casefold()]

    def _sorted(self, records: list[Record]) -> list[Record]:
        if self.sort_key is SortKey.NEWEST_FIRST:
            return sorted(records, key=_newest_first_key)
        reverse = self.sort_key is SortKey.TITLE_DESCENDING
        return sorted(records, key=lambda r: natural_key(r.title), reverse=reverse)
