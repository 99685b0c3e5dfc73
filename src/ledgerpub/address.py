"""Deterministic ledger address derivation.

An address is a pure function of ``(author, title)`` under a namespace
(the program identifier).  Two derivation generations exist:

- ``SchemaVersion.RAW_TITLE`` seeds with the raw title bytes, so a title
  can be at most one seed long (32 bytes).
- ``SchemaVersion.HASHED_TITLE`` seeds with a sha256 digest of the title
  behind a domain tag, which allows titles up to 200 bytes.

The two never produce the same address for the same title.  Every caller
must go through one ``AddressDeriver`` so that dedup checks and commits
agree.
"""

from __future__ import annotations

import hashlib

from ledgerpub.config import LedgerPubConfig
from ledgerpub.errors import ValidationError
from ledgerpub.models import SchemaVersion, normalize_identity

MAX_SEED_BYTES = 32
DOMAIN_TAG = b"ledgerpub:record:v2"
ADDRESS_MARKER = b"ProgramDerivedAddress"

MAX_TITLE_BYTES: dict[SchemaVersion, int] = {
    SchemaVersion.RAW_TITLE: MAX_SEED_BYTES,
    SchemaVersion.HASHED_TITLE: 200,
}


def title_byte_length(title: str) -> int:
    """Length of ``title`` in UTF-8 bytes, not characters."""
    return len(title.encode("utf-8"))


def max_title_bytes(schema_version: SchemaVersion | int) -> int:
    return MAX_TITLE_BYTES[SchemaVersion(schema_version)]


def fits(title: str, schema_version: SchemaVersion | int) -> bool:
    """Whether ``title`` is non-empty and within the version's byte bound."""
    size = title_byte_length(title)
    return 0 < size <= max_title_bytes(schema_version)


class AddressDeriver:
    """Maps ``(author, title)`` to a stable ledger address.

    Args:
        namespace: Program identifier the addresses are derived under.
        schema_version: Canonical generation used when none is requested.
    """

    def __init__(
        self,
        namespace: str,
        schema_version: SchemaVersion | int = SchemaVersion.HASHED_TITLE,
    ) -> None:
        if not namespace:
            raise ValueError("namespace must not be empty")
        self.namespace = namespace
        self.schema_version = SchemaVersion(schema_version)
        self._namespace_bytes = namespace.encode("utf-8")

    @classmethod
    def from_config(cls, config: LedgerPubConfig) -> AddressDeriver:
        return cls(config.ledger.program_id, config.publish.schema_version)

    def derive(
        self,
        author: str | bytes,
        title: str,
        schema_version: SchemaVersion | int | None = None,
    ) -> str:
        """Derive the ledger address for ``(author, title)``.

        Raises:
            ValidationError: If the title is empty or over the byte bound, or
                the author is not a 32-byte identity.
        """
        version = self.schema_version if schema_version is None else SchemaVersion(schema_version)
        author_bytes = self._author_bytes(author)
        title_bytes = self._title_bytes(title, version)

        if version is SchemaVersion.RAW_TITLE:
            seeds = [author_bytes, title_bytes]
        else:
            seeds = [DOMAIN_TAG, author_bytes, hashlib.sha256(title_bytes).digest()]

        hasher = hashlib.sha256()
        for seed in seeds:
            hasher.update(seed)
        hasher.update(self._namespace_bytes)
        hasher.update(ADDRESS_MARKER)
        return hasher.hexdigest()

    def candidate_addresses(
        self, author: str | bytes, title: str
    ) -> list[tuple[SchemaVersion, str]]:
        """Canonical address first, then every other generation the title fits.

        Raises ValidationError if the title does not fit the canonical bound.
        """
        candidates = [(self.schema_version, self.derive(author, title))]
        for version in SchemaVersion:
            if version is not self.schema_version and fits(title, version):
                candidates.append((version, self.derive(author, title, version)))
        return candidates

    # ── Private helpers ──────────────────────────────────────────

    @staticmethod
    def _author_bytes(author: str | bytes) -> bytes:
        try:
            return bytes.fromhex(normalize_identity(author))
        except ValueError as exc:
            raise ValidationError(str(exc), field="author") from exc

    @staticmethod
    def _title_bytes(title: str, version: SchemaVersion) -> bytes:
        title_bytes = title.encode("utf-8")
        limit = max_title_bytes(version)
        if not title_bytes:
            raise ValidationError("Title must not be empty", field="title")
        if len(title_bytes) > limit:
            raise ValidationError(
                f"Title is {len(title_bytes)} bytes; the limit is {limit} bytes",
                field="title",
            )
        return title_bytes
