"""Publication domain models — pure Pydantic v2 data types.

A ``Record`` is the published unit: an immutable index entry pointing at
content held by the content store.  ``RecordPayload`` is the versioned
struct actually stored at a ledger address; the remaining models describe
publish requests and the state of a pipeline run.
"""

from __future__ import annotations

from datetime import datetime
from enum import IntEnum, StrEnum
from pathlib import PurePath

from pydantic import BaseModel, ConfigDict, Field, field_validator

IDENTITY_BYTES = 32


def normalize_identity(value: str | bytes) -> str:
    """Return a 32-byte identity as lowercase hex.

    Raises ValueError for anything that is not exactly 32 bytes.
    """
    if isinstance(value, bytes):
        raw = value
    else:
        try:
            raw = bytes.fromhex(value)
        except ValueError as exc:
            raise ValueError(f"identity is not hex: {value!r}") from exc
    if len(raw) != IDENTITY_BYTES:
        raise ValueError(f"identity must be {IDENTITY_BYTES} bytes, got {len(raw)}")
    return raw.hex()


class SchemaVersion(IntEnum):
    """Address-derivation and layout generation of a record."""

    RAW_TITLE = 1
    HASHED_TITLE = 2


class RecordPayload(BaseModel):
    """Wire struct stored at a derived ledger address."""

    model_config = ConfigDict(frozen=True)

    schema_version: SchemaVersion
    title: str
    content_ref: str
    author: str

    @field_validator("author", mode="before")
    @classmethod
    def _normalize_author(cls, value: str | bytes) -> str:
        return normalize_identity(value)


class Record(BaseModel):
    """A published record plus its best-effort provenance."""

    model_config = ConfigDict(frozen=True)

    author: str
    title: str
    content_ref: str
    ledger_address: str
    schema_version: SchemaVersion = SchemaVersion.HASHED_TITLE
    tx_ref: str | None = None
    created_at: datetime | None = None

    @field_validator("author", mode="before")
    @classmethod
    def _normalize_author(cls, value: str | bytes) -> str:
        return normalize_identity(value)

    @property
    def record_id(self) -> str:
        """Stable identifier used by the local view."""
        return self.ledger_address

    @classmethod
    def from_payload(cls, address: str, payload: RecordPayload) -> Record:
        return cls(
            author=payload.author,
            title=payload.title,
            content_ref=payload.content_ref,
            ledger_address=address,
            schema_version=payload.schema_version,
        )


class Document(BaseModel):
    """A file attached to a publish request."""

    model_config = ConfigDict(frozen=True)

    filename: str
    data: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        return PurePath(self.filename).suffix.lower()


class PublishRequest(BaseModel):
    """Everything the caller supplies for one publish attempt."""

    model_config = ConfigDict(frozen=True)

    title: str
    document: Document | None = None
    consent: bool = False


class PublishResult(BaseModel):
    """Outcome of a successful publish."""

    model_config = ConfigDict(frozen=True)

    record: Record
    content_ref: str
    tx_ref: str


class PipelineState(StrEnum):
    """States of a single publication run."""

    IDLE = "idle"
    VALIDATING = "validating"
    UPLOADING_CONTENT = "uploading_content"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


class PipelineRun(BaseModel):
    """Mutable progress of one publication run."""

    author: str
    title: str
    state: PipelineState = PipelineState.IDLE
    failed_phase: PipelineState | None = None
    error: str = ""
    content_ref: str | None = None
    ledger_address: str | None = None
    tx_ref: str | None = None
    history: list[PipelineState] = Field(default_factory=list)
