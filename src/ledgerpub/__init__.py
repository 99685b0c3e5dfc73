"""ledgerpub — publish a document once, index it on an append-only ledger.

The document bytes go to a content-addressable store and an immutable
record (title, content reference, author) is written at an address derived
from ``(author, title)``.  The read side fetches records with provenance
and offers a local search/sort/paginate view.
"""

from ledgerpub.address import AddressDeriver
from ledgerpub.aggregator import Page, RecordAggregator, SortKey
from ledgerpub.config import LedgerPubConfig, load_config
from ledgerpub.content import ContentStore, PinningContentStore
from ledgerpub.dedup import DedupGuard
from ledgerpub.errors import (
    ContentStoreError,
    DuplicateError,
    LedgerCommitError,
    LedgerError,
    LedgerPubError,
    PipelineBusyError,
    ReadError,
    ValidationError,
)
from ledgerpub.ledger import Ledger, RpcLedger
from ledgerpub.models import (
    Document,
    PipelineRun,
    PipelineState,
    PublishRequest,
    PublishResult,
    Record,
    RecordPayload,
    SchemaVersion,
)
from ledgerpub.pipeline import PublicationPipeline
from ledgerpub.reader import LedgerReader
from ledgerpub.signer import Ed25519Signer, Signer

__version__ = "0.1.0"

__all__ = [
    "AddressDeriver",
    "ContentStore",
    "ContentStoreError",
    "DedupGuard",
    "Document",
    "DuplicateError",
    "Ed25519Signer",
    "Ledger",
    "LedgerCommitError",
    "LedgerError",
    "LedgerPubConfig",
    "LedgerPubError",
    "LedgerReader",
    "Page",
    "PinningContentStore",
    "PipelineBusyError",
    "PipelineRun",
    "PipelineState",
    "PublicationPipeline",
    "PublishRequest",
    "PublishResult",
    "ReadError",
    "Record",
    "RecordAggregator",
    "RecordPayload",
    "RpcLedger",
    "SchemaVersion",
    "Signer",
    "SortKey",
    "ValidationError",
    "load_config",
]
