"""Error taxonomy for publishing and browsing.

Every error raised by the package derives from ``LedgerPubError`` so callers
can catch the whole family.  The publish-side errors tell the caller what
state was left behind:

- ``ValidationError``: nothing happened.
- ``ContentStoreError``: nothing was persisted, retry from scratch.
- ``DuplicateError``: the address is taken, do not retry.
- ``LedgerCommitError``: the content is stored; retry the commit with
  ``content_ref``.
"""

from __future__ import annotations


class LedgerPubError(Exception):
    """Base error for the ledgerpub package."""


class ValidationError(LedgerPubError):
    """A publish request was rejected before any side effect."""

    def __init__(self, message: str, *, field: str = "") -> None:
        super().__init__(message)
        self.field = field


class DuplicateError(LedgerPubError):
    """A record already occupies the derived ledger address."""

    def __init__(
        self,
        message: str,
        *,
        address: str = "",
        content_ref: str | None = None,
    ) -> None:
        super().__init__(message)
        self.address = address
        self.content_ref = content_ref


class ContentStoreError(LedgerPubError):
    """Uploading to or reading from the content store failed."""


class LedgerError(LedgerPubError):
    """A ledger RPC call failed."""


class LedgerCommitError(LedgerPubError):
    """The ledger commit failed after the content was uploaded.

    ``content_ref`` is the reference already obtained from the content store.
    Pass it back to ``PublicationPipeline.publish`` to retry the commit
    without uploading again.
    """

    def __init__(self, message: str, *, content_ref: str, address: str = "") -> None:
        super().__init__(message)
        self.content_ref = content_ref
        self.address = address

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base} (content already stored as {self.content_ref})"


class ReadError(LedgerPubError):
    """Reading records or provenance from the ledger failed."""


class PipelineBusyError(LedgerPubError):
    """A publish run is already active for this author."""
