"""Duplicate pre-check for ``(author, title)`` pairs.

This is a convenience check, not an enforcement mechanism: two runs can
both pass it before either commits.  The ledger's create-if-absent write
is what actually rejects the second one.
"""

from __future__ import annotations

import logging

from ledgerpub.address import AddressDeriver
from ledgerpub.errors import LedgerError, ReadError
from ledgerpub.ledger import Ledger

logger = logging.getLogger(__name__)


class DedupGuard:
    """Checks whether a derived address is already occupied.

    Besides the canonical address it also checks the legacy raw-title
    address whenever the title is short enough to have been published
    under that scheme.
    """

    def __init__(self, deriver: AddressDeriver, ledger: Ledger) -> None:
        self._deriver = deriver
        self._ledger = ledger

    async def find(self, author: str, title: str, *, include_legacy: bool = True) -> str | None:
        """Return the first occupied candidate address, or None.

        Args:
            author: Author identity (hex).
            title: Record title.
            include_legacy: Also check addresses of non-canonical schemes.

        Raises:
            ValidationError: If the title cannot be derived.
            ReadError: If a lookup fails.  A failed lookup never counts
                as "not published".
        """
        candidates = self._deriver.candidate_addresses(author, title)
        if not include_legacy:
            candidates = candidates[:1]
        for version, address in candidates:
            try:
                account = await self._ledger.get_account(address)
            except LedgerError as exc:
                raise ReadError(f"Could not check address {address}: {exc}") from exc
            if account is not None:
                logger.debug("Found existing v%d record at %s", version, address)
                return address
        return None

    async def exists(self, author: str, title: str) -> bool:
        return await self.find(author, title) is not None
