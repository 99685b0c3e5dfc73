"""Read side: bulk record fetch with best-effort provenance.

``fetch_all`` makes one bulk query, then looks up the most recent
transaction touching each record's address.  A lookup failure only
blanks that record's ``tx_ref``; a failed bulk query raises ``ReadError``.
Nothing is cached here; freshness is the caller's decision.
"""

from __future__ import annotations

import asyncio
import logging

from pydantic import ValidationError as PydanticValidationError

from ledgerpub.config import LedgerPubConfig
from ledgerpub.errors import LedgerError, ReadError
from ledgerpub.ledger import Ledger, LedgerAccount
from ledgerpub.models import Record, RecordPayload

logger = logging.getLogger(__name__)


class LedgerReader:
    """Fetches every published record and resolves its provenance."""

    def __init__(self, config: LedgerPubConfig, ledger: Ledger) -> None:
        self.config = config
        self._ledger = ledger

    def explorer_url(self, tx_ref: str) -> str:
        """Public explorer link for a transaction reference."""
        return self.config.ledger.explorer_url.format(tx_ref=tx_ref)

    async def fetch_all(self) -> list[Record]:
        """Return all records, in ledger order, with provenance where available.

        Raises:
            ReadError: If the bulk query fails.
        """
        try:
            accounts = await self._ledger.list_accounts(
                self.config.ledger.program_id, self.config.reader.schema_name
            )
        except LedgerError as exc:
            raise ReadError(f"Could not fetch records: {exc}") from exc

        records = [r for r in (self._decode(a) for a in accounts) if r is not None]
        if not records:
            return []

        semaphore = asyncio.Semaphore(self.config.reader.provenance_concurrency)
        resolved = await asyncio.gather(
            *(self._with_provenance(record, semaphore) for record in records)
        )
        missing = sum(1 for r in resolved if r.tx_ref is None)
        logger.info("Fetched %d records (%d without provenance)", len(resolved), missing)
        return list(resolved)

    # ── Private helpers ──────────────────────────────────────────

    @staticmethod
    def _decode(account: LedgerAccount) -> Record | None:
        try:
            payload = RecordPayload.model_validate(account.data)
        except PydanticValidationError:
            logger.warning("Skipping undecodable account %s", account.address)
            return None
        return Record.from_payload(account.address, payload)

    async def _with_provenance(self, record: Record, semaphore: asyncio.Semaphore) -> Record:
        async with semaphore:
            try:
                transactions = await self._ledger.recent_transactions(
                    record.ledger_address, limit=1
                )
            except Exception:
                logger.warning(
                    "Could not resolve provenance for %s", record.ledger_address, exc_info=True
                )
                return record
        if not transactions:
            return record
        latest = transactions[0]
        return record.model_copy(
            update={"tx_ref": latest.signature, "created_at": latest.block_time}
        )
