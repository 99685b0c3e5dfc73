"""Ledger access — instructions, the ``Ledger`` protocol and a JSON-RPC client.

The ledger is append-only and addressed by fixed-length keys.  Its create
instruction is create-if-absent: submitting one for an occupied address
fails, which is the only uniqueness guarantee the package relies on.
"""

from __future__ import annotations

import itertools
import json
import logging
from datetime import UTC, datetime
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, ConfigDict

from ledgerpub.config import LedgerPubConfig
from ledgerpub.errors import DuplicateError, LedgerError
from ledgerpub.models import RecordPayload
from ledgerpub.signer import Signer

logger = logging.getLogger(__name__)

CREATE_RECORD = "create_record"
_ALREADY_IN_USE_MARKERS = ("already in use", "accountalreadyinuse", "accountalreadyinitialized")


class Instruction(BaseModel):
    """A create instruction targeting one derived address."""

    model_config = ConfigDict(frozen=True)

    program_id: str
    action: str = CREATE_RECORD
    address: str
    author: str
    payload: RecordPayload

    def to_bytes(self) -> bytes:
        """Canonical JSON serialization; this is what gets signed."""
        return json.dumps(
            self.model_dump(mode="json"), sort_keys=True, separators=(",", ":")
        ).encode("utf-8")


class SignedInstruction(BaseModel):
    """An instruction plus the author's signature over its canonical bytes."""

    model_config = ConfigDict(frozen=True)

    instruction: Instruction
    signature: str

    def to_wire(self) -> dict[str, Any]:
        return {
            "instruction": self.instruction.model_dump(mode="json"),
            "signature": self.signature,
        }


class LedgerAccount(BaseModel):
    """Raw account as returned by a bulk query."""

    address: str
    data: dict[str, Any]


class TransactionInfo(BaseModel):
    """A transaction reference touching an address."""

    signature: str
    block_time: datetime | None = None


def build_create_instruction(program_id: str, address: str, payload: RecordPayload) -> Instruction:
    return Instruction(
        program_id=program_id,
        address=address,
        author=payload.author,
        payload=payload,
    )


def sign_instruction(instruction: Instruction, signer: Signer) -> SignedInstruction:
    """Sign ``instruction`` with ``signer``.

    Raises:
        ValueError: If the signer is not the instruction's author.
    """
    if signer.identity != instruction.author:
        raise ValueError("signer identity does not match the instruction author")
    signature = signer.sign(instruction.to_bytes())
    return SignedInstruction(instruction=instruction, signature=signature.hex())


class Ledger(Protocol):
    """Async ledger operations used by the pipeline and the reader."""

    async def get_account(self, address: str) -> dict[str, Any] | None:
        """Return the account data at ``address``, or None if unoccupied."""
        ...

    async def list_accounts(self, program_id: str, schema_name: str) -> list[LedgerAccount]:
        """Return every account of ``schema_name`` under ``program_id``."""
        ...

    async def recent_transactions(self, address: str, limit: int = 1) -> list[TransactionInfo]:
        """Return the most recent transactions touching ``address``."""
        ...

    async def submit(self, signed: SignedInstruction) -> str:
        """Submit a create instruction and return its transaction reference.

        Raises DuplicateError if the address is already occupied.
        """
        ...


class RpcError(LedgerError):
    """Error object returned by the JSON-RPC endpoint."""

    def __init__(self, method: str, code: int | None, message: str, data: Any = None) -> None:
        super().__init__(f"{method} failed ({code}): {message}")
        self.method = method
        self.code = code
        self.data = data

    @property
    def already_in_use(self) -> bool:
        haystack = f"{self} {json.dumps(self.data, default=str)}".lower()
        return any(marker in haystack for marker in _ALREADY_IN_USE_MARKERS)


class RpcLedger:
    """JSON-RPC 2.0 ledger client over ``httpx.AsyncClient``.

    Pass ``client`` to share a connection pool (or a mock transport in
    tests); a client created here is closed by ``aclose``.
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        commitment: str = "confirmed",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.commitment = commitment
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)

    @classmethod
    def from_config(
        cls, config: LedgerPubConfig, client: httpx.AsyncClient | None = None
    ) -> RpcLedger:
        return cls(
            config.ledger.rpc_url,
            commitment=config.ledger.commitment,
            timeout=config.ledger.timeout_seconds,
            client=client,
        )

    async def __aenter__(self) -> RpcLedger:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ── Ledger protocol ──────────────────────────────────────────

    async def get_account(self, address: str) -> dict[str, Any] | None:
        result = await self._call(
            "getAccountInfo", [address, {"commitment": self.commitment, "encoding": "json"}]
        )
        if result is None:
            return None
        if not isinstance(result, dict):
            raise LedgerError(f"getAccountInfo returned an unexpected result: {result!r}")
        value = result.get("value")
        if value is None:
            return None
        if not isinstance(value, dict):
            raise LedgerError(f"getAccountInfo returned an unexpected account: {value!r}")
        data = value.get("data")
        return data if isinstance(data, dict) else {}

    async def list_accounts(self, program_id: str, schema_name: str) -> list[LedgerAccount]:
        result = await self._call(
            "getProgramAccounts",
            [
                program_id,
                {
                    "commitment": self.commitment,
                    "encoding": "json",
                    "filters": [{"schema": schema_name}],
                },
            ],
        )
        if result is None:
            return []
        if not isinstance(result, list):
            raise LedgerError(f"getProgramAccounts returned an unexpected result: {result!r}")
        accounts: list[LedgerAccount] = []
        for entry in result:
            try:
                accounts.append(
                    LedgerAccount(address=entry["pubkey"], data=entry["account"]["data"])
                )
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed account entry: %r", entry)
        return accounts

    async def recent_transactions(self, address: str, limit: int = 1) -> list[TransactionInfo]:
        result = await self._call(
            "getSignaturesForAddress", [address, {"limit": limit, "commitment": self.commitment}]
        )
        if result is None:
            return []
        if not isinstance(result, list):
            raise LedgerError(
                f"getSignaturesForAddress returned an unexpected result: {result!r}"
            )
        infos: list[TransactionInfo] = []
        for entry in result:
            if not isinstance(entry, dict) or "signature" not in entry:
                logger.warning("Skipping malformed signature entry: %r", entry)
                continue
            block_time = entry.get("blockTime")
            infos.append(
                TransactionInfo(
                    signature=entry["signature"],
                    block_time=(
                        datetime.fromtimestamp(block_time, tz=UTC)
                        if block_time is not None
                        else None
                    ),
                )
            )
        return infos

    async def submit(self, signed: SignedInstruction) -> str:
        address = signed.instruction.address
        try:
            result = await self._call(
                "sendTransaction",
                [signed.to_wire(), {"encoding": "json", "preflightCommitment": self.commitment}],
            )
        except RpcError as exc:
            if exc.already_in_use:
                raise DuplicateError(
                    f"Ledger address {address} is already occupied", address=address
                ) from exc
            raise
        if not isinstance(result, str) or not result:
            raise LedgerError(f"sendTransaction returned no signature: {result!r}")
        return result

    # ── Private helpers ──────────────────────────────────────────

    async def _call(self, method: str, params: list[Any]) -> Any:
        request = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        logger.debug("RPC %s -> %s", method, self.rpc_url)
        try:
            response = await self._client.post(self.rpc_url, json=request)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise LedgerError(f"{method} request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise LedgerError(f"{method} returned invalid JSON") from exc

        if not isinstance(body, dict):
            raise LedgerError(f"{method} returned a non-object response: {body!r}")

        error = body.get("error")
        if isinstance(error, dict):
            raise RpcError(method, error.get("code"), error.get("message", ""), error.get("data"))
        if error:
            raise RpcError(method, None, str(error))
        return body.get("result")
