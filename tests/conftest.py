"""Shared fixtures: config, in-memory ledger and content store, signers."""

from __future__ import annotations

import pytest
from doubles import PROGRAM_ID, MemoryContentStore, MemoryLedger
from ledgerpub.config import LedgerPubConfig, LedgerSectionConfig
from ledgerpub.signer import Ed25519Signer


@pytest.fixture
def config() -> LedgerPubConfig:
    return LedgerPubConfig(ledger=LedgerSectionConfig(program_id=PROGRAM_ID))


@pytest.fixture
def ledger() -> MemoryLedger:
    return MemoryLedger()


@pytest.fixture
def content_store() -> MemoryContentStore:
    return MemoryContentStore()


@pytest.fixture
def signer() -> Ed25519Signer:
    return Ed25519Signer.from_seed(b"\x01" * 32)


@pytest.fixture
def other_signer() -> Ed25519Signer:
    return Ed25519Signer.from_seed(b"\x02" * 32)
