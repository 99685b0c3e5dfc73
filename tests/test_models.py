"""Tests for identity normalization, record models and Ed25519 signing."""

import pytest
from doubles import make_payload
from ledgerpub.models import (
    Document,
    Record,
    RecordPayload,
    SchemaVersion,
    normalize_identity,
)
from ledgerpub.signer import Ed25519Signer, Signer, verify_signature
from pydantic import ValidationError as PydanticValidationError

AUTHOR = "ab" * 32


class TestNormalizeIdentity:
    def test_bytes_to_hex(self):
        assert normalize_identity(b"\xab" * 32) == AUTHOR

    def test_uppercase_hex_lowered(self):
        assert normalize_identity(AUTHOR.upper()) == AUTHOR

    @pytest.mark.parametrize("value", ["abc", "zz" * 32, b"\x00" * 31, "ab" * 33])
    def test_rejects_bad_identity(self, value):
        with pytest.raises(ValueError):
            normalize_identity(value)


class TestRecord:
    def test_from_payload(self):
        payload = make_payload(AUTHOR, "paper5", "bafyref", SchemaVersion.RAW_TITLE)
        record = Record.from_payload("cc" * 32, payload)
        assert record.title == "paper5"
        assert record.content_ref == "bafyref"
        assert record.schema_version is SchemaVersion.RAW_TITLE
        assert record.record_id == "cc" * 32
        assert record.tx_ref is None

    def test_payload_rejects_bad_author(self):
        with pytest.raises(PydanticValidationError):
            RecordPayload(
                schema_version=SchemaVersion.HASHED_TITLE,
                title="t",
                content_ref="r",
                author="not-hex",
            )

    def test_payload_rejects_unknown_version(self):
        with pytest.raises(PydanticValidationError):
            RecordPayload(schema_version=7, title="t", content_ref="r", author=AUTHOR)

    def test_record_is_frozen(self):
        record = Record.from_payload("cc" * 32, make_payload(AUTHOR, "t"))
        with pytest.raises(PydanticValidationError):
            record.title = "changed"


class TestDocument:
    def test_extension_lowercased(self):
        assert Document(filename="Thesis.PDF", data=b"x").extension == ".pdf"

    def test_size(self):
        assert Document(filename="a.doc", data=b"12345").size == 5


class TestEd25519Signer:
    def test_identity_is_public_key_hex(self):
        signer = Ed25519Signer.from_seed(b"\x01" * 32)
        assert len(bytes.fromhex(signer.identity)) == 32
        assert isinstance(signer, Signer)

    def test_deterministic_from_seed(self):
        a = Ed25519Signer.from_seed(b"\x07" * 32)
        b = Ed25519Signer.from_seed(b"\x07" * 32)
        assert a.identity == b.identity
        assert a.sign(b"msg") == b.sign(b"msg")

    def test_verify_round(self, signer, other_signer):
        signature = signer.sign(b"msg")
        assert verify_signature(signer.identity, b"msg", signature)
        assert not verify_signature(other_signer.identity, b"msg", signature)
        assert not verify_signature(signer.identity, b"other", signature)

    def test_verify_rejects_malformed_identity(self, signer):
        assert not verify_signature("nothex", b"msg", signer.sign(b"msg"))

    def test_generated_signers_differ(self):
        assert Ed25519Signer.generate().identity != Ed25519Signer.generate().identity
