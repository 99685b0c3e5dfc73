"""Author signing.

The pipeline never reaches for an ambient wallet: callers pass a ``Signer``
explicitly.  ``Ed25519Signer`` is the concrete implementation backed by
``cryptography``; test doubles only need ``identity`` and ``sign``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)


@runtime_checkable
class Signer(Protocol):
    """Anything that can sign on behalf of an author identity."""

    @property
    def identity(self) -> str:
        """The author's 32-byte public identity as lowercase hex."""
        ...

    def sign(self, payload: bytes) -> bytes:
        """Return a signature over ``payload``."""
        ...


class Ed25519Signer:
    """Signer holding an Ed25519 private key in memory."""

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key = private_key
        public_bytes = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        self._identity = public_bytes.hex()

    @classmethod
    def generate(cls) -> Ed25519Signer:
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes) -> Ed25519Signer:
        """Build a signer from a 32-byte private seed."""
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    @property
    def identity(self) -> str:
        return self._identity

    def sign(self, payload: bytes) -> bytes:
        return self._private_key.sign(payload)


def verify_signature(identity: str, payload: bytes, signature: bytes) -> bool:
    """Check an Ed25519 signature against a hex identity."""
    try:
        public_key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(identity))
        public_key.verify(signature, payload)
    except (InvalidSignature, ValueError):
        return False
    return True
