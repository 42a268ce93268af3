"""
keys.py - Signer capability

The ledger never verifies signatures. Signing belongs to whoever submits
transactions, so it is modelled as an injected capability:

    signer.public_key          -> str
    signer.sign(payload)       -> bytes
    signer.verify(payload, sig) -> bool

DigestSigner is a deterministic HMAC-SHA-256 stand-in used by the client,
the demo and the tests. It is NOT a cryptographic key pair: anyone holding
the secret can sign, and only a holder of the secret can verify. The
Client therefore verifies through the signers it has been given.
"""

from __future__ import annotations
import hashlib
import hmac
import secrets
from typing import Protocol, runtime_checkable

from .core import SignaturePair, SignedTransaction, TransactionBody


@runtime_checkable
class Signer(Protocol):
    """Anything that can sign a transaction payload."""

    @property
    def public_key(self) -> str:
        """Identifier recorded on accounts and tokens, matched against signatures."""
        ...

    def sign(self, payload: bytes) -> bytes:
        """Return a signature over payload."""
        ...

    def verify(self, payload: bytes, signature: bytes) -> bool:
        """True if signature was made by this signer over payload."""
        ...


class DigestSigner:
    """
    HMAC-SHA-256 signer keyed by a secret.

    Example:
        signer = DigestSigner.from_seed("treasury")
        signature = signer.sign(body.payload())
    """

    __slots__ = ("_secret", "_public_key")

    def __init__(self, secret: bytes):
        if not secret:
            raise ValueError("DigestSigner secret cannot be empty")
        self._secret = bytes(secret)
        self._public_key = hashlib.sha256(b"public:" + self._secret).hexdigest()

    @classmethod
    def generate(cls) -> DigestSigner:
        """Create a signer with a fresh random secret."""
        return cls(secrets.token_bytes(32))

    @classmethod
    def from_seed(cls, seed: str) -> DigestSigner:
        """Create a deterministic signer from a text seed."""
        if not seed or not seed.strip():
            raise ValueError("DigestSigner seed cannot be empty")
        return cls(hashlib.sha256(seed.strip().encode()).digest())

    @property
    def public_key(self) -> str:
        return self._public_key

    def sign(self, payload: bytes) -> bytes:
        return hmac.new(self._secret, payload, hashlib.sha256).digest()

    def verify(self, payload: bytes, signature: bytes) -> bool:
        """Check a signature produced by this signer."""
        return hmac.compare_digest(self.sign(payload), signature)

    def __repr__(self) -> str:
        return f"DigestSigner({self._public_key[:12]}...)"


def sign_transaction(body: TransactionBody, *signers: Signer) -> SignedTransaction:
    """
    Sign a transaction body with each signer.

    A signer listed twice signs once.

    Returns:
        SignedTransaction carrying one SignaturePair per distinct public key
    """
    payload = body.payload()
    signatures = []
    seen = set()
    for signer in signers:
        if signer.public_key in seen:
            continue
        seen.add(signer.public_key)
        signatures.append(SignaturePair(signer.public_key, signer.sign(payload)))
    return SignedTransaction(body=body, signatures=tuple(signatures))
