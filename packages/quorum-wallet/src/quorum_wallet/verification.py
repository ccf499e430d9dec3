"""
Signature verification collaborators.

The lifecycle never checks signatures itself; it asks a SignatureVerifier
whether a contribution is valid for the registered key hash. The default
verifier takes a Cardano vkey witness (verification key + Ed25519
signature), checks the key hashes to the registered key hash, then
verifies the signature with PyNaCl.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Sequence

import cbor2
from nacl.exceptions import BadSignatureError, CryptoError
from nacl.signing import VerifyKey

from quorum_core.constants import HashSizes

from .keys import blake2b_224

logger = logging.getLogger(__name__)


class SignatureVerifier(Protocol):
    """Protocol for verifying one participant's signature."""

    async def verify(self, payload: bytes, signature: Any, key_hash: bytes) -> bool:
        """True iff `signature` is valid over `payload` for `key_hash`."""
        ...


@dataclass(frozen=True)
class VKeyWitness:
    """Verification key and Ed25519 signature, as in a transaction witness set."""
    vkey: bytes
    signature: bytes

    def __post_init__(self) -> None:
        if len(self.vkey) != HashSizes.VERIFICATION_KEY:
            raise ValueError(f"vkey must be {HashSizes.VERIFICATION_KEY} bytes")
        if len(self.signature) != HashSizes.SIGNATURE:
            raise ValueError(f"signature must be {HashSizes.SIGNATURE} bytes")

    @property
    def key_hash(self) -> bytes:
        return blake2b_224(self.vkey)

    def to_cbor_hex(self) -> str:
        return cbor2.dumps([self.vkey, self.signature]).hex()

    @classmethod
    def coerce(cls, value: Any) -> "VKeyWitness":
        """Accept a witness, a {"vkey", "signature"} mapping, a (vkey, signature)
        pair, or the CBOR (bytes or hex) of `[vkey, signature]`.

        Raises:
            ValueError: Unrecognized or malformed input.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            return cls(_as_bytes(value["vkey"]), _as_bytes(value["signature"]))
        if isinstance(value, str):
            value = bytes.fromhex(value)
        if isinstance(value, (bytes, bytearray)):
            try:
                value = cbor2.loads(bytes(value))
            except (cbor2.CBORDecodeError, ValueError) as e:
                raise ValueError(f"witness is not valid CBOR: {e}") from e
        if isinstance(value, Sequence) and len(value) == 2:
            return cls(_as_bytes(value[0]), _as_bytes(value[1]))
        raise ValueError(f"unrecognized witness: {type(value).__name__}")


def _as_bytes(value: Any) -> bytes:
    if isinstance(value, str):
        return bytes.fromhex(value)
    return bytes(value)


class Ed25519WitnessVerifier:
    """Default verifier for vkey witnesses."""

    async def verify(self, payload: bytes, signature: Any, key_hash: bytes) -> bool:
        try:
            witness = VKeyWitness.coerce(signature)
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"Malformed witness: {e}")
            return False

        if witness.key_hash != key_hash:
            logger.debug("Witness key does not hash to the registered key hash")
            return False

        try:
            VerifyKey(witness.vkey).verify(payload, witness.signature)
        except (BadSignatureError, CryptoError, ValueError) as e:
            logger.debug(f"Ed25519 verification failed: {e}")
            return False
        return True


__all__ = ["SignatureVerifier", "VKeyWitness", "Ed25519WitnessVerifier"]
