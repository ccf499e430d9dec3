"""
Bech32 codec for Cardano addresses and identifiers.

Implements the BIP-0173 primitives used by CIP-5 (addresses, keys) and
CIP-105/CIP-129 (governance identifiers). Cardano payloads routinely
exceed BIP-0173's 90-character limit (a base address is 103 characters),
so no overall length limit is enforced.

Usage:
    text = encode("addr_test", header_and_payload)
    hrp, data = decode(text)
"""
from __future__ import annotations

from typing import List, Sequence, Tuple

# 32-character alphabet per BIP-0173.
CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
CHARSET_REV = {c: i for i, c in enumerate(CHARSET)}

_GENERATORS = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)


class Bech32Error(ValueError):
    pass


def _polymod(values: Sequence[int]) -> int:
    chk = 1
    for v in values:
        top = chk >> 25
        chk = ((chk & 0x1FFFFFF) << 5) ^ v
        for i in range(5):
            if (top >> i) & 1:
                chk ^= _GENERATORS[i]
    return chk


def _hrp_expand(hrp: str) -> List[int]:
    return [ord(x) >> 5 for x in hrp] + [0] + [ord(x) & 31 for x in hrp]


def _create_checksum(hrp: str, data: Sequence[int]) -> List[int]:
    polymod = _polymod(_hrp_expand(hrp) + list(data) + [0, 0, 0, 0, 0, 0]) ^ 1
    return [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]


def bech32_encode(hrp: str, data: Sequence[int]) -> str:
    """Encode HRP + 5-bit data words into a Bech32 string."""
    if not hrp or any((ord(c) < 33 or ord(c) > 126) for c in hrp):
        raise Bech32Error("invalid HRP characters")
    if any(d < 0 or d > 31 for d in data):
        raise Bech32Error("data values must be 5-bit (0..31)")

    hrp = hrp.lower()
    combined = list(data) + _create_checksum(hrp, data)
    return hrp + "1" + "".join(CHARSET[d] for d in combined)


def bech32_decode(bech: str) -> Tuple[str, List[int]]:
    """
    Decode a Bech32 string into (hrp, data words without checksum).
    Raises Bech32Error on failure.
    """
    if not bech or len(bech) < 8:
        raise Bech32Error("string too short for bech32")

    if any(c.isupper() for c in bech) and any(c.islower() for c in bech):
        raise Bech32Error("mixed-case bech32 is invalid")
    bech = bech.lower()

    pos = bech.rfind("1")
    if pos < 1 or pos + 7 > len(bech):
        raise Bech32Error("invalid position of separator '1'")

    hrp = bech[:pos]
    if any((ord(c) < 33 or ord(c) > 126) for c in hrp):
        raise Bech32Error("invalid HRP characters")

    try:
        data = [CHARSET_REV[c] for c in bech[pos + 1 :]]
    except KeyError:
        raise Bech32Error("invalid data character in bech32 string") from None

    if _polymod(_hrp_expand(hrp) + data) != 1:
        raise Bech32Error("checksum mismatch")

    return hrp, data[:-6]


def convertbits(data: Sequence[int], frombits: int, tobits: int, pad: bool) -> List[int]:
    """General power-of-2 base conversion (BIP-0173 reference)."""
    acc = 0
    bits = 0
    ret: List[int] = []
    maxv = (1 << tobits) - 1
    max_acc = (1 << (frombits + tobits - 1)) - 1
    for value in data:
        if value < 0 or (value >> frombits):
            raise Bech32Error("invalid value for convertbits")
        acc = ((acc << frombits) | value) & max_acc
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            ret.append((acc >> bits) & maxv)
    if pad:
        if bits:
            ret.append((acc << (tobits - bits)) & maxv)
    elif bits >= frombits or ((acc << (tobits - bits)) & maxv):
        raise Bech32Error("invalid padding in convertbits")
    return ret


def encode(hrp: str, payload: bytes) -> str:
    """Encode raw bytes under the given HRP."""
    return bech32_encode(hrp, convertbits(payload, 8, 5, True))


def decode(text: str) -> Tuple[str, bytes]:
    """Decode a bech32 string into (hrp, raw bytes)."""
    hrp, data = bech32_decode(text.strip())
    return hrp, bytes(convertbits(data, 5, 8, False))


__all__ = [
    "Bech32Error",
    "bech32_encode",
    "bech32_decode",
    "convertbits",
    "encode",
    "decode",
]
