"""
Native script AST and threshold rules.

The AST is a closed set of four node classes. Every consumer dispatches
over exactly these classes and raises TypeError on anything else, so a
new node kind cannot slip through a serializer unnoticed.

JSON uses the chain's field names (`type`, `keyHash`, `scripts`,
`required`). CBOR follows the ledger's native script encoding:

    sig      = [0, keyhash]
    all      = [1, [scripts]]
    any      = [2, [scripts]]
    atLeast  = [3, n, [scripts]]
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple, Union

import cbor2

from quorum_core.constants import HashSizes
from quorum_core.exceptions import InvalidThresholdError, QuorumConfigurationError


class ThresholdKind(str, Enum):
    """Shape of a wallet's signature requirement."""
    ALL = "all"
    ANY = "any"
    AT_LEAST = "atLeast"


@dataclass(frozen=True)
class ThresholdRule:
    """Signature requirement applied uniformly to every role's script."""
    kind: ThresholdKind
    required: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", ThresholdKind(self.kind))
        if self.kind is ThresholdKind.AT_LEAST:
            if not isinstance(self.required, int) or isinstance(self.required, bool):
                raise InvalidThresholdError(
                    "atLeast rule needs an integer 'required'",
                    details={"required": repr(self.required)},
                )
        else:
            object.__setattr__(self, "required", None)

    @classmethod
    def all(cls) -> "ThresholdRule":
        return cls(ThresholdKind.ALL)

    @classmethod
    def any(cls) -> "ThresholdRule":
        return cls(ThresholdKind.ANY)

    @classmethod
    def at_least(cls, n: int) -> "ThresholdRule":
        return cls(ThresholdKind.AT_LEAST, n)

    def required_for(self, total: int) -> int:
        """Signatures needed out of `total` eligible signers."""
        if self.kind is ThresholdKind.ALL:
            return total
        if self.kind is ThresholdKind.ANY:
            return 1
        return self.required

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": self.kind.value}
        if self.required is not None:
            result["required"] = self.required
        return result

    def __str__(self) -> str:
        if self.kind is ThresholdKind.AT_LEAST:
            return f"atLeast({self.required})"
        return self.kind.value


# =============================================================================
# Script nodes
# =============================================================================

@dataclass(frozen=True)
class Sig:
    key_hash: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.key_hash, bytes) or len(self.key_hash) != HashSizes.KEY_HASH:
            raise QuorumConfigurationError("sig node needs a 28-byte key hash")


@dataclass(frozen=True)
class AllOf:
    scripts: Tuple["NativeScript", ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "scripts", tuple(self.scripts))


@dataclass(frozen=True)
class AnyOf:
    scripts: Tuple["NativeScript", ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "scripts", tuple(self.scripts))


@dataclass(frozen=True)
class AtLeastOf:
    required: int
    scripts: Tuple["NativeScript", ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "scripts", tuple(self.scripts))
        if isinstance(self.required, bool) or not isinstance(self.required, int) or self.required < 0:
            raise QuorumConfigurationError("atLeast node needs a non-negative integer 'required'")


NativeScript = Union[Sig, AllOf, AnyOf, AtLeastOf]


def _unknown(node: Any) -> TypeError:
    return TypeError(f"Unknown native script node: {type(node).__name__}")


def key_hashes(node: NativeScript) -> Iterator[bytes]:
    """Leaf key hashes, depth-first in script order."""
    if isinstance(node, Sig):
        yield node.key_hash
    elif isinstance(node, (AllOf, AnyOf, AtLeastOf)):
        for child in node.scripts:
            yield from key_hashes(child)
    else:
        raise _unknown(node)


# =============================================================================
# JSON codec
# =============================================================================

def to_json(node: NativeScript) -> Dict[str, Any]:
    """Serialize to the chain's native script JSON."""
    if isinstance(node, Sig):
        return {"type": "sig", "keyHash": node.key_hash.hex()}
    if isinstance(node, AllOf):
        return {"type": "all", "scripts": [to_json(c) for c in node.scripts]}
    if isinstance(node, AnyOf):
        return {"type": "any", "scripts": [to_json(c) for c in node.scripts]}
    if isinstance(node, AtLeastOf):
        return {
            "type": "atLeast",
            "required": node.required,
            "scripts": [to_json(c) for c in node.scripts],
        }
    raise _unknown(node)


def from_json(data: Dict[str, Any]) -> NativeScript:
    """Parse native script JSON.

    Raises:
        QuorumConfigurationError: Unknown type or missing fields.
    """
    if not isinstance(data, dict):
        raise QuorumConfigurationError("Native script JSON must be an object")
    kind = data.get("type")
    try:
        if kind == "sig":
            return Sig(bytes.fromhex(data["keyHash"]))
        if kind == "all":
            return AllOf(tuple(from_json(c) for c in data["scripts"]))
        if kind == "any":
            return AnyOf(tuple(from_json(c) for c in data["scripts"]))
        if kind == "atLeast":
            return AtLeastOf(int(data["required"]), tuple(from_json(c) for c in data["scripts"]))
    except (KeyError, TypeError, ValueError) as e:
        raise QuorumConfigurationError(
            f"Malformed native script JSON: {e}", details={"type": kind}
        ) from e
    raise QuorumConfigurationError(f"Unsupported native script type: {kind!r}", details={"type": kind})


# =============================================================================
# CBOR codec
# =============================================================================

def _to_cbor_obj(node: NativeScript) -> list:
    if isinstance(node, Sig):
        return [0, node.key_hash]
    if isinstance(node, AllOf):
        return [1, [_to_cbor_obj(c) for c in node.scripts]]
    if isinstance(node, AnyOf):
        return [2, [_to_cbor_obj(c) for c in node.scripts]]
    if isinstance(node, AtLeastOf):
        return [3, node.required, [_to_cbor_obj(c) for c in node.scripts]]
    raise _unknown(node)


def _from_cbor_obj(obj: Any) -> NativeScript:
    if not isinstance(obj, list) or not obj:
        raise QuorumConfigurationError("Native script CBOR must be a non-empty array")
    tag = obj[0]
    if tag == 0 and len(obj) == 2:
        return Sig(bytes(obj[1]))
    if tag == 1 and len(obj) == 2:
        return AllOf(tuple(_from_cbor_obj(c) for c in obj[1]))
    if tag == 2 and len(obj) == 2:
        return AnyOf(tuple(_from_cbor_obj(c) for c in obj[1]))
    if tag == 3 and len(obj) == 3:
        return AtLeastOf(obj[1], tuple(_from_cbor_obj(c) for c in obj[2]))
    # Tags 4 and 5 are time locks, which multisig policies never build
    raise QuorumConfigurationError(f"Unsupported native script tag: {tag!r}")


def to_cbor(node: NativeScript) -> bytes:
    """Canonical ledger encoding of the script."""
    return cbor2.dumps(_to_cbor_obj(node))


def from_cbor(data: bytes) -> NativeScript:
    try:
        obj = cbor2.loads(data)
    except (cbor2.CBORDecodeError, ValueError) as e:
        raise QuorumConfigurationError(f"Invalid native script CBOR: {e}") from e
    return _from_cbor_obj(obj)


__all__ = [
    "ThresholdKind",
    "ThresholdRule",
    "Sig",
    "AllOf",
    "AnyOf",
    "AtLeastOf",
    "NativeScript",
    "key_hashes",
    "to_json",
    "from_json",
    "to_cbor",
    "from_cbor",
]
