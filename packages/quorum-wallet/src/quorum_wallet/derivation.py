"""
Derivation of on-chain identifiers from native scripts.

Every function here is pure and takes the network explicitly; nothing
reads ambient "current network" state.

- Script hash: blake2b-224 over 0x00 || CBOR(script)
- Addresses: CIP-19 enterprise (type 7), base (type 3 or 1) and reward
  (type 15 or 14) addresses
- Governance identifiers: DRep and constitutional committee ids in both
  the CIP-105 and CIP-129 encodings
"""
from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Union

from quorum_core.config import load_settings
from quorum_core.constants import AddressHeader, Bech32Prefix, GovernanceHeader, HashSizes, NetworkIds
from quorum_core.exceptions import KeyFormatError, UnsupportedNetworkError

from . import bech32
from .keys import Role, parse_address
from .native_script import NativeScript, to_cbor

_HASH_HEX_RE = re.compile(r"^[0-9a-fA-F]{56}$")


class Network(IntEnum):
    """Cardano network, valued by the id carried in address headers."""
    TESTNET = NetworkIds.TESTNET
    MAINNET = NetworkIds.MAINNET

    @classmethod
    def parse(cls, value: Union["Network", int, str]) -> "Network":
        """Accept a Network, its id, or a network name.

        Raises:
            UnsupportedNetworkError: Anything else.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            if value in (NetworkIds.MAINNET, NetworkIds.TESTNET):
                return cls(value)
            raise UnsupportedNetworkError(value)
        if isinstance(value, str):
            name = value.strip().lower()
            if name in ("mainnet", "1"):
                return cls.MAINNET
            if name in ("testnet", "preprod", "preview", "0"):
                return cls.TESTNET
        raise UnsupportedNetworkError(value)

    @property
    def address_prefix(self) -> str:
        return Bech32Prefix.ADDR if self is Network.MAINNET else Bech32Prefix.ADDR_TEST

    @property
    def stake_prefix(self) -> str:
        return Bech32Prefix.STAKE if self is Network.MAINNET else Bech32Prefix.STAKE_TEST


@dataclass(frozen=True)
class StakeCredential:
    """Stake part of an address: a key hash or a script hash."""
    hash: bytes
    is_script: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.hash, bytes) or len(self.hash) != HashSizes.SCRIPT_HASH:
            raise KeyFormatError("Stake credential must be a 28-byte hash")

    @property
    def hex(self) -> str:
        return self.hash.hex()

    @classmethod
    def parse(cls, value: Union["StakeCredential", bytes, str]) -> "StakeCredential":
        """Parse a credential from raw bytes, 56-char hex or a reward address.

        Bare hashes are taken as key credentials. A reward address carries
        its own credential type.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, (bytes, bytearray)):
            return cls(bytes(value))
        text = str(value).strip()
        if _HASH_HEX_RE.match(text):
            return cls(bytes.fromhex(text))
        parsed = parse_address(text)
        if not parsed.is_reward:
            raise KeyFormatError("Stake credential must be a hash or a reward address", value=text)
        return cls(parsed.stake, is_script=parsed.header_type == AddressHeader.REWARD_SCRIPT)


def script_cbor(script: NativeScript) -> str:
    """Hex CBOR of the script, as witnesses and explorers expect it."""
    return to_cbor(script).hex()


def derive_script_hash(script: NativeScript) -> bytes:
    return hashlib.blake2b(
        HashSizes.NATIVE_SCRIPT_TAG + to_cbor(script), digest_size=HashSizes.SCRIPT_HASH
    ).digest()


def derive_address(
    script: NativeScript,
    network: Union[Network, int, str],
    stake_credential: Union[StakeCredential, bytes, str, None] = None,
) -> str:
    """Bech32 payment address for the script.

    Without a stake credential this is an enterprise script address.
    With one it is a base address whose stake part is that credential.
    """
    network = Network.parse(network)
    payment = derive_script_hash(script)

    if stake_credential is None:
        header = (AddressHeader.ENTERPRISE_SCRIPT << 4) | network
        return bech32.encode(network.address_prefix, bytes([header]) + payment)

    credential = StakeCredential.parse(stake_credential)
    header_type = AddressHeader.BASE_SCRIPT_SCRIPT if credential.is_script else AddressHeader.BASE_SCRIPT_KEY
    header = (header_type << 4) | network
    return bech32.encode(network.address_prefix, bytes([header]) + payment + credential.hash)


def derive_stake_address(
    credential: Union[StakeCredential, bytes, str],
    network: Union[Network, int, str],
) -> str:
    """Bech32 reward address for a stake credential."""
    network = Network.parse(network)
    credential = StakeCredential.parse(credential)
    header_type = AddressHeader.REWARD_SCRIPT if credential.is_script else AddressHeader.REWARD_KEY
    header = (header_type << 4) | network
    return bech32.encode(network.stake_prefix, bytes([header]) + credential.hash)


# =============================================================================
# Governance identifiers (CIP-105 / CIP-129)
# =============================================================================

class GovernanceKind(str, Enum):
    DREP = "drep"
    CC_COLD = "cc_cold"
    CC_HOT = "cc_hot"


class IdFormat(str, Enum):
    CIP105 = "cip105"
    CIP129 = "cip129"


# kind -> (CIP-105 script prefix, CIP-129 key header, CIP-129 script header)
_GOVERNANCE_FORMATS = {
    GovernanceKind.DREP: (Bech32Prefix.DREP_SCRIPT, GovernanceHeader.DREP_KEY, GovernanceHeader.DREP_SCRIPT),
    GovernanceKind.CC_COLD: (Bech32Prefix.CC_COLD_SCRIPT, GovernanceHeader.CC_COLD_KEY, GovernanceHeader.CC_COLD_SCRIPT),
    GovernanceKind.CC_HOT: (Bech32Prefix.CC_HOT_SCRIPT, GovernanceHeader.CC_HOT_KEY, GovernanceHeader.CC_HOT_SCRIPT),
}

_COMMITTEE_KINDS = {
    Role.COMMITTEE_COLD: GovernanceKind.CC_COLD,
    Role.COMMITTEE_HOT: GovernanceKind.CC_HOT,
}


@dataclass(frozen=True)
class GovernanceId:
    """A governance credential that renders in both identifier encodings."""
    kind: GovernanceKind
    credential: bytes
    is_script: bool = True

    _KINDS = tuple(GovernanceKind)

    @property
    def cip105(self) -> str:
        script_prefix = _GOVERNANCE_FORMATS[self.kind][0]
        return bech32.encode(script_prefix if self.is_script else self.kind.value, self.credential)

    @property
    def cip129(self) -> str:
        _, key_header, script_header = _GOVERNANCE_FORMATS[self.kind]
        header = script_header if self.is_script else key_header
        return bech32.encode(self.kind.value, bytes([header]) + self.credential)

    def format(self, fmt: Union[IdFormat, str, None] = None) -> str:
        """Render in `fmt`, or in the configured `drep_id_format`."""
        if fmt is None:
            fmt = load_settings().drep_id_format
        return self.cip105 if IdFormat(fmt) is IdFormat.CIP105 else self.cip129

    def __str__(self) -> str:
        return self.format()

    @classmethod
    def parse(cls, value: str) -> "GovernanceId":
        """Parse either encoding, key-based or script-based."""
        try:
            hrp, raw = bech32.decode(value)
        except (bech32.Bech32Error, AttributeError) as e:
            raise KeyFormatError(f"Invalid governance identifier: {e}", value=str(value)) from None

        for kind in cls._KINDS:
            script_prefix, key_header, script_header = _GOVERNANCE_FORMATS[kind]
            if hrp == script_prefix and len(raw) == HashSizes.SCRIPT_HASH:
                return cls(kind, raw, is_script=True)
            if hrp != kind.value:
                continue
            if len(raw) == HashSizes.KEY_HASH:
                return cls(kind, raw, is_script=False)
            if len(raw) == HashSizes.KEY_HASH + 1 and raw[0] in (key_header, script_header):
                return cls(kind, raw[1:], is_script=raw[0] == script_header)
            raise KeyFormatError(f"Malformed {kind.value} identifier", value=value)

        raise KeyFormatError(f"Unexpected identifier prefix '{hrp}'", value=value)


@dataclass(frozen=True)
class DRepId(GovernanceId):
    _KINDS = (GovernanceKind.DREP,)

    @classmethod
    def from_hash(cls, credential: bytes, is_script: bool = True) -> "DRepId":
        return cls(GovernanceKind.DREP, credential, is_script)


@dataclass(frozen=True)
class CommitteeId(GovernanceId):
    _KINDS = (GovernanceKind.CC_COLD, GovernanceKind.CC_HOT)


def derive_drep_id(script: NativeScript) -> DRepId:
    return DRepId.from_hash(derive_script_hash(script))


def convert_drep_id(value: str, fmt: Union[IdFormat, str]) -> str:
    """Re-encode a DRep id (either encoding) into `fmt`."""
    return DRepId.parse(value).format(fmt)


def derive_committee_id(script: NativeScript, role: Union[Role, int, str]) -> CommitteeId:
    role = Role.parse(role)
    if role not in _COMMITTEE_KINDS:
        raise KeyFormatError(f"Role {role.label} has no committee identifier", role=role.label)
    return CommitteeId(_COMMITTEE_KINDS[role], derive_script_hash(script), is_script=True)


__all__ = [
    "Network",
    "StakeCredential",
    "GovernanceKind",
    "IdFormat",
    "GovernanceId",
    "DRepId",
    "CommitteeId",
    "script_cbor",
    "derive_script_hash",
    "derive_address",
    "derive_stake_address",
    "derive_drep_id",
    "convert_drep_id",
    "derive_committee_id",
]
