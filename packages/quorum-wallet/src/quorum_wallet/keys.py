"""
Participant keys and key normalization for multisig wallets.

A wallet is configured from whatever its participants paste in: raw key
hashes, verification keys, Shelley addresses, reward addresses or
governance identifiers. Everything is reduced here to a 28-byte key hash
tagged with the role it authorizes.

Roles follow the CIP-1854 derivation role numbers:
- 0: Payment
- 2: Stake
- 3: DRep
- 4: Constitutional committee cold
- 5: Constitutional committee hot
"""
from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Iterator, Optional, Tuple, Union

from quorum_core.constants import AddressHeader, Bech32Prefix, GovernanceHeader, HashSizes, NetworkIds
from quorum_core.exceptions import DuplicateKeyForRoleError, KeyFormatError

from . import bech32

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")

_ADDRESS_HRPS = {Bech32Prefix.ADDR: NetworkIds.MAINNET, Bech32Prefix.ADDR_TEST: NetworkIds.TESTNET}
_REWARD_HRPS = {Bech32Prefix.STAKE: NetworkIds.MAINNET, Bech32Prefix.STAKE_TEST: NetworkIds.TESTNET}


class Role(IntEnum):
    """Role a key (and the script built from it) authorizes."""
    PAYMENT = 0
    STAKE = 2
    DREP = 3
    COMMITTEE_COLD = 4
    COMMITTEE_HOT = 5

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value: Union["Role", int, str]) -> "Role":
        """Accept a Role, its number, or its name ("payment", "committee_cold", ...)."""
        if isinstance(value, cls):
            return value
        try:
            if isinstance(value, int) and not isinstance(value, bool):
                return cls(value)
            text = str(value).strip()
            if text.isdigit():
                return cls(int(text))
            return cls[text.upper().replace("-", "_")]
        except (KeyError, ValueError):
            raise KeyFormatError(f"Unknown role: {value!r}", value=str(value)) from None


def blake2b_224(data: bytes) -> bytes:
    """Ledger key/script hash."""
    return hashlib.blake2b(data, digest_size=HashSizes.KEY_HASH).digest()


def hash_verification_key(vkey: bytes) -> bytes:
    if len(vkey) != HashSizes.VERIFICATION_KEY:
        raise KeyFormatError(
            f"Verification key must be {HashSizes.VERIFICATION_KEY} bytes, got {len(vkey)}",
            value=vkey.hex(),
        )
    return blake2b_224(vkey)


# =============================================================================
# Shelley addresses (CIP-19)
# =============================================================================

@dataclass(frozen=True)
class ShelleyAddress:
    """Decoded Shelley address.

    `payment` is absent for reward addresses, `stake` is the 28-byte stake
    credential of base and reward addresses and absent otherwise.
    """
    hrp: str
    header_type: int
    network_id: int
    payment: Optional[bytes]
    stake: Optional[bytes]

    @property
    def is_reward(self) -> bool:
        return self.header_type in (AddressHeader.REWARD_KEY, AddressHeader.REWARD_SCRIPT)


def parse_address(address: str) -> ShelleyAddress:
    """Decode a bech32 Shelley address, validating header, length and prefix."""
    try:
        hrp, raw = bech32.decode(address)
    except (bech32.Bech32Error, AttributeError) as e:
        raise KeyFormatError(f"Invalid address: {e}", value=str(address)) from None

    if hrp not in _ADDRESS_HRPS and hrp not in _REWARD_HRPS:
        raise KeyFormatError(f"Not a Shelley address prefix: {hrp}", value=address)
    if not raw:
        raise KeyFormatError("Empty address payload", value=address)

    header_type = raw[0] >> 4
    network_id = raw[0] & 0x0F
    body = raw[1:]
    size = HashSizes.KEY_HASH

    expected_network = _ADDRESS_HRPS.get(hrp, _REWARD_HRPS.get(hrp))
    if (network_id == NetworkIds.MAINNET) != (expected_network == NetworkIds.MAINNET):
        raise KeyFormatError(
            f"Address network id {network_id} does not match prefix {hrp}", value=address
        )

    if hrp in _REWARD_HRPS:
        if header_type not in (AddressHeader.REWARD_KEY, AddressHeader.REWARD_SCRIPT):
            raise KeyFormatError(f"Header type {header_type} is not a reward address", value=address)
        if len(body) != size:
            raise KeyFormatError("Reward address has wrong length", value=address)
        return ShelleyAddress(hrp, header_type, network_id, None, body)

    if header_type <= AddressHeader.BASE_SCRIPT_SCRIPT:
        if len(body) != 2 * size:
            raise KeyFormatError("Base address has wrong length", value=address)
        return ShelleyAddress(hrp, header_type, network_id, body[:size], body[size:])
    if header_type in (AddressHeader.POINTER_KEY, AddressHeader.POINTER_SCRIPT):
        if len(body) <= size:
            raise KeyFormatError("Pointer address has wrong length", value=address)
        return ShelleyAddress(hrp, header_type, network_id, body[:size], None)
    if header_type in (AddressHeader.ENTERPRISE_KEY, AddressHeader.ENTERPRISE_SCRIPT):
        if len(body) != size:
            raise KeyFormatError("Enterprise address has wrong length", value=address)
        return ShelleyAddress(hrp, header_type, network_id, body, None)

    raise KeyFormatError(f"Unsupported address header type {header_type}", value=address)


def address_network(address: str) -> int:
    """Network id (0 testnet, 1 mainnet) carried by an address."""
    return parse_address(address).network_id


def payment_key_hash(address: str) -> str:
    """Hex payment key hash of an address whose payment part is a key."""
    parsed = parse_address(address)
    if parsed.is_reward or parsed.header_type not in AddressHeader.KEY_PAYMENT_TYPES:
        raise KeyFormatError(
            "Address payment credential is not a verification key hash",
            value=address,
            role=Role.PAYMENT.label,
        )
    return parsed.payment.hex()


def stake_key_hash(address: str) -> str:
    """Hex stake key hash from a key reward address or a base address with a key stake part."""
    parsed = parse_address(address)
    if parsed.header_type == AddressHeader.REWARD_KEY:
        return parsed.stake.hex()
    if not parsed.is_reward and parsed.header_type in AddressHeader.KEY_STAKE_BASE_TYPES:
        return parsed.stake.hex()
    raise KeyFormatError(
        "Address stake credential is not a verification key hash",
        value=address,
        role=Role.STAKE.label,
    )


def is_valid_payment_address(address: str) -> bool:
    try:
        payment_key_hash(address)
        return True
    except KeyFormatError:
        return False


def is_valid_stake_address(address: str) -> bool:
    try:
        stake_key_hash(address)
        return True
    except KeyFormatError:
        return False


# =============================================================================
# Key normalization
# =============================================================================

# role -> (identifier prefix, CIP-129 key header) for governance roles
_GOVERNANCE_IDS = {
    Role.DREP: (Bech32Prefix.DREP, GovernanceHeader.DREP_KEY),
    Role.COMMITTEE_COLD: (Bech32Prefix.CC_COLD, GovernanceHeader.CC_COLD_KEY),
    Role.COMMITTEE_HOT: (Bech32Prefix.CC_HOT, GovernanceHeader.CC_HOT_KEY),
}

# role -> (key hash prefix, verification key prefix)
_KEY_PREFIXES = {
    Role.PAYMENT: (Bech32Prefix.ADDR_VKH, Bech32Prefix.ADDR_VK),
    Role.STAKE: (Bech32Prefix.STAKE_VKH, Bech32Prefix.STAKE_VK),
    Role.DREP: (None, Bech32Prefix.DREP_VK),
    Role.COMMITTEE_COLD: (None, Bech32Prefix.CC_COLD_VK),
    Role.COMMITTEE_HOT: (None, Bech32Prefix.CC_HOT_VK),
}


def _from_raw(raw: bytes, value: str, role: Role) -> bytes:
    if len(raw) == HashSizes.KEY_HASH:
        return raw
    if len(raw) == HashSizes.VERIFICATION_KEY:
        return hash_verification_key(raw)
    raise KeyFormatError(
        f"Expected a {HashSizes.KEY_HASH}-byte key hash or {HashSizes.VERIFICATION_KEY}-byte key, "
        f"got {len(raw)} bytes",
        value=value,
        role=role.label,
    )


def normalize_key(value: Union[str, bytes], role: Union[Role, int, str]) -> bytes:
    """Reduce any accepted key representation to a 28-byte key hash for `role`.

    Raises:
        KeyFormatError: Malformed input, script credential, or a format
            that does not belong to the role.
    """
    role = Role.parse(role)

    if isinstance(value, (bytes, bytearray)):
        return _from_raw(bytes(value), bytes(value).hex(), role)
    if not isinstance(value, str):
        raise KeyFormatError(f"Unsupported key input type {type(value).__name__}", role=role.label)

    text = value.strip()
    if not text:
        raise KeyFormatError("Empty key", value=value, role=role.label)

    if _HEX_RE.match(text):
        if len(text) not in (2 * HashSizes.KEY_HASH, 2 * HashSizes.VERIFICATION_KEY):
            raise KeyFormatError(
                "Hex input must be a 56-character key hash or 64-character verification key",
                value=text,
                role=role.label,
            )
        return _from_raw(bytes.fromhex(text), text, role)

    try:
        hrp, raw = bech32.decode(text)
    except bech32.Bech32Error as e:
        raise KeyFormatError(f"Invalid key encoding: {e}", value=text, role=role.label) from None

    vkh_prefix, vk_prefix = _KEY_PREFIXES[role]
    if hrp == vkh_prefix:
        if len(raw) != HashSizes.KEY_HASH:
            raise KeyFormatError("Key hash has wrong length", value=text, role=role.label)
        return raw
    if hrp == vk_prefix:
        return hash_verification_key(raw)

    if role is Role.PAYMENT and hrp in _ADDRESS_HRPS:
        return bytes.fromhex(payment_key_hash(text))
    if role is Role.STAKE and (hrp in _ADDRESS_HRPS or hrp in _REWARD_HRPS):
        return bytes.fromhex(stake_key_hash(text))

    if role in _GOVERNANCE_IDS:
        id_prefix, key_header = _GOVERNANCE_IDS[role]
        if hrp == id_prefix:
            if len(raw) == HashSizes.KEY_HASH:
                return raw
            if len(raw) == HashSizes.KEY_HASH + 1 and raw[0] == key_header:
                return raw[1:]
            raise KeyFormatError(
                "Identifier is not a key-based credential", value=text, role=role.label
            )

    raise KeyFormatError(f"Prefix '{hrp}' is not accepted for role {role.label}", value=text, role=role.label)


# =============================================================================
# Participants
# =============================================================================

@dataclass(frozen=True)
class ParticipantKey:
    """A key hash held by a participant for one role.

    participant_id, when supplied, groups the keys of one person across
    roles. Display names are free text and never identify anyone; a key
    without a participant_id stands for itself (see `owner_id`).
    """
    key_hash: bytes
    role: Role
    display_name: str = ""
    participant_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.key_hash, bytes) or len(self.key_hash) != HashSizes.KEY_HASH:
            raise KeyFormatError(
                f"Key hash must be {HashSizes.KEY_HASH} bytes",
                value=self.key_hash.hex() if isinstance(self.key_hash, bytes) else str(self.key_hash),
            )
        object.__setattr__(self, "role", Role.parse(self.role))
        object.__setattr__(self, "participant_id", self.participant_id or None)

    @property
    def key_hash_hex(self) -> str:
        return self.key_hash.hex()

    @property
    def owner_id(self) -> str:
        """The explicit participant id, else the key hash."""
        return self.participant_id or self.key_hash_hex

    @classmethod
    def from_input(
        cls,
        value: Union[str, bytes],
        role: Union[Role, int, str],
        display_name: str = "",
        participant_id: Optional[str] = None,
    ) -> "ParticipantKey":
        """Build a key from any accepted representation."""
        role = Role.parse(role)
        return cls(
            key_hash=normalize_key(value, role),
            role=role,
            display_name=display_name or "",
            participant_id=participant_id or None,
        )


class KeyRegistry:
    """Ordered, immutable collection of participant keys.

    Insertion order is preserved everywhere; it decides the order of the
    signature leaves in every script built from this registry.
    """

    __slots__ = ("_keys",)

    def __init__(self, keys: Iterable[ParticipantKey] = ()) -> None:
        keys = tuple(keys)
        seen_hashes: set[Tuple[Role, bytes]] = set()
        seen_participants: set[Tuple[Role, str]] = set()
        for key in keys:
            if (key.role, key.key_hash) in seen_hashes:
                raise DuplicateKeyForRoleError(
                    f"Key {key.key_hash_hex} appears twice for role {key.role.label}",
                    role=key.role.label,
                    key_hash=key.key_hash_hex,
                    participant_id=key.participant_id,
                )
            if key.participant_id is not None:
                if (key.role, key.participant_id) in seen_participants:
                    raise DuplicateKeyForRoleError(
                        f"Participant {key.participant_id!r} holds more than one {key.role.label} key",
                        role=key.role.label,
                        key_hash=key.key_hash_hex,
                        participant_id=key.participant_id,
                    )
                seen_participants.add((key.role, key.participant_id))
            seen_hashes.add((key.role, key.key_hash))
        self._keys = keys

    def __iter__(self) -> Iterator[ParticipantKey]:
        return iter(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyRegistry):
            return NotImplemented
        return self._keys == other._keys

    def __hash__(self) -> int:
        return hash(self._keys)

    def __repr__(self) -> str:
        return f"KeyRegistry({len(self._keys)} keys, roles={[r.label for r in self.roles()]})"

    @property
    def keys(self) -> Tuple[ParticipantKey, ...]:
        return self._keys

    def for_role(self, role: Union[Role, int, str]) -> Tuple[ParticipantKey, ...]:
        role = Role.parse(role)
        return tuple(k for k in self._keys if k.role is role)

    def roles(self) -> Tuple[Role, ...]:
        """Roles present, in order of first appearance."""
        return tuple(dict.fromkeys(k.role for k in self._keys))

    def participant_ids(self) -> Tuple[str, ...]:
        return tuple(dict.fromkeys(k.owner_id for k in self._keys))

    def participants_with(self, role: Union[Role, int, str]) -> frozenset[str]:
        return frozenset(k.owner_id for k in self.for_role(role))

    def is_paired(self, *roles: Union[Role, int, str]) -> bool:
        """True iff every key of `roles` carries an explicit participant id."""
        return all(k.participant_id is not None for role in roles for k in self.for_role(role))

    def find(self, role: Union[Role, int, str], participant: Union[str, bytes]) -> Optional[ParticipantKey]:
        """Resolve a participant to its key for `role`.

        `participant` may be a participant id or the hash (hex or bytes) of
        a key. A key of another role resolves only through its explicit
        participant id.
        """
        role = Role.parse(role)
        if isinstance(participant, (bytes, bytearray)):
            participant = bytes(participant).hex()
        lowered = participant.lower()

        owner = None
        for key in self._keys:
            if key.participant_id == participant or key.key_hash_hex == lowered:
                if key.role is role:
                    return key
                owner = owner or key.participant_id
        if owner is None:
            return None
        return next((k for k in self._keys if k.role is role and k.participant_id == owner), None)

    def with_key(self, key: ParticipantKey) -> "KeyRegistry":
        return KeyRegistry(self._keys + (key,))

    def without_participant(self, participant_id: str) -> "KeyRegistry":
        """Drop every key owned by `participant_id` (an explicit id or a key hash)."""
        return KeyRegistry(k for k in self._keys if k.owner_id != participant_id)


__all__ = [
    "Role",
    "ShelleyAddress",
    "ParticipantKey",
    "KeyRegistry",
    "blake2b_224",
    "hash_verification_key",
    "parse_address",
    "normalize_key",
    "address_network",
    "payment_key_hash",
    "stake_key_hash",
    "is_valid_payment_address",
    "is_valid_stake_address",
]
