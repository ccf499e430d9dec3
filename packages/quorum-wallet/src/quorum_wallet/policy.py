"""
Multisig policy facade.

A MultisigPolicy is an immutable value: the wallet's participant keys,
its threshold rule and its network. Scripts are built per role on
demand and memoized on the instance; any configuration change goes
through `with_participant` / `without_participant` (or a fresh
construction) and yields a new policy with an empty cache.

Role scripts:
- Payment: always built
- Stake: only when the stake keys cover the payment keys
- DRep: only when the DRep keys cover the payment keys
- Committee cold/hot: whenever keys exist for the role

Coverage pairs keys by explicit participant id when every key involved
has one, and otherwise means the role has as many keys as payment.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from quorum_core.config import load_settings
from quorum_core.constants import MetadataConfig
from quorum_core.exceptions import NoParticipantsError

from .derivation import (
    CommitteeId,
    DRepId,
    Network,
    StakeCredential,
    derive_address,
    derive_committee_id,
    derive_drep_id,
    derive_script_hash,
    derive_stake_address,
    script_cbor,
)
from .keys import KeyRegistry, ParticipantKey, Role
from .native_script import NativeScript, ThresholdRule, to_json
from .script_builder import build

logger = logging.getLogger(__name__)

# Roles whose script needs its keys to cover the payment keys
_COVERAGE_ROLES = (Role.STAKE, Role.DREP)


@dataclass(frozen=True)
class Capabilities:
    """What the policy's key coverage enables.

    partial_roles lists coverage roles (stake, DRep) that have keys but
    do not cover the payment keys. Those roles get no script.
    """
    staking_enabled: bool
    governance_enabled: bool
    external_stake_credential: bool
    roles: Tuple[Role, ...]
    partial_roles: Tuple[Role, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "staking_enabled": self.staking_enabled,
            "governance_enabled": self.governance_enabled,
            "external_stake_credential": self.external_stake_credential,
            "roles": [r.label for r in self.roles],
            "partial_roles": [r.label for r in self.partial_roles],
        }


@dataclass(frozen=True)
class DerivedAddressSet:
    """Identifiers derived from a policy for one network. Never persisted as truth."""
    network: Network
    script_hash: bytes
    script_cbor: str
    payment_address: str
    stake_address: Optional[str] = None
    drep_id: Optional[DRepId] = None
    committee_cold_id: Optional[CommitteeId] = None
    committee_hot_id: Optional[CommitteeId] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "network": self.network.name.lower(),
            "script_hash": self.script_hash.hex(),
            "script_cbor": self.script_cbor,
            "payment_address": self.payment_address,
            "stake_address": self.stake_address,
            "drep_id": {"cip105": self.drep_id.cip105, "cip129": self.drep_id.cip129} if self.drep_id else None,
            "committee_cold_id": self.committee_cold_id.format() if self.committee_cold_id else None,
            "committee_hot_id": self.committee_hot_id.format() if self.committee_hot_id else None,
        }


@dataclass(frozen=True)
class MultisigPolicy:
    """Immutable multisig wallet policy."""
    name: str
    participants: KeyRegistry
    threshold: ThresholdRule
    description: str = ""
    network: Network = Network.MAINNET
    stake_credential_override: Optional[StakeCredential] = None
    _scripts: Dict[Role, Optional[NativeScript]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        if not isinstance(self.participants, KeyRegistry):
            object.__setattr__(self, "participants", KeyRegistry(self.participants))
        object.__setattr__(self, "network", Network.parse(self.network))
        object.__setattr__(self, "description", self.description or "")
        if self.stake_credential_override is not None:
            object.__setattr__(
                self,
                "stake_credential_override",
                StakeCredential.parse(self.stake_credential_override),
            )

        if len(self.participants) == 0:
            raise NoParticipantsError("Policy has no participants")
        if not self.participants.for_role(Role.PAYMENT):
            raise NoParticipantsError("Policy has no payment keys")

        # Builds (and so validates the threshold for) every role that gets a script
        for role in self.participants.roles():
            self.script_for(role)

    # ------------------------------------------------------------------
    # Scripts and capabilities
    # ------------------------------------------------------------------

    def _fully_covered(self, role: Role) -> bool:
        keys = self.participants.for_role(role)
        payment = self.participants.for_role(Role.PAYMENT)
        if not keys or not payment:
            return False
        if self.participants.is_paired(Role.PAYMENT, role):
            return self.participants.participants_with(role) == self.participants.participants_with(Role.PAYMENT)
        return len(keys) == len(payment)

    @property
    def staking_enabled(self) -> bool:
        return self._fully_covered(Role.STAKE)

    @property
    def governance_enabled(self) -> bool:
        return self._fully_covered(Role.DREP)

    def script_for(self, role: Union[Role, int, str]) -> Optional[NativeScript]:
        """Native script for `role`, or None when the role gets no script."""
        role = Role.parse(role)
        if role in self._scripts:
            return self._scripts[role]

        if role in _COVERAGE_ROLES and not self._fully_covered(role):
            script = None
        else:
            script = build(role, self.participants, self.threshold)
        self._scripts[role] = script
        return script

    def capabilities(self) -> Capabilities:
        present = self.participants.roles()
        return Capabilities(
            staking_enabled=self.staking_enabled,
            governance_enabled=self.governance_enabled,
            external_stake_credential=self.stake_credential_override is not None,
            roles=tuple(r for r in present if self.script_for(r) is not None),
            partial_roles=tuple(r for r in present if r in _COVERAGE_ROLES and not self._fully_covered(r)),
        )

    def stake_credential(self) -> Optional[StakeCredential]:
        """The wallet's own stake script when staking is enabled, else the external override."""
        stake_script = self.script_for(Role.STAKE)
        if stake_script is not None:
            return StakeCredential(derive_script_hash(stake_script), is_script=True)
        return self.stake_credential_override

    def eligible_signers(self, role: Union[Role, int, str] = Role.PAYMENT) -> Tuple[str, ...]:
        """Key hashes (hex) of everyone who can sign for `role`."""
        return tuple(k.key_hash_hex for k in self.participants.for_role(role))

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def derive(self, network: Union[Network, int, str, None] = None) -> DerivedAddressSet:
        """Derive addresses and identifiers, on the policy's network unless told otherwise."""
        network = self.network if network is None else Network.parse(network)
        payment_script = self.script_for(Role.PAYMENT)
        credential = self.stake_credential()

        # Without its own DRep script the wallet votes with its payment script
        drep_script = self.script_for(Role.DREP) or payment_script
        cold_script = self.script_for(Role.COMMITTEE_COLD)
        hot_script = self.script_for(Role.COMMITTEE_HOT)

        derived = DerivedAddressSet(
            network=network,
            script_hash=derive_script_hash(payment_script),
            script_cbor=script_cbor(payment_script),
            payment_address=derive_address(payment_script, network, credential),
            stake_address=derive_stake_address(credential, network) if credential else None,
            drep_id=derive_drep_id(drep_script),
            committee_cold_id=derive_committee_id(cold_script, Role.COMMITTEE_COLD) if cold_script else None,
            committee_hot_id=derive_committee_id(hot_script, Role.COMMITTEE_HOT) if hot_script else None,
        )
        logger.debug(f"Derived {derived.payment_address} for policy '{self.name}'")
        return derived

    # ------------------------------------------------------------------
    # Registration metadata
    # ------------------------------------------------------------------

    def metadata_document(self) -> Dict[str, Any]:
        """Registration metadata: participant names and per-role script JSON.

        Keys paired by an explicit participant id carry it as
        `participantId`, so the pairing survives a round trip.
        """
        return {
            "name": self.name,
            "description": self.description,
            "types": [int(role) for role in self.participants.roles()],
            "participants": {
                key.key_hash_hex: _participant_entry(key) for key in self.participants
            },
            "scripts": {
                str(int(role)): to_json(script)
                for role in self.participants.roles()
                if (script := self.script_for(role)) is not None
            },
        }

    def auxiliary_metadata(self, label: Optional[int] = None) -> Dict[int, Any]:
        """The metadata document under `label` (the configured `metadata_label`
        by default), with long strings split into 64-byte chunks."""
        if label is None:
            label = load_settings().metadata_label
        return {label: _chunk_strings(self.metadata_document())}

    # ------------------------------------------------------------------
    # Derived policies
    # ------------------------------------------------------------------

    def with_participant(self, key: ParticipantKey) -> "MultisigPolicy":
        return replace(self, participants=self.participants.with_key(key))

    def without_participant(self, participant_id: str) -> "MultisigPolicy":
        return replace(self, participants=self.participants.without_participant(participant_id))

    def with_participants(self, keys: Iterable[ParticipantKey]) -> "MultisigPolicy":
        return replace(self, participants=KeyRegistry(keys))


def _participant_entry(key: ParticipantKey) -> Dict[str, str]:
    entry = {"name": key.display_name}
    if key.participant_id is not None:
        entry["participantId"] = key.participant_id
    return entry


def _split_text(text: str, limit: int = MetadataConfig.MAX_TEXT_BYTES) -> List[str]:
    chunks: List[str] = []
    current = ""
    for char in text:
        if len((current + char).encode("utf-8")) > limit:
            chunks.append(current)
            current = char
        else:
            current += char
    chunks.append(current)
    return chunks


def _chunk_strings(value: Any) -> Any:
    if isinstance(value, str):
        if len(value.encode("utf-8")) <= MetadataConfig.MAX_TEXT_BYTES:
            return value
        return _split_text(value)
    if isinstance(value, dict):
        return {k: _chunk_strings(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_chunk_strings(v) for v in value]
    return value


def join_chunks(value: Any) -> Any:
    """Undo 64-byte chunking on a string field read back from chain metadata."""
    if isinstance(value, list) and value and all(isinstance(v, str) for v in value):
        return "".join(value)
    return value


__all__ = [
    "Capabilities",
    "DerivedAddressSet",
    "MultisigPolicy",
    "join_chunks",
]
