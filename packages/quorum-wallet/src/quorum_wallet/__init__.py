"""
Quorum Wallet - Cardano multisig policy engine.

This package provides:
- Key normalization from addresses, key hashes and governance identifiers
- Deterministic native script construction per role
- Script hash, address, DRep and committee identifier derivation
- Registration metadata (CIP-1854) export and import
- Signature collection on pending artifacts with optimistic concurrency

Example usage:
    from quorum_wallet import ArtifactLifecycle, InMemoryArtifactStore, InMemoryPolicyRepository, load_policy

    policy = load_policy(stored_config)
    derived = policy.derive()
    print(derived.payment_address, derived.drep_id)

    policies = InMemoryPolicyRepository()
    await policies.put("wallet_1", policy)
    lifecycle = ArtifactLifecycle(InMemoryArtifactStore(), policies)

    draft = await lifecycle.create_draft("wallet_1", tx_body_cbor)
    await lifecycle.propose(draft.artifact_id, "alice", alice_witness)
"""

from .keys import (
    Role,
    ParticipantKey,
    KeyRegistry,
    normalize_key,
    address_network,
    payment_key_hash,
    stake_key_hash,
    is_valid_payment_address,
    is_valid_stake_address,
)
from .native_script import ThresholdKind, ThresholdRule, Sig, AllOf, AnyOf, AtLeastOf, NativeScript
from .script_builder import build
from .derivation import (
    Network,
    StakeCredential,
    DRepId,
    CommitteeId,
    IdFormat,
    script_cbor,
    derive_script_hash,
    derive_address,
    derive_stake_address,
    derive_drep_id,
    convert_drep_id,
    derive_committee_id,
)
from .policy import MultisigPolicy, Capabilities, DerivedAddressSet
from .wallet_config import WalletConfiguration, ParticipantEntry, ThresholdRuleModel, load_policy
from .quorum import QuorumStatus, QuorumState, evaluate
from .artifacts import ArtifactKind, ArtifactState, PendingArtifact
from .store import ArtifactStore, PolicyRepository, InMemoryArtifactStore, InMemoryPolicyRepository
from .verification import SignatureVerifier, VKeyWitness, Ed25519WitnessVerifier
from .lifecycle import ArtifactLifecycle, TransactionSubmitter, QuorumNotificationService

__all__ = [
    "Role",
    "ParticipantKey",
    "KeyRegistry",
    "normalize_key",
    "address_network",
    "payment_key_hash",
    "stake_key_hash",
    "is_valid_payment_address",
    "is_valid_stake_address",
    "ThresholdKind",
    "ThresholdRule",
    "Sig",
    "AllOf",
    "AnyOf",
    "AtLeastOf",
    "NativeScript",
    "build",
    "Network",
    "StakeCredential",
    "DRepId",
    "CommitteeId",
    "IdFormat",
    "script_cbor",
    "derive_script_hash",
    "derive_address",
    "derive_stake_address",
    "derive_drep_id",
    "convert_drep_id",
    "derive_committee_id",
    "MultisigPolicy",
    "Capabilities",
    "DerivedAddressSet",
    "WalletConfiguration",
    "ParticipantEntry",
    "ThresholdRuleModel",
    "load_policy",
    "QuorumStatus",
    "QuorumState",
    "evaluate",
    "ArtifactKind",
    "ArtifactState",
    "PendingArtifact",
    "ArtifactStore",
    "PolicyRepository",
    "InMemoryArtifactStore",
    "InMemoryPolicyRepository",
    "SignatureVerifier",
    "VKeyWitness",
    "Ed25519WitnessVerifier",
    "ArtifactLifecycle",
    "TransactionSubmitter",
    "QuorumNotificationService",
]
