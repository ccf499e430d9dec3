"""
Pytest configuration for quorum-wallet tests.
"""
from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List

import pytest
from nacl.signing import SigningKey

# Add package sources to path
package_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(package_src))
core_src = Path(__file__).parent.parent.parent / "quorum-core" / "src"
sys.path.insert(0, str(core_src))

# Set test environment
os.environ.setdefault("QUORUM_ENVIRONMENT", "test")

from quorum_core.config import load_settings  # noqa: E402
from quorum_wallet.artifacts import PendingArtifact  # noqa: E402
from quorum_wallet.keys import KeyRegistry, ParticipantKey, Role, blake2b_224  # noqa: E402
from quorum_wallet.lifecycle import ArtifactLifecycle  # noqa: E402
from quorum_wallet.native_script import ThresholdRule  # noqa: E402
from quorum_wallet.policy import MultisigPolicy  # noqa: E402
from quorum_wallet.store import InMemoryArtifactStore, InMemoryPolicyRepository  # noqa: E402
from quorum_wallet.verification import VKeyWitness  # noqa: E402

WALLET = "wallet_1"


@dataclass
class Signer:
    """A participant holding an Ed25519 signing key for one role."""
    name: str
    signing_key: SigningKey

    @property
    def vkey(self) -> bytes:
        return bytes(self.signing_key.verify_key)

    @property
    def key_hash(self) -> bytes:
        return blake2b_224(self.vkey)

    @property
    def key_hash_hex(self) -> str:
        return self.key_hash.hex()

    def key(self, role: Role = Role.PAYMENT) -> ParticipantKey:
        return ParticipantKey(self.key_hash, role, display_name=self.name, participant_id=self.name)

    def sign(self, payload: bytes) -> VKeyWitness:
        return VKeyWitness(self.vkey, self.signing_key.sign(payload).signature)

    def witness_for(self, artifact: PendingArtifact) -> VKeyWitness:
        return self.sign(artifact.signing_payload)


def make_signers(names: List[str], offset: int = 1) -> List[Signer]:
    return [Signer(name, SigningKey(bytes([i + offset]) * 32)) for i, name in enumerate(names)]


class RecordingNotifier:
    """Notification service that records what it was told."""

    def __init__(self) -> None:
        self.ready: List[str] = []
        self.rejected: List[str] = []

    async def notify_quorum_reached(self, artifact: PendingArtifact) -> None:
        self.ready.append(artifact.artifact_id)

    async def notify_rejected(self, artifact: PendingArtifact) -> None:
        self.rejected.append(artifact.artifact_id)


class RecordingSubmitter:
    """Transaction submitter that records calls and can be told to fail."""

    def __init__(self, tx_hash: str = "ab" * 32, error: Exception | None = None) -> None:
        self.tx_hash = tx_hash
        self.error = error
        self.calls: List[str] = []

    async def submit(self, artifact: PendingArtifact) -> str:
        self.calls.append(artifact.artifact_id)
        if self.error is not None:
            raise self.error
        return self.tx_hash


@pytest.fixture(scope="session")
def anyio_backend():
    """Use asyncio for async tests."""
    return "asyncio"


@pytest.fixture(autouse=True)
def clear_settings_cache():
    load_settings.cache_clear()
    yield
    load_settings.cache_clear()


@pytest.fixture
def signers() -> List[Signer]:
    """Payment signers alice, bob and carol."""
    return make_signers(["alice", "bob", "carol"])


@pytest.fixture
def stake_signers() -> List[Signer]:
    """Stake signers for alice, bob and carol."""
    return make_signers(["alice", "bob", "carol"], offset=101)


@pytest.fixture
def signer_factory():
    """Build signers with seeds starting at `offset`."""
    return make_signers


@pytest.fixture
def key_hashes(signers) -> List[bytes]:
    return [s.key_hash for s in signers]


@pytest.fixture
def two_of_three(signers) -> MultisigPolicy:
    """Payment-only 2-of-3 policy on testnet."""
    return MultisigPolicy(
        name="Team Wallet",
        participants=KeyRegistry(s.key() for s in signers),
        threshold=ThresholdRule.at_least(2),
        network="testnet",
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def submitter() -> RecordingSubmitter:
    return RecordingSubmitter()


@pytest.fixture
def store() -> InMemoryArtifactStore:
    return InMemoryArtifactStore()


@pytest.fixture
def policies() -> InMemoryPolicyRepository:
    return InMemoryPolicyRepository()


@pytest.fixture
async def lifecycle(store, policies, two_of_three, notifier, submitter) -> ArtifactLifecycle:
    await policies.put(WALLET, two_of_three)
    return ArtifactLifecycle(
        store,
        policies,
        submitter=submitter,
        notification_service=notifier,
    )
