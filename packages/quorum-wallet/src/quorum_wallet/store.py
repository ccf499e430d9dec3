"""
Persistence seams for the lifecycle service.

Writes are compare-and-set on the artifact version: `save` succeeds only
when the stored version equals `expected_version`, and stores the
artifact at `expected_version + 1`. The in-memory implementations are
for tests and development.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Dict, List, Protocol

from quorum_core.exceptions import ArtifactNotFoundError, PolicyNotFoundError, StaleVersionConflictError

from .artifacts import PendingArtifact
from .policy import MultisigPolicy

logger = logging.getLogger(__name__)


class ArtifactStore(Protocol):
    """Versioned artifact persistence."""

    async def create(self, artifact: PendingArtifact) -> PendingArtifact:
        """Insert a new artifact at version 1."""
        ...

    async def load(self, artifact_id: str) -> PendingArtifact:
        """Current snapshot. Raises ArtifactNotFoundError."""
        ...

    async def save(self, artifact: PendingArtifact, expected_version: int) -> PendingArtifact:
        """Compare-and-set. Raises StaleVersionConflictError on a version mismatch."""
        ...

    async def list_by_policy(self, policy_ref: str) -> List[PendingArtifact]:
        ...


class PolicyRepository(Protocol):
    """Lookup of the current policy for a wallet."""

    async def get(self, policy_ref: str) -> MultisigPolicy:
        """Raises PolicyNotFoundError."""
        ...

    async def put(self, policy_ref: str, policy: MultisigPolicy) -> None:
        ...


class InMemoryArtifactStore:
    """ArtifactStore backed by a dict; each compare-and-set runs under a lock."""

    def __init__(self) -> None:
        self._artifacts: Dict[str, PendingArtifact] = {}
        self._lock = asyncio.Lock()

    async def create(self, artifact: PendingArtifact) -> PendingArtifact:
        async with self._lock:
            if artifact.artifact_id in self._artifacts:
                raise StaleVersionConflictError(
                    artifact.artifact_id, 0, self._artifacts[artifact.artifact_id].version
                )
            stored = replace(artifact, version=1)
            self._artifacts[artifact.artifact_id] = stored
            return stored

    async def load(self, artifact_id: str) -> PendingArtifact:
        artifact = self._artifacts.get(artifact_id)
        if artifact is None:
            raise ArtifactNotFoundError(artifact_id)
        return artifact

    async def save(self, artifact: PendingArtifact, expected_version: int) -> PendingArtifact:
        async with self._lock:
            current = self._artifacts.get(artifact.artifact_id)
            if current is None:
                raise ArtifactNotFoundError(artifact.artifact_id)
            if current.version != expected_version:
                raise StaleVersionConflictError(artifact.artifact_id, expected_version, current.version)
            stored = replace(artifact, version=expected_version + 1)
            self._artifacts[artifact.artifact_id] = stored
            return stored

    async def list_by_policy(self, policy_ref: str) -> List[PendingArtifact]:
        return [a for a in self._artifacts.values() if a.policy_ref == policy_ref]


class InMemoryPolicyRepository:
    def __init__(self) -> None:
        self._policies: Dict[str, MultisigPolicy] = {}

    async def get(self, policy_ref: str) -> MultisigPolicy:
        policy = self._policies.get(policy_ref)
        if policy is None:
            raise PolicyNotFoundError(policy_ref)
        return policy

    async def put(self, policy_ref: str, policy: MultisigPolicy) -> None:
        self._policies[policy_ref] = policy
        logger.info(f"Stored policy {policy_ref} ({len(policy.participants)} keys)")


__all__ = [
    "ArtifactStore",
    "PolicyRepository",
    "InMemoryArtifactStore",
    "InMemoryPolicyRepository",
]
