"""Pending artifacts: transactions or signable payloads awaiting a quorum."""
from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from quorum_core.constants import HashSizes

from .keys import Role


class ArtifactKind(str, Enum):
    """What participants are signing."""
    TRANSACTION = "transaction"  # payload is the transaction body CBOR
    SIGNABLE = "signable"  # payload is signed as-is


class ArtifactState(str, Enum):
    """Lifecycle state of a pending artifact."""
    DRAFT = "draft"
    AWAITING_QUORUM = "awaiting_quorum"
    READY = "ready"
    SUBMITTED = "submitted"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (ArtifactState.SUBMITTED, ArtifactState.REJECTED)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PendingArtifact:
    """Snapshot of an artifact at one version.

    signed_by / rejected_by hold the key hash (hex) each participant
    registered for the artifact's role, in the order votes arrived.
    """
    artifact_id: str
    policy_ref: str
    kind: ArtifactKind
    role: Role
    payload: bytes
    description: str = ""
    proposer: Optional[str] = None
    signed_by: Tuple[str, ...] = ()
    rejected_by: Tuple[str, ...] = ()
    state: ArtifactState = ArtifactState.DRAFT
    total_eligible: int = 0
    tx_hash: Optional[str] = None
    submission_error: Optional[str] = None
    version: int = 0
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @staticmethod
    def new_id() -> str:
        return f"artifact_{secrets.token_hex(12)}"

    @property
    def signing_payload(self) -> bytes:
        """Bytes each participant signs: the body hash for transactions."""
        if self.kind is ArtifactKind.TRANSACTION:
            return hashlib.blake2b(self.payload, digest_size=HashSizes.TX_BODY_HASH).digest()
        return self.payload

    @property
    def signed_count(self) -> int:
        return len(self.signed_by)

    @property
    def rejected_count(self) -> int:
        return len(self.rejected_by)

    def evolve(self, **changes: Any) -> "PendingArtifact":
        """Copy with changes applied and updated_at refreshed."""
        changes.setdefault("updated_at", _now())
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "artifact_id": self.artifact_id,
            "policy_ref": self.policy_ref,
            "kind": self.kind.value,
            "role": self.role.label,
            "description": self.description,
            "proposer": self.proposer,
            "signed_by": list(self.signed_by),
            "rejected_by": list(self.rejected_by),
            "state": self.state.value,
            "total_eligible": self.total_eligible,
            "tx_hash": self.tx_hash,
            "submission_error": self.submission_error,
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


__all__ = ["ArtifactKind", "ArtifactState", "PendingArtifact"]
