"""
Quorum evaluation for pending artifacts.

A pure function of counts. It never sees who signed; keeping one vote
per participant is the lifecycle's job.

- all:         ready iff every eligible signer signed; any rejection is terminal
- any:         ready iff at least one signature; rejections are informational
- atLeast(k):  ready iff k signatures; terminal once fewer than k signers
               remain who have not rejected
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from .native_script import ThresholdKind, ThresholdRule


class QuorumStatus(str, Enum):
    AWAITING = "awaiting"
    READY = "ready"
    REJECTED = "rejected"


@dataclass(frozen=True)
class QuorumState:
    """Outcome of one evaluation."""
    status: QuorumStatus
    required: int
    signed: int
    rejected: int
    total_eligible: int

    @property
    def remaining(self) -> int:
        """Signatures still missing."""
        return max(0, self.required - self.signed)

    @property
    def is_ready(self) -> bool:
        return self.status is QuorumStatus.READY

    @property
    def is_rejected(self) -> bool:
        return self.status is QuorumStatus.REJECTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "required": self.required,
            "signed": self.signed,
            "rejected": self.rejected,
            "total_eligible": self.total_eligible,
            "remaining": self.remaining,
        }


def evaluate(
    rule: ThresholdRule,
    total_eligible: int,
    signed_count: int,
    rejected_count: int,
) -> QuorumState:
    """Evaluate quorum for the given counts."""
    if min(total_eligible, signed_count, rejected_count) < 0:
        raise ValueError("Quorum counts must be non-negative")

    required = rule.required_for(total_eligible)

    if rule.kind is ThresholdKind.ALL:
        if rejected_count > 0:
            status = QuorumStatus.REJECTED
        elif total_eligible > 0 and signed_count >= total_eligible:
            status = QuorumStatus.READY
        else:
            status = QuorumStatus.AWAITING
    elif rule.kind is ThresholdKind.ANY:
        status = QuorumStatus.READY if signed_count >= 1 else QuorumStatus.AWAITING
    elif rule.kind is ThresholdKind.AT_LEAST:
        if signed_count >= required:
            status = QuorumStatus.READY
        elif total_eligible - rejected_count < required:
            status = QuorumStatus.REJECTED
        else:
            status = QuorumStatus.AWAITING
    else:
        raise TypeError(f"Unknown threshold kind: {rule.kind!r}")

    return QuorumState(
        status=status,
        required=required,
        signed=signed_count,
        rejected=rejected_count,
        total_eligible=total_eligible,
    )


__all__ = ["QuorumStatus", "QuorumState", "evaluate"]
