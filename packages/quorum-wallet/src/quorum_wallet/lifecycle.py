"""
Artifact lifecycle: signature collection up to a wallet's quorum.

States:

    DRAFT -> AWAITING_QUORUM -> READY -> SUBMITTED
    DRAFT | AWAITING_QUORUM -> REJECTED

Every mutation is a load, validate, compute, compare-and-set cycle
against the artifact's version. A StaleVersionConflictError from the
store re-runs the whole cycle on the fresh snapshot, so preconditions
(state, eligibility, vote conflicts, signature validity) are always
checked against the version actually being replaced. Two signers
crossing the threshold together therefore produce exactly one
transition to READY, and READY -> SUBMITTED is claimed by exactly one
caller before the submitter is invoked.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Union

from quorum_core.exceptions import (
    IllegalStateTransitionError,
    InvalidSignatureError,
    NotEligibleError,
    QuorumConfigurationError,
    SubmissionError,
    VoteConflictError,
)
from quorum_core.logging import get_logger
from quorum_core.retry import RetryConfig, cas_retry_config, retry_async

from .artifacts import ArtifactKind, ArtifactState, PendingArtifact
from .keys import ParticipantKey, Role
from .policy import MultisigPolicy
from .quorum import QuorumState, QuorumStatus, evaluate
from .store import ArtifactStore, PolicyRepository
from .verification import Ed25519WitnessVerifier, SignatureVerifier

logger = get_logger(__name__)

_STATUS_STATES = {
    QuorumStatus.AWAITING: ArtifactState.AWAITING_QUORUM,
    QuorumStatus.READY: ArtifactState.READY,
    QuorumStatus.REJECTED: ArtifactState.REJECTED,
}


class TransactionSubmitter(Protocol):
    """Protocol for submitting a ready transaction to the chain."""

    async def submit(self, artifact: PendingArtifact) -> str:
        """Submit the signed transaction, returns tx_hash."""
        ...


class QuorumNotificationService(Protocol):
    """Protocol for lifecycle notifications."""

    async def notify_quorum_reached(self, artifact: PendingArtifact) -> None:
        ...

    async def notify_rejected(self, artifact: PendingArtifact) -> None:
        ...


class ArtifactLifecycle:
    """
    Coordinates signature collection on pending artifacts.

    Collaborators:
    - ArtifactStore: versioned persistence with compare-and-set
    - PolicyRepository: current policy per wallet
    - SignatureVerifier: validity of each contribution
    - TransactionSubmitter: optional, used by `submit`
    - QuorumNotificationService: optional, told once per READY/REJECTED transition
    """

    def __init__(
        self,
        store: ArtifactStore,
        policies: PolicyRepository,
        verifier: Optional[SignatureVerifier] = None,
        submitter: Optional[TransactionSubmitter] = None,
        notification_service: Optional[QuorumNotificationService] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self._store = store
        self._policies = policies
        self._verifier = verifier or Ed25519WitnessVerifier()
        self._submitter = submitter
        self._notifications = notification_service
        self._retry_config = retry_config or cas_retry_config()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _mutate(
        self,
        artifact_id: str,
        apply: Callable[[PendingArtifact], Awaitable[PendingArtifact]],
    ) -> PendingArtifact:
        """Run `apply` on the current snapshot and compare-and-set the result.

        `apply` returning its input unchanged is a no-op and writes nothing.
        """

        async def attempt() -> PendingArtifact:
            current = await self._store.load(artifact_id)
            updated = await apply(current)
            if updated is current:
                return current
            saved = await self._store.save(updated, expected_version=current.version)
            await self._announce(current, saved)
            return saved

        attempt.__name__ = f"{getattr(apply, '__name__', 'mutate')}[{artifact_id}]"
        return await retry_async(attempt, config=self._retry_config)

    async def _announce(self, before: PendingArtifact, after: PendingArtifact) -> None:
        if before.state is after.state:
            return
        logger.info(
            f"Artifact {after.artifact_id}: {before.state.value} -> {after.state.value}",
            wallet_id=after.policy_ref,
            artifact_id=after.artifact_id,
            signed=after.signed_count,
            rejected=after.rejected_count,
            total_eligible=after.total_eligible,
        )
        if not self._notifications:
            return
        if after.state is ArtifactState.READY:
            await self._notifications.notify_quorum_reached(after)
        elif after.state is ArtifactState.REJECTED:
            await self._notifications.notify_rejected(after)

    @staticmethod
    def _resolve(policy: MultisigPolicy, artifact: PendingArtifact, participant: Union[str, bytes]) -> ParticipantKey:
        key = policy.participants.find(artifact.role, participant)
        if key is None:
            shown = participant.hex() if isinstance(participant, (bytes, bytearray)) else participant
            raise NotEligibleError(
                f"{shown} holds no {artifact.role.label} key in policy {artifact.policy_ref}",
                details={"participant": shown, "artifact_id": artifact.artifact_id, "role": artifact.role.label},
            )
        return key

    @staticmethod
    def _require_state(artifact: PendingArtifact, requested: str, *allowed: ArtifactState) -> None:
        if artifact.state not in allowed:
            raise IllegalStateTransitionError(artifact.state.value, requested, artifact_id=artifact.artifact_id)

    async def _verify(self, artifact: PendingArtifact, key: ParticipantKey, signature: Any) -> None:
        if not await self._verifier.verify(artifact.signing_payload, signature, key.key_hash):
            logger.warning(
                "Rejected invalid signature",
                wallet_id=artifact.policy_ref,
                artifact_id=artifact.artifact_id,
                signer=key.key_hash_hex,
            )
            raise InvalidSignatureError(participant=key.owner_id, artifact_id=artifact.artifact_id)

    def _evaluate(self, policy: MultisigPolicy, artifact: PendingArtifact, **changes: Any) -> PendingArtifact:
        signed = changes.get("signed_by", artifact.signed_by)
        rejected = changes.get("rejected_by", artifact.rejected_by)
        total = changes.get("total_eligible", artifact.total_eligible)
        state = evaluate(policy.threshold, total, len(signed), len(rejected))
        return artifact.evolve(state=_STATUS_STATES[state.status], **changes)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create_draft(
        self,
        policy_ref: str,
        payload: bytes,
        kind: Union[ArtifactKind, str] = ArtifactKind.TRANSACTION,
        role: Union[Role, int, str] = Role.PAYMENT,
        description: str = "",
        artifact_id: Optional[str] = None,
    ) -> PendingArtifact:
        """Create an artifact in DRAFT for the policy's `role` script."""
        policy = await self._policies.get(policy_ref)
        role = Role.parse(role)
        if policy.script_for(role) is None:
            raise QuorumConfigurationError(
                f"Policy {policy_ref} has no {role.label} script",
                details={"policy_ref": policy_ref, "role": role.label},
            )

        artifact = PendingArtifact(
            artifact_id=artifact_id or PendingArtifact.new_id(),
            policy_ref=policy_ref,
            kind=ArtifactKind(kind),
            role=role,
            payload=bytes(payload),
            description=description,
            total_eligible=len(policy.eligible_signers(role)),
        )
        created = await self._store.create(artifact)
        logger.info(
            f"Created draft {created.artifact_id}",
            wallet_id=policy_ref,
            artifact_id=created.artifact_id,
            kind=created.kind.value,
            role=role.label,
        )
        return created

    async def get(self, artifact_id: str) -> PendingArtifact:
        return await self._store.load(artifact_id)

    async def quorum_state(self, artifact_id: str) -> QuorumState:
        artifact = await self._store.load(artifact_id)
        policy = await self._policies.get(artifact.policy_ref)
        return evaluate(policy.threshold, artifact.total_eligible, artifact.signed_count, artifact.rejected_count)

    async def propose(self, artifact_id: str, participant: Union[str, bytes], signature: Any) -> PendingArtifact:
        """DRAFT -> AWAITING_QUORUM with the proposer's signature recorded first.

        Goes straight to READY when one signature already meets the threshold.
        """

        async def apply_propose(current: PendingArtifact) -> PendingArtifact:
            self._require_state(current, "propose", ArtifactState.DRAFT)
            policy = await self._policies.get(current.policy_ref)
            key = self._resolve(policy, current, participant)
            await self._verify(current, key, signature)
            return self._evaluate(
                policy,
                current,
                proposer=key.key_hash_hex,
                signed_by=(key.key_hash_hex,),
                rejected_by=(),
                total_eligible=len(policy.eligible_signers(current.role)),
            )

        return await self._mutate(artifact_id, apply_propose)

    async def record_signature(
        self,
        artifact_id: str,
        participant: Union[str, bytes],
        signature: Any,
    ) -> PendingArtifact:
        """Add a verified signature. Repeat signatures are no-ops.

        Raises:
            IllegalStateTransitionError: Artifact is DRAFT, SUBMITTED or REJECTED.
            NotEligibleError: Participant holds no key for the artifact's role.
            VoteConflictError: Participant already rejected.
            InvalidSignatureError: Verification failed; nothing is recorded.
        """

        async def apply_signature(current: PendingArtifact) -> PendingArtifact:
            self._require_state(current, "sign", ArtifactState.AWAITING_QUORUM, ArtifactState.READY)
            policy = await self._policies.get(current.policy_ref)
            key = self._resolve(policy, current, participant)
            if key.key_hash_hex in current.rejected_by:
                raise VoteConflictError(
                    f"{key.owner_id} already rejected artifact {current.artifact_id}",
                    details={"participant": key.owner_id, "artifact_id": current.artifact_id},
                )
            await self._verify(current, key, signature)
            if key.key_hash_hex in current.signed_by:
                return current
            return self._evaluate(policy, current, signed_by=current.signed_by + (key.key_hash_hex,))

        return await self._mutate(artifact_id, apply_signature)

    async def record_rejection(self, artifact_id: str, participant: Union[str, bytes]) -> PendingArtifact:
        """Add a rejection. Repeat rejections are no-ops.

        A rejection never takes a READY artifact out of READY.
        """

        async def apply_rejection(current: PendingArtifact) -> PendingArtifact:
            policy = await self._policies.get(current.policy_ref)
            key = self._resolve(policy, current, participant)
            # Repeats are no-ops even after the rejection made the artifact terminal
            if key.key_hash_hex in current.rejected_by:
                return current
            self._require_state(current, "reject", ArtifactState.AWAITING_QUORUM, ArtifactState.READY)
            if key.key_hash_hex in current.signed_by:
                raise VoteConflictError(
                    f"{key.owner_id} already signed artifact {current.artifact_id}",
                    details={"participant": key.owner_id, "artifact_id": current.artifact_id},
                )
            return self._evaluate(policy, current, rejected_by=current.rejected_by + (key.key_hash_hex,))

        return await self._mutate(artifact_id, apply_rejection)

    async def mark_submitted(self, artifact_id: str, tx_hash: Optional[str] = None) -> PendingArtifact:
        """READY -> SUBMITTED for artifacts submitted outside this service."""

        async def apply_submitted(current: PendingArtifact) -> PendingArtifact:
            self._require_state(current, "mark submitted", ArtifactState.READY)
            return current.evolve(state=ArtifactState.SUBMITTED, tx_hash=tx_hash, submission_error=None)

        return await self._mutate(artifact_id, apply_submitted)

    async def submit(self, artifact_id: str) -> PendingArtifact:
        """Claim READY -> SUBMITTED, then call the submitter once.

        The claim is never reverted: a failed call may still have reached
        the chain. On submitter failure the artifact stays SUBMITTED with
        no tx_hash and the error recorded in `submission_error`, and the
        error is re-raised.
        """
        if self._submitter is None:
            raise SubmissionError("No transaction submitter configured")

        async def apply_claim(current: PendingArtifact) -> PendingArtifact:
            self._require_state(current, "submit", ArtifactState.READY)
            if current.kind is not ArtifactKind.TRANSACTION:
                raise SubmissionError(
                    "Only transactions are submitted to the chain",
                    details={"artifact_id": current.artifact_id, "kind": current.kind.value},
                )
            return current.evolve(state=ArtifactState.SUBMITTED, submission_error=None)

        claimed = await self._mutate(artifact_id, apply_claim)

        try:
            tx_hash = await self._submitter.submit(claimed)
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.error(
                f"Submission failed for {artifact_id}: {error}",
                wallet_id=claimed.policy_ref,
                artifact_id=artifact_id,
            )

            async def apply_error(current: PendingArtifact) -> PendingArtifact:
                return current.evolve(submission_error=error)

            try:
                await self._mutate(artifact_id, apply_error)
            except Exception as record_error:
                raise SubmissionError(
                    f"Submission of {artifact_id} failed and the failure was not recorded: {error}",
                    details={"artifact_id": artifact_id, "record_error": str(record_error)},
                ) from e
            raise

        async def apply_tx_hash(current: PendingArtifact) -> PendingArtifact:
            return current.evolve(tx_hash=tx_hash)

        submitted = await self._mutate(artifact_id, apply_tx_hash)
        logger.info(
            f"Submitted {artifact_id}: {tx_hash}",
            wallet_id=submitted.policy_ref,
            artifact_id=artifact_id,
        )
        return submitted

    async def cancel(self, artifact_id: str) -> PendingArtifact:
        """DRAFT | AWAITING_QUORUM -> REJECTED."""

        async def apply_cancel(current: PendingArtifact) -> PendingArtifact:
            self._require_state(current, "cancel", ArtifactState.DRAFT, ArtifactState.AWAITING_QUORUM)
            return current.evolve(state=ArtifactState.REJECTED)

        return await self._mutate(artifact_id, apply_cancel)

    async def revalidate(self, artifact_id: str) -> PendingArtifact:
        """Re-derive eligibility from the current policy and re-evaluate.

        Votes of keys no longer eligible for the artifact's role are
        dropped. Terminal artifacts are left untouched.
        """

        async def apply_revalidate(current: PendingArtifact) -> PendingArtifact:
            if current.state.is_terminal:
                return current
            policy = await self._policies.get(current.policy_ref)
            eligible = set(policy.eligible_signers(current.role))
            signed_by = tuple(s for s in current.signed_by if s in eligible)
            rejected_by = tuple(r for r in current.rejected_by if r in eligible)
            total = len(eligible)

            if current.state is ArtifactState.DRAFT:
                if total == current.total_eligible:
                    return current
                return current.evolve(total_eligible=total)

            updated = self._evaluate(
                policy, current, signed_by=signed_by, rejected_by=rejected_by, total_eligible=total
            )
            if (
                updated.state is current.state
                and updated.signed_by == current.signed_by
                and updated.rejected_by == current.rejected_by
                and updated.total_eligible == current.total_eligible
            ):
                return current
            return updated

        return await self._mutate(artifact_id, apply_revalidate)

    async def on_policy_changed(self, policy_ref: str) -> List[PendingArtifact]:
        """Revalidate every open artifact of a wallet after its policy changed."""
        results = []
        for artifact in await self._store.list_by_policy(policy_ref):
            if artifact.state.is_terminal:
                continue
            results.append(await self.revalidate(artifact.artifact_id))
        logger.info(
            f"Revalidated {len(results)} open artifacts",
            wallet_id=policy_ref,
        )
        return results

    async def update_policy(self, policy_ref: str, policy: MultisigPolicy) -> List[PendingArtifact]:
        """Store a new policy for the wallet and revalidate its open artifacts."""
        await self._policies.put(policy_ref, policy)
        return await self.on_policy_changed(policy_ref)

    async def summary(self, policy_ref: str) -> List[Dict[str, Any]]:
        """Open artifacts of a wallet, as dictionaries."""
        return [
            a.to_dict()
            for a in await self._store.list_by_policy(policy_ref)
            if not a.state.is_terminal
        ]


__all__ = [
    "TransactionSubmitter",
    "QuorumNotificationService",
    "ArtifactLifecycle",
]
