"""Unified exception hierarchy for Quorum.

All Quorum-specific exceptions inherit from QuorumException, enabling:
- Consistent error handling across packages
- HTTP status code hints for whatever API layer wraps the engine
- Structured error responses with error codes

Usage:
    from quorum_core.exceptions import (
        QuorumException,
        InvalidThresholdError,
        StaleVersionConflictError,
    )

    try:
        policy = config.to_policy()
    except QuorumConfigurationError as e:
        return e.to_dict()

All exceptions have:
- error_code: Machine-readable error code (e.g., "INVALID_THRESHOLD")
- http_status: Appropriate HTTP status code for API responses
- message: Human-readable error message
- details: Optional additional context dictionary
- to_dict(): Convert to API response format

Configuration errors (QuorumConfigurationError subclasses) are fatal to
policy construction. InvalidSignatureError rejects a single contribution.
StaleVersionConflictError is consumed by the lifecycle's retry loop and
IllegalStateTransitionError signals a caller-side bug.
"""
from __future__ import annotations

from typing import Any, Optional, Type


class QuorumException(Exception):
    """Base exception for all Quorum errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., "INVALID_THRESHOLD")
        details: Optional additional context
    """

    error_code: str = "QUORUM_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response format."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Configuration Errors (fatal to policy construction)
# =============================================================================

class QuorumConfigurationError(QuorumException):
    """Wallet configuration cannot produce a valid policy."""

    error_code = "CONFIGURATION_ERROR"
    http_status = 400


class InvalidThresholdError(QuorumConfigurationError):
    """Threshold rule is out of range for the role's participant count."""

    error_code = "INVALID_THRESHOLD"

    def __init__(
        self,
        message: str,
        required: Optional[int] = None,
        available: Optional[int] = None,
        role: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if required is not None:
            details["required"] = required
        if available is not None:
            details["available"] = available
        if role:
            details["role"] = role
        super().__init__(message, details=details)


class DuplicateKeyForRoleError(QuorumConfigurationError):
    """Two entries share a role and key hash, or one participant holds two keys for a role."""

    error_code = "DUPLICATE_KEY_FOR_ROLE"

    def __init__(
        self,
        message: str,
        role: Optional[str] = None,
        key_hash: Optional[str] = None,
        participant_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if role:
            details["role"] = role
        if key_hash:
            details["key_hash"] = key_hash
        if participant_id:
            details["participant_id"] = participant_id
        super().__init__(message, details=details)


class NoParticipantsError(QuorumConfigurationError):
    """Policy has no participants (or no payment keys)."""

    error_code = "NO_PARTICIPANTS"


class KeyFormatError(QuorumConfigurationError):
    """Malformed address, key hash or identifier."""

    error_code = "KEY_FORMAT_ERROR"

    def __init__(
        self,
        message: str,
        value: Optional[str] = None,
        role: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if value is not None:
            details["value"] = value if len(value) <= 128 else value[:128] + "..."
        if role:
            details["role"] = role
        super().__init__(message, details=details)


class UnsupportedNetworkError(QuorumException):
    """Network id or name is not recognized."""

    error_code = "UNSUPPORTED_NETWORK"
    http_status = 400

    def __init__(
        self,
        network: Any,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        details["network"] = str(network)
        super().__init__(f"Unsupported network: {network!r}", details=details)


# =============================================================================
# Signing Errors (recoverable, per contribution)
# =============================================================================

class InvalidSignatureError(QuorumException):
    """Signature does not verify against the payload and registered key."""

    error_code = "INVALID_SIGNATURE"
    http_status = 400

    def __init__(
        self,
        message: str = "Signature verification failed",
        participant: Optional[str] = None,
        artifact_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if participant:
            details["participant"] = participant
        if artifact_id:
            details["artifact_id"] = artifact_id
        super().__init__(message, details=details)


class NotEligibleError(QuorumException):
    """Participant holds no key for the role that governs the artifact."""

    error_code = "NOT_ELIGIBLE"
    http_status = 403


class VoteConflictError(QuorumException):
    """Participant tried to both sign and reject the same artifact."""

    error_code = "VOTE_CONFLICT"
    http_status = 409


# =============================================================================
# Lifecycle Errors
# =============================================================================

class IllegalStateTransitionError(QuorumException):
    """Requested transition is not legal from the artifact's current state."""

    error_code = "ILLEGAL_STATE_TRANSITION"
    http_status = 409

    def __init__(
        self,
        current_state: str,
        requested: str,
        artifact_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        details["current_state"] = current_state
        details["requested"] = requested
        if artifact_id:
            details["artifact_id"] = artifact_id
        super().__init__(
            f"Cannot {requested} an artifact in state {current_state}",
            details=details,
        )


class StaleVersionConflictError(QuorumException):
    """Optimistic concurrency conflict; retried internally, never user-facing."""

    error_code = "STALE_VERSION_CONFLICT"
    http_status = 409

    def __init__(
        self,
        entity_id: str,
        expected_version: int,
        actual_version: int,
    ) -> None:
        super().__init__(
            f"Concurrency conflict on {entity_id}: expected version {expected_version}, got {actual_version}",
            details={
                "entity_id": entity_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )


class SubmissionError(QuorumException):
    """External submitter failed to submit a ready transaction."""

    error_code = "SUBMISSION_FAILED"
    http_status = 502


# =============================================================================
# Lookup Errors
# =============================================================================

class QuorumNotFoundError(QuorumException):
    """Requested resource not found."""

    error_code = "NOT_FOUND"
    http_status = 404

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        message = f"{resource_type} '{resource_id}' not found"
        details = details or {}
        details["resource_type"] = resource_type
        details["resource_id"] = resource_id
        super().__init__(message, details=details)


class ArtifactNotFoundError(QuorumNotFoundError):
    error_code = "ARTIFACT_NOT_FOUND"

    def __init__(self, artifact_id: str) -> None:
        super().__init__("PendingArtifact", artifact_id)


class PolicyNotFoundError(QuorumNotFoundError):
    error_code = "POLICY_NOT_FOUND"

    def __init__(self, policy_ref: str) -> None:
        super().__init__("MultisigPolicy", policy_ref)


# =============================================================================
# Exception Registry
# =============================================================================

# Map of error codes to exception classes for dynamic instantiation
EXCEPTION_REGISTRY: dict[str, Type[QuorumException]] = {
    "QUORUM_ERROR": QuorumException,
    "CONFIGURATION_ERROR": QuorumConfigurationError,
    "INVALID_THRESHOLD": InvalidThresholdError,
    "DUPLICATE_KEY_FOR_ROLE": DuplicateKeyForRoleError,
    "NO_PARTICIPANTS": NoParticipantsError,
    "KEY_FORMAT_ERROR": KeyFormatError,
    "INVALID_SIGNATURE": InvalidSignatureError,
    "NOT_ELIGIBLE": NotEligibleError,
    "VOTE_CONFLICT": VoteConflictError,
    "SUBMISSION_FAILED": SubmissionError,
}


def get_exception_class(error_code: str) -> Type[QuorumException]:
    """Get the exception class for an error code.

    Codes whose classes take structured constructor arguments (network,
    state transition, version conflict, lookups) are not registered and
    resolve to QuorumException.
    """
    return EXCEPTION_REGISTRY.get(error_code, QuorumException)


def create_exception(
    error_code: str,
    message: str,
    details: Optional[dict[str, Any]] = None,
) -> QuorumException:
    """Create an exception instance from an error code."""
    exc_class = get_exception_class(error_code)
    exc = exc_class(message, details=details)
    if exc_class is QuorumException:
        exc.error_code = error_code
    return exc


__all__ = [
    "QuorumException",
    "QuorumConfigurationError",
    "InvalidThresholdError",
    "DuplicateKeyForRoleError",
    "NoParticipantsError",
    "KeyFormatError",
    "UnsupportedNetworkError",
    "InvalidSignatureError",
    "NotEligibleError",
    "VoteConflictError",
    "IllegalStateTransitionError",
    "StaleVersionConflictError",
    "SubmissionError",
    "QuorumNotFoundError",
    "ArtifactNotFoundError",
    "PolicyNotFoundError",
    "EXCEPTION_REGISTRY",
    "get_exception_class",
    "create_exception",
]
