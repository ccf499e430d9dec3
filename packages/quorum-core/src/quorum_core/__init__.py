"""Ambient primitives shared across Quorum packages."""

from .config import QuorumSettings, load_settings
from .exceptions import (
    QuorumException,
    QuorumConfigurationError,
    InvalidThresholdError,
    DuplicateKeyForRoleError,
    NoParticipantsError,
    KeyFormatError,
    UnsupportedNetworkError,
    InvalidSignatureError,
    NotEligibleError,
    VoteConflictError,
    IllegalStateTransitionError,
    StaleVersionConflictError,
    SubmissionError,
    QuorumNotFoundError,
    ArtifactNotFoundError,
    PolicyNotFoundError,
)
from .logging import get_logger, configure_logging, StructuredLogger
from .retry import RetryConfig, RetryExhausted, CAS_RETRY_CONFIG, cas_retry_config, retry_async

__all__ = [
    "QuorumSettings",
    "load_settings",
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
    "get_logger",
    "configure_logging",
    "StructuredLogger",
    "RetryConfig",
    "RetryExhausted",
    "CAS_RETRY_CONFIG",
    "cas_retry_config",
    "retry_async",
]
