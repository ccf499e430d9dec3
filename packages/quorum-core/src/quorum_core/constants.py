"""
Centralized constants for Quorum.

This module provides a single source of truth for chain-format magic
numbers (address headers, bech32 prefixes, identifier header bytes) and
the defaults used by the retry and logging helpers.

Usage:
    from quorum_core.constants import AddressHeader, Bech32Prefix, RetryDefaults

All values are organized into logical namespaces using classes.
"""
from __future__ import annotations

from enum import StrEnum
from typing import Final


# =============================================================================
# Cryptographic sizes
# =============================================================================

class HashSizes:
    """Digest and key sizes used by the ledger."""

    KEY_HASH: Final[int] = 28  # blake2b-224
    SCRIPT_HASH: Final[int] = 28
    VERIFICATION_KEY: Final[int] = 32  # ed25519 public key
    SIGNATURE: Final[int] = 64
    TX_BODY_HASH: Final[int] = 32  # blake2b-256

    # Prefix byte hashed in front of a native script's CBOR
    NATIVE_SCRIPT_TAG: Final[bytes] = b"\x00"


# =============================================================================
# Shelley address format (CIP-19)
# =============================================================================

class AddressHeader:
    """Address header types (upper nibble of the first byte)."""

    BASE_KEY_KEY: Final[int] = 0b0000
    BASE_SCRIPT_KEY: Final[int] = 0b0001
    BASE_KEY_SCRIPT: Final[int] = 0b0010
    BASE_SCRIPT_SCRIPT: Final[int] = 0b0011
    POINTER_KEY: Final[int] = 0b0100
    POINTER_SCRIPT: Final[int] = 0b0101
    ENTERPRISE_KEY: Final[int] = 0b0110
    ENTERPRISE_SCRIPT: Final[int] = 0b0111
    BYRON: Final[int] = 0b1000
    REWARD_KEY: Final[int] = 0b1110
    REWARD_SCRIPT: Final[int] = 0b1111

    # Header types whose payment part is a verification key hash
    KEY_PAYMENT_TYPES: Final[frozenset[int]] = frozenset({0b0000, 0b0010, 0b0100, 0b0110})

    # Header types whose stake part (bytes 29..57) is a verification key hash
    KEY_STAKE_BASE_TYPES: Final[frozenset[int]] = frozenset({0b0000, 0b0001})


class NetworkIds:
    """Network tags carried in the lower nibble of an address header."""

    TESTNET: Final[int] = 0
    MAINNET: Final[int] = 1


# =============================================================================
# Bech32 human-readable prefixes (CIP-5, CIP-105, CIP-129)
# =============================================================================

class Bech32Prefix:
    """Human-readable parts used when encoding addresses and identifiers."""

    ADDR: Final[str] = "addr"
    ADDR_TEST: Final[str] = "addr_test"
    STAKE: Final[str] = "stake"
    STAKE_TEST: Final[str] = "stake_test"

    ADDR_VK: Final[str] = "addr_vk"
    ADDR_VKH: Final[str] = "addr_vkh"
    STAKE_VK: Final[str] = "stake_vk"
    STAKE_VKH: Final[str] = "stake_vkh"

    DREP: Final[str] = "drep"
    DREP_VK: Final[str] = "drep_vk"
    DREP_SCRIPT: Final[str] = "drep_script"

    CC_COLD: Final[str] = "cc_cold"
    CC_COLD_VK: Final[str] = "cc_cold_vk"
    CC_COLD_SCRIPT: Final[str] = "cc_cold_script"

    CC_HOT: Final[str] = "cc_hot"
    CC_HOT_VK: Final[str] = "cc_hot_vk"
    CC_HOT_SCRIPT: Final[str] = "cc_hot_script"


class GovernanceHeader:
    """CIP-129 header bytes: key type in the high nibble, credential in the low."""

    CC_HOT_KEY: Final[int] = 0x02
    CC_HOT_SCRIPT: Final[int] = 0x03
    CC_COLD_KEY: Final[int] = 0x12
    CC_COLD_SCRIPT: Final[int] = 0x13
    DREP_KEY: Final[int] = 0x22
    DREP_SCRIPT: Final[int] = 0x23

    KEY_CREDENTIAL: Final[int] = 0x02
    SCRIPT_CREDENTIAL: Final[int] = 0x03


# =============================================================================
# Registration metadata (CIP-1854)
# =============================================================================

class MetadataConfig:
    """On-chain registration metadata settings."""

    DEFAULT_LABEL: Final[int] = 1854
    MAX_TEXT_BYTES: Final[int] = 64  # transaction metadata string limit


# =============================================================================
# Retry Configuration
# =============================================================================

class RetryDefaults:
    """Default retry settings."""

    DEFAULT_MAX_RETRIES: Final[int] = 3
    DEFAULT_BASE_DELAY: Final[float] = 1.0
    DEFAULT_MAX_DELAY: Final[float] = 60.0
    DEFAULT_EXPONENTIAL_BASE: Final[float] = 2.0
    DEFAULT_JITTER: Final[float] = 0.1

    # Optimistic-concurrency retries on artifact writes
    CAS_MAX_RETRIES: Final[int] = 32
    CAS_BASE_DELAY: Final[float] = 0.001
    CAS_MAX_DELAY: Final[float] = 0.05

    # Calls to the transaction submitter
    SUBMIT_MAX_RETRIES: Final[int] = 0


# =============================================================================
# Logging Configuration
# =============================================================================

class LoggingConfig:
    """Logging-related constants."""

    # Field names whose values never reach a log record
    SENSITIVE_FIELDS: Final[frozenset[str]] = frozenset({
        "password",
        "secret",
        "token",
        "api_key",
        "apiKey",
        "private_key",
        "privateKey",
        "signing_key",
        "signingKey",
        "secret_key",
        "secretKey",
        "signature",
        "witness",
        "mnemonic",
        "seed",
        "authorization",
    })

    # Substrings that mark a field as sensitive
    SENSITIVE_MARKERS: Final[tuple[str, ...]] = (
        "secret",
        "password",
        "private",
        "mnemonic",
        "seed",
        "signature",
    )

    # Mask pattern for sensitive data
    MASK_PATTERN: Final[str] = "***REDACTED***"

    # Max log message length
    MAX_LOG_MESSAGE_LENGTH: Final[int] = 10000

    # Payload truncation for logs
    MAX_PAYLOAD_LOG_LENGTH: Final[int] = 500


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes(StrEnum):
    """Standardized error codes.

    Format: CATEGORY_SPECIFIC_ERROR
    """

    QUORUM_ERROR = "QUORUM_ERROR"

    # Configuration (policy construction)
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    INVALID_THRESHOLD = "INVALID_THRESHOLD"
    DUPLICATE_KEY_FOR_ROLE = "DUPLICATE_KEY_FOR_ROLE"
    NO_PARTICIPANTS = "NO_PARTICIPANTS"
    KEY_FORMAT_ERROR = "KEY_FORMAT_ERROR"
    UNSUPPORTED_NETWORK = "UNSUPPORTED_NETWORK"

    # Signing
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    NOT_ELIGIBLE = "NOT_ELIGIBLE"
    VOTE_CONFLICT = "VOTE_CONFLICT"

    # Lifecycle
    ILLEGAL_STATE_TRANSITION = "ILLEGAL_STATE_TRANSITION"
    STALE_VERSION_CONFLICT = "STALE_VERSION_CONFLICT"
    SUBMISSION_FAILED = "SUBMISSION_FAILED"

    # Lookup
    NOT_FOUND = "NOT_FOUND"
    ARTIFACT_NOT_FOUND = "ARTIFACT_NOT_FOUND"
    POLICY_NOT_FOUND = "POLICY_NOT_FOUND"


__all__ = [
    "HashSizes",
    "AddressHeader",
    "NetworkIds",
    "Bech32Prefix",
    "GovernanceHeader",
    "MetadataConfig",
    "RetryDefaults",
    "LoggingConfig",
    "ErrorCodes",
]
