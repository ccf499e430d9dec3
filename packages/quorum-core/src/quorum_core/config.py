"""Canonical configuration surface for Quorum services."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings

from .constants import MetadataConfig, RetryDefaults


class QuorumSettings(BaseSettings):
    """Main Quorum configuration."""

    # Environment
    environment: Literal["dev", "test", "prod"] = "dev"

    # Network used when a wallet configuration does not name one
    default_network: str = "testnet"

    # Registration metadata
    metadata_label: int = MetadataConfig.DEFAULT_LABEL

    # Encoding used when a DRep ID is rendered as a single string
    drep_id_format: Literal["cip105", "cip129"] = "cip129"

    # Optimistic concurrency on artifact writes
    cas_max_retries: int = RetryDefaults.CAS_MAX_RETRIES
    cas_base_delay: float = RetryDefaults.CAS_BASE_DELAY
    cas_max_delay: float = RetryDefaults.CAS_MAX_DELAY

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    class Config:
        env_prefix = "QUORUM_"
        env_file = ".env"
        extra = "ignore"

    @field_validator("default_network", mode="before")
    @classmethod
    def normalize_network(cls, v):
        """Accept network ids as well as names."""
        if isinstance(v, int):
            return "mainnet" if v == 1 else "testnet"
        v = str(v).strip().lower()
        if v not in {"mainnet", "testnet", "preprod", "preview", "0", "1"}:
            raise ValueError(f"unsupported network: {v}")
        if v == "1":
            return "mainnet"
        if v == "0":
            return "testnet"
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"invalid log level: {v}")
        return level

    @field_validator("cas_max_retries")
    @classmethod
    def validate_cas_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("cas_max_retries must be >= 0")
        return v


@lru_cache
def load_settings(env_file: str | None = None) -> QuorumSettings:
    """Load QuorumSettings once per process to keep services consistent."""
    env_path = Path(env_file) if env_file else None
    return QuorumSettings(_env_file=env_path)


__all__ = ["QuorumSettings", "load_settings"]
