"""
Comprehensive tests for the retry module.

Tests cover:
- RetryConfig delay calculation and retry decisions
- retry_async success, retry and exhaustion paths
- Compare-and-set retry configuration
- retry decorator
"""
from __future__ import annotations

import pytest

from quorum_core.config import QuorumSettings
from quorum_core.exceptions import InvalidSignatureError, StaleVersionConflictError
from quorum_core.retry import (
    CAS_RETRY_CONFIG,
    RetryConfig,
    RetryExhausted,
    cas_retry_config,
    retry,
    retry_async,
)


FAST = RetryConfig(max_retries=3, base_delay=0.0, max_delay=0.0, jitter=0.0)


class TestRetryConfig:
    """Tests for RetryConfig."""

    def test_exponential_delay(self):
        """Should double the delay each attempt without jitter."""
        config = RetryConfig(base_delay=1.0, max_delay=100.0, jitter=0.0)
        assert config.calculate_delay(0) == 1.0
        assert config.calculate_delay(1) == 2.0
        assert config.calculate_delay(3) == 8.0

    def test_delay_capped(self):
        """Should never exceed max_delay without jitter."""
        config = RetryConfig(base_delay=1.0, max_delay=5.0, jitter=0.0)
        assert config.calculate_delay(10) == 5.0

    def test_jitter_bounds(self):
        """Should keep jittered delays within the jitter range."""
        config = RetryConfig(base_delay=1.0, max_delay=10.0, jitter=0.5)
        for _ in range(50):
            delay = config.calculate_delay(0)
            assert 0.5 <= delay <= 1.5

    def test_non_retryable_precedence(self):
        """Should refuse to retry exceptions listed as non-retryable."""
        config = RetryConfig(
            retryable_exceptions=(Exception,),
            non_retryable_exceptions=(ValueError,),
        )
        assert config.should_retry(RuntimeError()) is True
        assert config.should_retry(ValueError()) is False


class TestCasRetryConfig:
    """Tests for the compare-and-set configuration."""

    def test_only_version_conflicts_are_retried(self):
        """Should retry version conflicts and nothing else."""
        assert CAS_RETRY_CONFIG.should_retry(StaleVersionConflictError("a", 1, 2)) is True
        assert CAS_RETRY_CONFIG.should_retry(InvalidSignatureError()) is False
        assert CAS_RETRY_CONFIG.should_retry(RuntimeError()) is False

    def test_short_delays(self):
        """Should keep backoff in the millisecond range."""
        assert CAS_RETRY_CONFIG.max_retries > 0
        for attempt in range(CAS_RETRY_CONFIG.max_retries):
            assert CAS_RETRY_CONFIG.calculate_delay(attempt) <= CAS_RETRY_CONFIG.max_delay * 1.5

    def test_bounds_from_settings(self):
        """Should take retry bounds from the settings and keep the retry filter."""
        settings = QuorumSettings(_env_file=None, cas_max_retries=7, cas_base_delay=0.01, cas_max_delay=0.2)
        config = cas_retry_config(settings)
        assert (config.max_retries, config.base_delay, config.max_delay) == (7, 0.01, 0.2)
        assert config.retryable_exceptions == CAS_RETRY_CONFIG.retryable_exceptions

    def test_defaults_match_constant(self):
        """Should match CAS_RETRY_CONFIG under default settings."""
        config = cas_retry_config()
        assert config.max_retries == CAS_RETRY_CONFIG.max_retries
        assert config.max_delay == CAS_RETRY_CONFIG.max_delay


class TestRetryAsync:
    """Tests for retry_async."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self):
        """Should return immediately on success."""
        calls = []

        async def op(value):
            calls.append(value)
            return value * 2

        assert await retry_async(op, 21, config=FAST) == 42
        assert calls == [21]

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        """Should retry retryable failures."""
        attempts = {"n": 0}

        async def op():
            attempts["n"] += 1
            if attempts["n"] < 3:
                raise StaleVersionConflictError("artifact_1", attempts["n"], attempts["n"] + 1)
            return "saved"

        config = RetryConfig(
            max_retries=5,
            base_delay=0.0,
            jitter=0.0,
            retryable_exceptions=(StaleVersionConflictError,),
        )
        assert await retry_async(op, config=config) == "saved"
        assert attempts["n"] == 3

    @pytest.mark.asyncio
    async def test_non_retryable_propagates_unchanged(self):
        """Should re-raise a non-retryable error on the first attempt."""
        attempts = {"n": 0}
        error = InvalidSignatureError(participant="alice")

        async def op():
            attempts["n"] += 1
            raise error

        with pytest.raises(InvalidSignatureError) as exc_info:
            await retry_async(op, config=CAS_RETRY_CONFIG)
        assert exc_info.value is error
        assert attempts["n"] == 1

    @pytest.mark.asyncio
    async def test_non_retryable_after_conflicts_propagates(self):
        """Should surface a later non-retryable error rather than wrap it."""
        attempts = {"n": 0}

        async def op():
            attempts["n"] += 1
            if attempts["n"] == 1:
                raise StaleVersionConflictError("artifact_1", 1, 2)
            raise ValueError("bad input")

        with pytest.raises(ValueError, match="bad input"):
            await retry_async(op, config=CAS_RETRY_CONFIG)
        assert attempts["n"] == 2

    @pytest.mark.asyncio
    async def test_exhaustion(self):
        """Should raise RetryExhausted with stats after the last attempt."""

        async def op():
            raise RuntimeError("still failing")

        with pytest.raises(RetryExhausted) as exc_info:
            await retry_async(op, config=FAST)

        exhausted = exc_info.value
        assert exhausted.stats.attempts == 4
        assert exhausted.stats.success is False
        assert isinstance(exhausted.original_exception, RuntimeError)
        assert exhausted.__cause__ is exhausted.original_exception

    @pytest.mark.asyncio
    async def test_zero_retries(self):
        """Should make exactly one attempt when retries are disabled."""
        attempts = {"n": 0}

        async def op():
            attempts["n"] += 1
            raise RuntimeError("nope")

        with pytest.raises(RetryExhausted):
            await retry_async(op, config=RetryConfig(max_retries=0))
        assert attempts["n"] == 1

    @pytest.mark.asyncio
    async def test_on_retry_callback(self):
        """Should report each retry to the callback."""
        seen = []

        async def op():
            if len(seen) < 2:
                raise RuntimeError("retry me")
            return "ok"

        config = RetryConfig(
            max_retries=3,
            base_delay=0.0,
            jitter=0.0,
            on_retry=lambda attempt, exc, delay: seen.append(attempt),
        )
        assert await retry_async(op, config=config) == "ok"
        assert seen == [1, 2]


class TestRetryDecorator:
    """Tests for the retry decorator."""

    @pytest.mark.asyncio
    async def test_decorator_with_arguments(self):
        """Should retry using the given settings."""
        attempts = {"n": 0}

        @retry(max_retries=2, base_delay=0.0, jitter=0.0)
        async def flaky():
            attempts["n"] += 1
            if attempts["n"] < 2:
                raise ConnectionError("transient")
            return "done"

        assert await flaky() == "done"
        assert attempts["n"] == 2

    @pytest.mark.asyncio
    async def test_decorator_with_config(self):
        """Should honor an explicit config."""
        attempts = {"n": 0}

        @retry(config=CAS_RETRY_CONFIG)
        async def write():
            attempts["n"] += 1
            raise KeyError("not retryable")

        with pytest.raises(KeyError):
            await write()
        assert attempts["n"] == 1

    def test_decorator_preserves_metadata(self):
        """Should keep the wrapped function's name."""

        @retry
        async def named_operation():
            return None

        assert named_operation.__name__ == "named_operation"
