"""
Unit tests for the retry policy.

Tests error classification, backoff growth and Retry-After handling.
"""

import random
from email.utils import formatdate

import pytest

from esplora_client.core.errors import (
    ConnectionFailed,
    ExhaustedRetries,
    HttpStatusError,
    MalformedResponse,
    NetworkError,
    TlsFailure,
    TransportTimeout,
)
from esplora_client.core.retry import ErrorClass, RetryPolicy, classify, parse_retry_after


class TestClassify:

    @pytest.mark.parametrize("error", [
        TransportTimeout("read timed out"),
        ConnectionFailed("connection refused"),
        TlsFailure("certificate verify failed"),
        NetworkError("reset"),
        HttpStatusError(500),
        HttpStatusError(502),
        HttpStatusError(503),
        HttpStatusError(504),
    ])
    def test_transient(self, error):
        assert classify(error) is ErrorClass.TRANSIENT

    def test_rate_limited(self):
        assert classify(HttpStatusError(429)) is ErrorClass.RATE_LIMITED

    @pytest.mark.parametrize("error", [
        HttpStatusError(400),
        HttpStatusError(401),
        HttpStatusError(404),
        HttpStatusError(422),
        MalformedResponse("<body>", "invalid JSON"),
        ValueError("anything else"),
    ])
    def test_permanent(self, error):
        assert classify(error) is ErrorClass.PERMANENT


class TestBackoff:

    def test_backoff_without_jitter(self):
        policy = RetryPolicy(max_attempts=10, base_delay=0.25, max_delay=100.0, rng=lambda: 0.0)
        assert [policy.backoff(n) for n in range(4)] == [0.25, 0.5, 1.0, 2.0]

    def test_jitter_bounds(self):
        low = RetryPolicy(base_delay=1.0, max_delay=100.0, rng=lambda: 0.0)
        high = RetryPolicy(base_delay=1.0, max_delay=100.0, rng=lambda: 0.999999)
        assert low.backoff(2) == 4.0
        assert 5.99 < high.backoff(2) < 6.0

    def test_capped(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=5.0, rng=lambda: 0.5)
        assert policy.backoff(10) == 5.0

    @pytest.mark.parametrize("retry_index", [64, 1024, 5000])
    def test_large_retry_index_stays_capped(self, retry_index):
        policy = RetryPolicy(base_delay=0.256, max_delay=30.0, rng=lambda: 0.5)
        assert policy.backoff(retry_index) == 30.0

    @pytest.mark.parametrize("seed", range(20))
    def test_delays_never_decrease(self, seed):
        policy = RetryPolicy(base_delay=0.1, max_delay=3.0, rng=random.Random(seed).random)
        delays = [policy.backoff(n) for n in range(12)]
        assert delays == sorted(delays)

    def test_invalid_limits(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
        with pytest.raises(ValueError):
            RetryPolicy(base_delay=-1.0)

    def test_from_config(self, config):
        policy = RetryPolicy.from_config(config)
        assert policy.max_attempts == 4
        assert policy.base_delay == 0.1
        assert policy.max_delay == 2.0
        assert policy.max_retry_after == 60.0


class TestRetryAfter:

    @pytest.mark.parametrize("value, expected", [
        ("12", 12.0),
        (" 3 ", 3.0),
        ("1.5", 1.5),
        ("0", 0.0),
        ("-5", 0.0),
        (None, None),
        ("", None),
        ("soon", None),
        ("inf", None),
        ("nan", None),
    ])
    def test_seconds(self, value, expected):
        assert parse_retry_after(value) == expected

    def test_http_date(self):
        now = 1_700_000_000.0
        value = formatdate(now + 30, usegmt=True)
        assert parse_retry_after(value, now=now) == pytest.approx(30.0)

    def test_http_date_with_unknown_zone_is_utc(self):
        # 1_700_000_030 is 2023-11-14T22:13:50Z
        value = "Tue, 14 Nov 2023 22:13:50 -0000"
        assert parse_retry_after(value, now=1_700_000_000.0) == pytest.approx(30.0)

    def test_http_date_in_past(self):
        now = 1_700_000_000.0
        assert parse_retry_after(formatdate(now - 30, usegmt=True), now=now) == 0.0

    def test_hint_is_used_and_capped(self):
        policy = RetryPolicy(max_retry_after=20.0, rng=lambda: 0.0)
        assert policy.delay_for(HttpStatusError(429, retry_after="7"), 0) == 7.0
        assert policy.delay_for(HttpStatusError(429, retry_after="3600"), 0) == 20.0

    def test_missing_hint_falls_back_to_backoff(self):
        policy = RetryPolicy(base_delay=0.5, rng=lambda: 0.0)
        assert policy.delay_for(HttpStatusError(429), 1) == 1.0


class TestRetryState:
    """Per-call attempt bookkeeping."""

    def test_transient_failures_then_exhaustion(self):
        state = RetryPolicy(max_attempts=3, base_delay=0.1, rng=lambda: 0.0).start("/blocks/tip/hash")
        assert state.on_failure(TransportTimeout()) == pytest.approx(0.1)
        assert state.on_failure(HttpStatusError(503)) == pytest.approx(0.2)

        last = HttpStatusError(502, "bad gateway")
        with pytest.raises(ExhaustedRetries) as exc_info:
            state.on_failure(last)
        assert exc_info.value.last_error is last
        assert exc_info.value.attempts == 3

    def test_permanent_error_is_reraised(self):
        state = RetryPolicy().start()
        error = HttpStatusError(404, "not found")
        with pytest.raises(HttpStatusError) as exc_info:
            state.on_failure(error)
        assert exc_info.value is error
        assert state.attempts == 1

    def test_states_are_independent(self):
        policy = RetryPolicy(max_attempts=2, rng=lambda: 0.0)
        first = policy.start()
        first.on_failure(ConnectionFailed())
        second = policy.start()
        assert second.attempts == 0
        assert second.on_failure(ConnectionFailed()) == first.delays[0]
