"""
Retry Classifier Tests
=======================

Transient vs. terminal classification and backoff schedule.
"""

from __future__ import annotations

import asyncio

import pytest

from verigate.errors import ProviderError
from verigate.verify.retry import (
    RETRYABLE_ERROR_CODES,
    RETRYABLE_STATUS_CODES,
    backoff_delay,
    is_retryable,
)


class _StatusCodeError(Exception):
    def __init__(self, status_code):
        super().__init__(f"status {status_code}")
        self.status_code = status_code


class _Exploding:
    """Object whose attribute access raises."""

    def __getattr__(self, name):
        raise RuntimeError("boom")

    def __str__(self):
        raise RuntimeError("boom")


class TestIsRetryable:

    @pytest.mark.parametrize("status", sorted(RETRYABLE_STATUS_CODES))
    def test_retryable_statuses(self, status):
        assert is_retryable(ProviderError("failed", status=status))

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
    def test_terminal_statuses(self, status):
        assert not is_retryable(ProviderError("failed", status=status))

    def test_terminal_status_wins_over_message(self):
        err = ProviderError("rate limit exceeded for this key", status=401)
        assert not is_retryable(err)

    @pytest.mark.parametrize("code", sorted(RETRYABLE_ERROR_CODES))
    def test_transport_codes(self, code):
        assert is_retryable(ProviderError("transport", code=code))

    def test_code_is_case_insensitive(self):
        assert is_retryable(ProviderError("transport", code="econnreset"))

    def test_status_code_attribute(self):
        assert is_retryable(_StatusCodeError(503))
        assert not is_retryable(_StatusCodeError(404))

    @pytest.mark.parametrize("error", [
        TimeoutError(),
        asyncio.TimeoutError(),
        ConnectionResetError(),
        ConnectionRefusedError(),
    ])
    def test_builtin_transient_exceptions(self, error):
        assert is_retryable(error)

    @pytest.mark.parametrize("message", [
        "Rate limit reached",
        "Too Many Requests",
        "quota exceeded for project",
        "request timed out",
        "upstream timeout",
    ])
    def test_message_phrasing(self, message):
        assert is_retryable(Exception(message))

    @pytest.mark.parametrize("error", [
        None,
        ValueError("bad input"),
        Exception(""),
        "plain string",
        42,
        ProviderError("bad request", status=400, code="EINVAL"),
    ])
    def test_terminal_values(self, error):
        assert is_retryable(error) is False

    def test_never_raises(self):
        assert is_retryable(_Exploding()) is False

    def test_bool_status_is_ignored(self):
        class Weird(Exception):
            status = True
        assert is_retryable(Weird("nothing transient")) is False


class TestBackoffDelay:

    def test_doubles_per_attempt(self):
        assert [backoff_delay(i) for i in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_custom_base(self):
        assert backoff_delay(2, base=0.5) == 2.0
