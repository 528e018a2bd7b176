"""
Tests for the retry/backoff controller.
"""

from unittest.mock import patch

import pytest
from conftest import ScriptedTransport, create_failure, create_success

from w3r.models import FailureKind, HttpMethod, RequestDescriptor, TimingInfo
from w3r.retry import RetryController, RetrySession, RetryState, is_retryable

DESCRIPTOR = RequestDescriptor(method=HttpMethod.GET, url="https://api.example.com/health")


class TestIsRetryable:
    @pytest.mark.parametrize("status", [408, 429, 500, 503])
    def test_retryable_statuses(self, status):
        assert is_retryable(create_success(status))

    @pytest.mark.parametrize("status", [200, 302, 400, 404])
    def test_terminal_statuses(self, status):
        assert not is_retryable(create_success(status))

    @pytest.mark.parametrize("kind", list(FailureKind))
    def test_transport_failures(self, kind):
        assert is_retryable(create_failure(kind))


class TestRetrySession:
    def test_starts_pending(self):
        session = RetrySession(max_retries=1, base_delay=1.0)
        assert session.state is RetryState.PENDING
        assert not session.is_terminal

    def test_retrying_sets_next_delay(self):
        session = RetrySession(max_retries=2, base_delay=1.5, attempt_number=2)
        assert session.record(create_success(503)) is RetryState.RETRYING
        assert session.next_delay == 3.0


class TestRetryController:
    def test_success_first_try(self, sleep):
        transport = ScriptedTransport([create_success(200)])
        result = RetryController(transport, retry=3, retry_delay=1.0, sleep=sleep).run(DESCRIPTOR)

        assert result.state is RetryState.SUCCEEDED
        assert result.attempts == 1
        assert not result.failed
        assert sleep.delays == []

    def test_doubling_delays(self, sleep):
        transport = ScriptedTransport([create_success(500)])
        result = RetryController(transport, retry=3, retry_delay=2.0, sleep=sleep).run(DESCRIPTOR)

        assert sleep.delays == [2.0, 4.0, 8.0]
        assert len(transport.sent) == 4
        assert result.attempts == 4
        assert result.state is RetryState.FAILED
        assert result.outcome.status_code == 500

    def test_recovers_after_retry(self, sleep):
        transport = ScriptedTransport(
            [create_failure(FailureKind.TIMEOUT), create_success(429), create_success(201)]
        )
        result = RetryController(transport, retry=5, retry_delay=0.5, sleep=sleep).run(DESCRIPTOR)

        assert result.state is RetryState.SUCCEEDED
        assert result.outcome.status_code == 201
        assert result.attempts == 3
        assert sleep.delays == [0.5, 1.0]

    def test_no_retry_budget_503_is_not_fatal(self, sleep):
        transport = ScriptedTransport([create_success(503)])
        result = RetryController(transport, retry=0, sleep=sleep).run(DESCRIPTOR)

        assert len(transport.sent) == 1
        assert result.state is RetryState.SUCCEEDED
        assert not result.failed
        assert result.outcome.status_code == 503

    def test_no_retry_budget_transport_failure_is_fatal(self, sleep):
        transport = ScriptedTransport([create_failure(FailureKind.CONNECTION_ERROR)])
        result = RetryController(transport, retry=0, sleep=sleep).run(DESCRIPTOR)

        assert result.failed
        assert result.attempts == 1
        assert result.outcome.kind is FailureKind.CONNECTION_ERROR

    def test_transport_failures_exhaust_budget(self, sleep):
        transport = ScriptedTransport([create_failure(FailureKind.TIMEOUT)])
        result = RetryController(transport, retry=2, retry_delay=1.0, sleep=sleep).run(DESCRIPTOR)

        assert result.failed
        assert len(transport.sent) == 3
        assert sleep.delays == [1.0, 2.0]

    def test_client_error_not_retried(self, sleep):
        transport = ScriptedTransport([create_success(404), create_success(200)])
        result = RetryController(transport, retry=3, sleep=sleep).run(DESCRIPTOR)

        assert result.outcome.status_code == 404
        assert result.attempts == 1
        assert not result.failed

    @pytest.mark.parametrize("retry", [0, 1, 2, 5])
    def test_attempts_never_exceed_budget(self, retry, sleep):
        transport = ScriptedTransport([create_success(502)])
        result = RetryController(transport, retry=retry, sleep=sleep).run(DESCRIPTOR)

        assert len(transport.sent) == retry + 1
        assert result.attempts == retry + 1

    def test_timing_from_final_attempt_only(self, sleep):
        final_timing = TimingInfo(headers_elapsed=0.2, body_elapsed=0.1, total_elapsed=0.3)
        transport = ScriptedTransport(
            [
                create_success(500, timing=TimingInfo(total_elapsed=9.0)),
                create_success(200, timing=final_timing),
            ]
        )
        result = RetryController(transport, retry=1, sleep=sleep).run(DESCRIPTOR)
        assert result.outcome.timing == final_timing

    def test_retry_markers_are_traced(self, sleep):
        transport = ScriptedTransport([create_success(503), create_success(200)])
        with patch("w3r.retry.trace") as trace:
            RetryController(transport, retry=1, retry_delay=1.0, sleep=sleep).run(DESCRIPTOR)

        messages = [call.args[0] for call in trace.info.call_args_list]
        assert messages == ["HTTP 503 - retrying in 1.00s...", "--- Retry Attempt 1 ---"]

    def test_negative_retry_rejected(self):
        with pytest.raises(ValueError):
            RetryController(ScriptedTransport([create_success()]), retry=-1)
