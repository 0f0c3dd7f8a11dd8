"""Tests for vendor_core.network_utils module."""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest
import requests

from vendor_core.cancellation import CancellationToken
from vendor_core.exceptions import CancelledError
from vendor_core.network_utils import RetryConfig, is_transient, with_retries


def _http_error(status_code: int) -> requests.exceptions.HTTPError:
    response = Mock()
    response.status_code = status_code
    return requests.exceptions.HTTPError(response=response)


class TestIsTransient:
    @pytest.mark.parametrize("status_code", [500, 502, 503, 504, 429])
    def test_server_errors_and_throttling(self, status_code: int) -> None:
        assert is_transient(_http_error(status_code)) is True

    @pytest.mark.parametrize("status_code", [400, 401, 404, 410])
    def test_client_errors_are_permanent(self, status_code: int) -> None:
        assert is_transient(_http_error(status_code)) is False

    def test_403_only_for_rate_limited_apis(self) -> None:
        """GitHub answers 403 when the anonymous rate limit is exhausted."""
        assert is_transient(_http_error(403)) is False
        assert is_transient(_http_error(403), rate_limit_403=True) is True

    def test_http_error_without_response(self) -> None:
        assert is_transient(requests.exceptions.HTTPError(response=None)) is False

    @pytest.mark.parametrize(
        "exc",
        [
            requests.exceptions.ConnectionError(),
            requests.exceptions.Timeout(),
            requests.exceptions.ChunkedEncodingError(),
        ],
    )
    def test_dropped_transfers(self, exc: Exception) -> None:
        assert is_transient(exc) is True

    def test_other_errors(self) -> None:
        assert is_transient(ValueError("boom")) is False
        assert is_transient(requests.exceptions.RequestException()) is False


class TestRetryConfig:
    def test_delay_grows_and_is_capped(self) -> None:
        retry = RetryConfig(backoff_base=2.0, backoff_max=3.0)
        assert [retry.delay(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 3.0, 3.0]

    def test_non_positive_attempts_still_allow_one_call(self) -> None:
        assert RetryConfig(max_attempts=0).attempts == 1


class TestWithRetries:
    def test_returns_first_success(self) -> None:
        fn = Mock(return_value="ok")
        assert with_retries(fn, RetryConfig()) == "ok"
        assert fn.call_count == 1

    def test_recovers_after_transient_error(self) -> None:
        fn = Mock(side_effect=[_http_error(503), "ok"])
        assert with_retries(fn, RetryConfig(max_attempts=3)) == "ok"
        assert fn.call_count == 2

    def test_exhausted_attempts_reraise_last_error(self) -> None:
        fn = Mock(side_effect=requests.exceptions.ConnectionError("reset"))
        with pytest.raises(requests.exceptions.ConnectionError):
            with_retries(fn, RetryConfig(max_attempts=3))
        assert fn.call_count == 3

    def test_permanent_error_is_not_retried(self) -> None:
        fn = Mock(side_effect=_http_error(404))
        with pytest.raises(requests.exceptions.HTTPError):
            with_retries(fn, RetryConfig(max_attempts=5))
        assert fn.call_count == 1

    def test_non_request_errors_propagate_immediately(self) -> None:
        fn = Mock(side_effect=OSError("disk full"))
        with pytest.raises(OSError):
            with_retries(fn, RetryConfig(max_attempts=5))
        assert fn.call_count == 1

    def test_rate_limit_403_is_retried_when_asked(self) -> None:
        fn = Mock(side_effect=[_http_error(403), "ok"])
        assert with_retries(fn, RetryConfig(max_attempts=2), rate_limit_403=True) == "ok"

    def test_sleeps_between_attempts_without_token(self) -> None:
        exc = requests.exceptions.Timeout()
        fn = Mock(side_effect=[exc, exc, exc, "ok"])
        with patch("vendor_core.network_utils.time.sleep") as sleep:
            with_retries(fn, RetryConfig(max_attempts=4, backoff_base=2.0, backoff_max=3.0))
        assert [call.args[0] for call in sleep.call_args_list] == [1.0, 2.0, 3.0]

    def test_waits_on_token_between_attempts(self) -> None:
        token = CancellationToken()
        fn = Mock(side_effect=[_http_error(502), "ok"])
        with patch.object(token, "wait", return_value=False) as wait, patch(
            "vendor_core.network_utils.time.sleep"
        ) as sleep:
            assert with_retries(fn, RetryConfig(backoff_base=5.0), cancel=token) == "ok"
        wait.assert_called_once_with(1.0)
        sleep.assert_not_called()

    def test_cancelled_token_skips_the_call(self) -> None:
        token = CancellationToken()
        token.cancel("sibling failed")
        fn = Mock(return_value="ok")
        with pytest.raises(CancelledError):
            with_retries(fn, RetryConfig(), cancel=token, what="listing releases")
        fn.assert_not_called()

    def test_cancel_during_backoff_stops_retrying(self) -> None:
        token = CancellationToken()

        def fail() -> str:
            token.cancel("sibling failed")
            raise requests.exceptions.ConnectionError("reset")

        fn = Mock(side_effect=fail)
        retry = RetryConfig(max_attempts=3, backoff_base=30.0, backoff_max=30.0)
        with pytest.raises(CancelledError) as excinfo:
            with_retries(fn, retry, cancel=token, what="downloading tool.zip")

        assert fn.call_count == 1
        assert "downloading tool.zip" in str(excinfo.value)
        assert excinfo.value.context["reason"] == "sibling failed"
