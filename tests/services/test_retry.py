"""
Tests for the shared Retry Policy.

Verifies:
1.  Rate-limit classification (our error, HTTP 429 attributes, text markers).
2.  Backoff schedule `min(2**attempt, 60)`.
3.  Retry then success, exhaustion, and immediate abort on other errors.
"""

from unittest.mock import MagicMock

import pytest

from metamorph.core.errors import RateLimitError, ServiceError
from metamorph.services.retry import RetryPolicy, exponential_backoff, is_rate_limited


class HttpError(Exception):
  def __init__(self, message, status_code=None, code=None):
    super().__init__(message)
    self.status_code = status_code
    self.code = code


@pytest.mark.parametrize(
  "exc, expected",
  [
    (RateLimitError("slow down"), True),
    (HttpError("boom", status_code=429), True),
    (HttpError("boom", code=429), True),
    (Exception("429 Too Many Requests"), True),
    (Exception("RESOURCE_EXHAUSTED: quota"), True),
    (Exception("Too Many Requests"), True),
    (HttpError("bad request", status_code=400), False),
    (ValueError("invalid literal"), False),
  ],
)
def test_is_rate_limited(exc, expected):
  assert is_rate_limited(exc) is expected


def test_backoff_schedule():
  assert [exponential_backoff(a) for a in range(8)] == [1, 2, 4, 8, 16, 32, 60, 60]
  assert exponential_backoff(3, max_backoff=5) == 5


def test_retries_then_succeeds():
  sleep = MagicMock()
  func = MagicMock(side_effect=[Exception("429"), Exception("Too Many Requests"), "ok"])
  policy = RetryPolicy(sleep=sleep)

  assert policy.call(func, label="gemini") == "ok"
  assert func.call_count == 3
  assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]


def test_exhaustion_raises_rate_limit_error():
  sleep = MagicMock()
  func = MagicMock(side_effect=Exception("RESOURCE_EXHAUSTED"))
  policy = RetryPolicy(max_attempts=5, sleep=sleep)

  with pytest.raises(RateLimitError) as exc:
    policy.call(func, label="gemini")

  assert func.call_count == 5
  assert sleep.call_count == 4
  assert "after 5 attempts" in str(exc.value)


def test_other_errors_abort_immediately():
  sleep = MagicMock()
  func = MagicMock(side_effect=ValueError("invalid api key"))

  with pytest.raises(ServiceError) as exc:
    RetryPolicy(sleep=sleep).call(func, label="anthropic")

  assert func.call_count == 1
  sleep.assert_not_called()
  assert "anthropic" in str(exc.value)
  assert isinstance(exc.value.__cause__, ValueError)


def test_service_errors_pass_through_unchanged():
  original = ServiceError("empty response")
  with pytest.raises(ServiceError) as exc:
    RetryPolicy(sleep=MagicMock()).call(MagicMock(side_effect=original))
  assert exc.value is original


def test_invalid_attempts():
  with pytest.raises(ValueError):
    RetryPolicy(max_attempts=0)
