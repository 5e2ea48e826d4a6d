"""
Shared Retry Policy for Transformation Services.

Every backend is called through the same policy: on a rate-limit signal wait
`min(2**attempt, max_backoff)` seconds and try again, up to `max_attempts`
calls in total; any other error aborts immediately.

Usage:
    policy = RetryPolicy(max_attempts=5)
    answer = policy.call(lambda: client.generate(prompt), label="gemini")
"""

import logging
import time
from typing import Callable, Optional, TypeVar

from metamorph.core.errors import RateLimitError, ServiceError

logger = logging.getLogger("metamorph.services.retry")

T = TypeVar("T")

_RATE_LIMIT_MARKERS = ("429", "too many requests", "resource_exhausted", "rate limit")


def is_rate_limited(exc: BaseException) -> bool:
  """
  Classifies an exception as a rate-limit signal.

  Recognises our own `RateLimitError`, SDK exceptions carrying an HTTP 429
  (`status_code` on the Anthropic SDK, `code` on google-api-core), and the
  textual markers the services put in their messages.
  """
  if isinstance(exc, RateLimitError):
    return True
  for attr in ("status_code", "code"):
    if getattr(exc, attr, None) == 429:
      return True
  message = str(exc).lower()
  return any(marker in message for marker in _RATE_LIMIT_MARKERS)


def exponential_backoff(attempt: int, max_backoff: float = 60.0) -> float:
  """
  Returns the wait before the attempt following `attempt` (0-based).

  Algorithm: min(2^attempt, max_backoff)
  """
  return min(float(2**attempt), max_backoff)


class RetryPolicy:
  """
  Bounded retry with exponential backoff, parameterized by an error classifier.

  Attributes:
      max_attempts (int): Total number of calls allowed.
      max_backoff (float): Cap in seconds for one wait.
      classifier (Callable): Returns True for errors that warrant a retry.
      backoff (Callable): Maps (attempt, max_backoff) to a delay in seconds.
      sleep (Callable): Blocking wait, injectable for tests.
  """

  def __init__(
    self,
    max_attempts: int = 5,
    max_backoff: float = 60.0,
    classifier: Callable[[BaseException], bool] = is_rate_limited,
    backoff: Callable[[int, float], float] = exponential_backoff,
    sleep: Optional[Callable[[float], None]] = None,
  ):
    if max_attempts < 1:
      raise ValueError("max_attempts must be at least 1")
    self.max_attempts = max_attempts
    self.max_backoff = max_backoff
    self.classifier = classifier
    self.backoff = backoff
    self.sleep = sleep or time.sleep

  def call(self, func: Callable[[], T], label: str = "service") -> T:
    """
    Invokes `func` under the policy.

    Args:
        func: Zero-argument callable performing one service request.
        label: Service name used in log and error messages.

    Returns:
        The value returned by the first successful call.

    Raises:
        RateLimitError: If every attempt was rate limited.
        ServiceError: On the first non-retryable failure.
    """
    for attempt in range(self.max_attempts):
      try:
        return func()
      except Exception as exc:
        if not self.classifier(exc):
          if isinstance(exc, ServiceError):
            raise
          raise ServiceError(f"error sending request to {label}: {exc}") from exc

        if attempt == self.max_attempts - 1:
          raise RateLimitError(
            f"{label} rate limit exceeded after {self.max_attempts} attempts. "
            f"Please try again later or reduce the number of requests: {exc}"
          ) from exc

        delay = self.backoff(attempt, self.max_backoff)
        logger.warning(
          "Rate limited by %s. Attempt %d/%d. Waiting %.1fs before retrying...",
          label,
          attempt + 1,
          self.max_attempts,
          delay,
        )
        self.sleep(delay)

    raise AssertionError("unreachable")
