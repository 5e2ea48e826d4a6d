"""
Transformation Service Contract.

A transformation service is an opaque text-to-text function: it receives the
source of one function plus natural-language instructions and answers with free
text, optionally wrapped in a fenced code block. The answer is untrusted; the
caller re-parses and validates it before use.

Backends implement `_complete(prompt)`; `transform` wraps that call in the
shared retry policy, strips code fences and rejects implausible answers.
"""

import abc
import os
import re
from typing import Optional

from pydantic import BaseModel, Field

from metamorph.config import ServiceConfig
from metamorph.core.errors import ServiceError
from metamorph.services.retry import RetryPolicy

# Answers shorter than this cannot be a function definition.
MIN_RESPONSE_LENGTH = 10

_FENCE_OPEN = re.compile(r"^```[\w+-]*[ \t]*\n?")


class TransformationRequest(BaseModel):
  """
  One request to a transformation service.
  """

  source: str = Field(..., description="Source text of the function to transform.")
  instructions: str = Field(..., description="Natural-language transformation instructions.")

  def render_prompt(self) -> str:
    """
    Builds the prompt sent to the service.

    Returns:
        str: Instructions, the function source, and a closing reminder.
    """
    return (
      f"{self.instructions}\n\n"
      "Here's the function to refactor:\n\n"
      f"{self.source}\n\n"
      "Return only the refactored function code."
    )


def strip_code_fences(text: str) -> str:
  """
  Removes surrounding fenced code-block markup from a service answer.

  Handles both language-tagged (```python) and bare (```) fences. Text without
  a leading fence is only trimmed.

  Args:
      text (str): Raw answer text.

  Returns:
      str: The unwrapped code, stripped of surrounding whitespace.
  """
  result = text.strip()
  if result.startswith("```"):
    result = _FENCE_OPEN.sub("", result, count=1)
    closing = result.rfind("```")
    if closing != -1:
      result = result[:closing]
  return result.strip()


class TransformationService(abc.ABC):
  """
  Base class for transformation service backends.

  Attributes:
      config (ServiceConfig): Backend settings (model, key variable, sampling).
      retry_policy (RetryPolicy): Retry behaviour applied to every call.
  """

  name: str = "service"

  def __init__(self, config: Optional[ServiceConfig] = None, retry_policy: Optional[RetryPolicy] = None):
    self.config = config or ServiceConfig()
    self.retry_policy = retry_policy or RetryPolicy(
      max_attempts=self.config.max_attempts,
      max_backoff=self.config.max_backoff,
    )

  def api_key(self) -> str:
    """
    Reads the API key from the configured environment variable.

    Raises:
        ServiceError: If the variable is unset or empty.
    """
    env_name = self.config.effective_api_key_env
    key = os.environ.get(env_name)
    if not key:
      raise ServiceError(f"environment variable {env_name} not set")
    return key

  @abc.abstractmethod
  def _complete(self, prompt: str) -> str:
    """Sends one prompt to the backend and returns the raw answer text."""

  def transform(self, request: TransformationRequest) -> str:
    """
    Asks the service to transform one function.

    Args:
        request (TransformationRequest): The function source and instructions.

    Returns:
        str: The answer with code fences removed.

    Raises:
        ServiceError: On non-retryable failures, exhausted retries, or implausible answers.
    """
    prompt = request.render_prompt()
    raw = self.retry_policy.call(lambda: self._complete(prompt), label=self.name)
    result = strip_code_fences(raw)
    if len(result) < MIN_RESPONSE_LENGTH:
      raise ServiceError(f"received suspiciously short response from {self.name}: {result!r}")
    return result
