"""Anthropic transformation service, via the anthropic SDK."""

import logging
from typing import Optional

import anthropic

from metamorph.config import ServiceConfig
from metamorph.core.errors import ServiceError
from metamorph.services.base import TransformationService
from metamorph.services.retry import RetryPolicy

logger = logging.getLogger("metamorph.services.anthropic")


class AnthropicService(TransformationService):
  """
  Sends transformation prompts to an Anthropic model through the Messages API.
  The client is created lazily on the first request.
  """

  name = "anthropic"

  def __init__(self, config: Optional[ServiceConfig] = None, retry_policy: Optional[RetryPolicy] = None):
    super().__init__(config, retry_policy)
    self._client = None

  def _get_client(self):
    if self._client is None:
      self._client = anthropic.Anthropic(api_key=self.api_key())
    return self._client

  def _complete(self, prompt: str) -> str:
    client = self._get_client()
    message = client.messages.create(
      model=self.config.effective_model,
      max_tokens=self.config.max_output_tokens,
      temperature=self.config.temperature,
      messages=[{"role": "user", "content": prompt}],
    )

    text_parts = [block.text for block in getattr(message, "content", []) if getattr(block, "type", "") == "text"]
    if not text_parts:
      raise ServiceError("received response with empty content from Anthropic API")

    logger.debug("Anthropic answered with stop reason %s", getattr(message, "stop_reason", ""))
    return "".join(text_parts)
