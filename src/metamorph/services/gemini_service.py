"""Google Gemini transformation service, via the google-generativeai SDK."""

import logging
from typing import Optional

import google.generativeai as genai

from metamorph.config import ServiceConfig
from metamorph.core.errors import ServiceError
from metamorph.services.base import TransformationService
from metamorph.services.retry import RetryPolicy

logger = logging.getLogger("metamorph.services.gemini")


class GeminiService(TransformationService):
  """
  Sends transformation prompts to a Gemini model.

  The SDK is configured lazily on the first request so that constructing the
  service (e.g. while building a strategy) never requires an API key.
  """

  name = "gemini"

  def __init__(self, config: Optional[ServiceConfig] = None, retry_policy: Optional[RetryPolicy] = None):
    super().__init__(config, retry_policy)
    self._model = None

  def _ensure_model(self):
    if self._model is not None:
      return self._model
    genai.configure(api_key=self.api_key())
    self._model = genai.GenerativeModel(
      model_name=self.config.effective_model,
      generation_config={
        "temperature": self.config.temperature,
        "top_k": self.config.top_k,
        "top_p": self.config.top_p,
        "max_output_tokens": self.config.max_output_tokens,
        "response_mime_type": "text/plain",
      },
    )
    return self._model

  def _complete(self, prompt: str) -> str:
    model = self._ensure_model()
    response = model.generate_content(prompt)

    if not getattr(response, "candidates", None):
      raise ServiceError("received empty response from Gemini API")

    candidate = response.candidates[0]
    parts = getattr(getattr(candidate, "content", None), "parts", None)
    if not parts:
      raise ServiceError("received response with empty content from Gemini API")

    text = "".join(part.text for part in parts if getattr(part, "text", None))
    logger.debug("Gemini answered with %d characters", len(text))
    return text
