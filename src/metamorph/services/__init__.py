"""
Transformation Services Package.

Clients for the external code-transformation services, sharing one request
model, one fence-stripping routine, and one retry policy.

Modules:
    - ``base``: Request model, fence stripping and the service base class.
    - ``retry``: Rate-limit classification and exponential backoff.
    - ``gemini_service``: Google Gemini backend.
    - ``anthropic_service``: Anthropic backend.
"""

from metamorph.config import ServiceConfig
from metamorph.enums import ServiceBackend
from metamorph.services.base import TransformationRequest, TransformationService, strip_code_fences
from metamorph.services.retry import RetryPolicy, is_rate_limited


def create_service(config: ServiceConfig) -> TransformationService:
  """
  Instantiates the client for the configured backend.

  Args:
      config (ServiceConfig): Backend selection and settings.

  Returns:
      TransformationService: A ready (lazily connecting) client.
  """
  if config.backend == ServiceBackend.ANTHROPIC:
    from metamorph.services.anthropic_service import AnthropicService

    return AnthropicService(config)

  from metamorph.services.gemini_service import GeminiService

  return GeminiService(config)


__all__ = [
  "RetryPolicy",
  "TransformationRequest",
  "TransformationService",
  "create_service",
  "is_rate_limited",
  "strip_code_fences",
]
