"""
Tests for the Gemini backend with the SDK mocked out.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from metamorph.config import ServiceConfig
from metamorph.core.errors import ServiceError
from metamorph.services import create_service
from metamorph.services.base import TransformationRequest
from metamorph.services.gemini_service import GeminiService
from metamorph.services.retry import RetryPolicy

REQUEST = TransformationRequest(source="def f():\n    return 1\n", instructions="Refactor")


def response_with(*texts):
  parts = [SimpleNamespace(text=t) for t in texts]
  return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))])


@pytest.fixture
def gemini_key(monkeypatch):
  monkeypatch.setenv("GEMINI_API_KEY", "test-key")


@patch("metamorph.services.gemini_service.genai")
def test_generation_settings(mock_genai, gemini_key):
  model = MagicMock()
  model.generate_content.return_value = response_with("```python\ndef f():\n", "    return 2\n```")
  mock_genai.GenerativeModel.return_value = model

  answer = GeminiService().transform(REQUEST)

  assert answer == "def f():\n    return 2"
  mock_genai.configure.assert_called_once_with(api_key="test-key")
  kwargs = mock_genai.GenerativeModel.call_args.kwargs
  assert kwargs["model_name"] == "gemini-1.5-flash"
  assert kwargs["generation_config"]["temperature"] == 0.2
  assert kwargs["generation_config"]["top_k"] == 64
  assert kwargs["generation_config"]["top_p"] == 0.95
  assert kwargs["generation_config"]["max_output_tokens"] == 8192


@patch("metamorph.services.gemini_service.genai")
def test_model_is_configured_once(mock_genai, gemini_key):
  mock_genai.GenerativeModel.return_value.generate_content.return_value = response_with("def f():\n    return 3\n")
  service = GeminiService()
  service.transform(REQUEST)
  service.transform(REQUEST)
  assert mock_genai.configure.call_count == 1


@patch("metamorph.services.gemini_service.genai")
def test_empty_candidates(mock_genai, gemini_key):
  mock_genai.GenerativeModel.return_value.generate_content.return_value = SimpleNamespace(candidates=[])
  with pytest.raises(ServiceError, match="empty response"):
    GeminiService().transform(REQUEST)


@patch("metamorph.services.gemini_service.genai")
def test_empty_parts(mock_genai, gemini_key):
  response = SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[]))])
  mock_genai.GenerativeModel.return_value.generate_content.return_value = response
  with pytest.raises(ServiceError, match="empty content"):
    GeminiService().transform(REQUEST)


@patch("metamorph.services.gemini_service.genai")
def test_rate_limit_is_retried(mock_genai, gemini_key):
  model = mock_genai.GenerativeModel.return_value
  model.generate_content.side_effect = [Exception("429 Resource has been exhausted"), response_with("def f():\n  return 9\n")]
  sleep = MagicMock()

  answer = GeminiService(retry_policy=RetryPolicy(sleep=sleep)).transform(REQUEST)

  assert "return 9" in answer
  sleep.assert_called_once_with(1.0)


def test_missing_key_is_a_service_error(monkeypatch):
  monkeypatch.delenv("GEMINI_API_KEY", raising=False)
  with pytest.raises(ServiceError, match="GEMINI_API_KEY"):
    GeminiService().transform(REQUEST)


def test_factory_builds_gemini_by_default():
  assert isinstance(create_service(ServiceConfig()), GeminiService)
