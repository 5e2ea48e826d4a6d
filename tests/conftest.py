"""
Pytest Configuration and Fixtures.

Includes:
- Syspath patching for local imports.
- Trace logger isolation between tests.
- A recording console for assertions on rendered output.
- A scripted fake transformation service.
"""

import io
import sys
from pathlib import Path
from typing import Callable, List, Optional, Union

import pytest
from rich.console import Console

# Add src to path so we can import 'metamorph' without installing it
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from metamorph.core.tracer import reset_tracer
from metamorph.services.base import TransformationRequest, TransformationService
from metamorph.utils.console import reset_console, set_console


@pytest.fixture(autouse=True)
def isolate_tracer():
  """Every test starts with an empty global trace log."""
  reset_tracer()
  yield
  reset_tracer()


@pytest.fixture
def recorded_console():
  """
  Routes console and logging output to an in-memory buffer.

  Yields:
      Console: A recording console; use `export_text()` to read it.
  """
  buffer = io.StringIO()
  test_console = Console(file=buffer, record=True, width=200, force_terminal=False)
  set_console(test_console)
  yield test_console
  reset_console()


class FakeService(TransformationService):
  """
  Transformation service answering from a script instead of a network API.

  `answers` may hold strings (returned as-is), exceptions (raised), or a
  callable mapping the request to an answer.
  """

  name = "fake"

  def __init__(self, answers: Union[List[object], Callable[[TransformationRequest], str]]):
    super().__init__()
    self.answers = answers
    self.requests: List[TransformationRequest] = []

  def _complete(self, prompt: str) -> str:
    raise AssertionError("FakeService overrides transform")

  def transform(self, request: TransformationRequest) -> str:
    self.requests.append(request)
    if callable(self.answers):
      return self.answers(request)
    answer = self.answers.pop(0)
    if isinstance(answer, BaseException):
      raise answer
    return answer


@pytest.fixture
def fake_service_factory() -> Callable[..., FakeService]:
  def _make(answers: Optional[Union[List[object], Callable[[TransformationRequest], str]]] = None) -> FakeService:
    return FakeService(answers if answers is not None else [])

  return _make
