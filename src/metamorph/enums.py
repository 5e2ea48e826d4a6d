"""
Enumerations for metamorph.

Strategy selection, transformation backends and the promotion pipeline stages.
"""

from enum import Enum


class StrategyKind(str, Enum):
  """
  The rewrite strategy variants.

  ANNOTATE marks every function with a comment and nothing else (baseline/testing).
  EXTERNAL sends each function to a transformation service and splices the answer back.
  """

  ANNOTATE = "annotate"
  EXTERNAL = "external"


class ServiceBackend(str, Enum):
  """Transformation services backing the EXTERNAL strategy."""

  GEMINI = "gemini"
  ANTHROPIC = "anthropic"


class Stage(str, Enum):
  """
  Promotion pipeline states, in their forced linear order.
  FAILED absorbs a run from any stage.
  """

  IDLE = "idle"
  REWRITTEN = "rewritten"
  MEASURED = "measured"
  COMPILED = "compiled"
  TESTED = "tested"
  DEPLOYED = "deployed"
  CLEANED_UP = "cleaned_up"
  FAILED = "failed"
