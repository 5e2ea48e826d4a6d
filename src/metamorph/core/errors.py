"""
Exception hierarchy for metamorph.

Two layers raise these errors:

- The rewrite layer (tree handler, strategies, services) raises them so the
  engine can turn them into comment annotations on the affected function or file.
- The promotion pipeline raises `PipelineError`, which names the stage that
  failed and carries the underlying cause.
"""

from typing import Any, Optional


class MetamorphError(Exception):
  """Base class for all metamorph errors."""


class SourceAccessError(MetamorphError):
  """A source file could not be read or written."""


class ParseError(MetamorphError):
  """Program text could not be parsed into a tree."""


class RenderError(MetamorphError):
  """A tree (or a single node) could not be rendered back to text."""


class StrategyError(MetamorphError):
  """A rewrite strategy hit a handler-level fault (e.g. source extraction failed)."""


class ServiceError(MetamorphError):
  """The external transformation service failed or returned an unusable answer."""


class RateLimitError(ServiceError):
  """The external transformation service signalled a rate limit."""


class TransactionError(MetamorphError):
  """A backup, swap, or restore step of a file transaction failed."""


class PipelineError(MetamorphError):
  """
  A promotion stage failed.

  Attributes:
      stage (Stage): The stage whose work failed (e.g. `Stage.COMPILED`).
      message (str): What went wrong.
      cause (Optional[BaseException]): The underlying exception, if any.
  """

  def __init__(self, stage: Any, message: str, cause: Optional[BaseException] = None):
    super().__init__(f"{getattr(stage, 'value', stage)} stage failed: {message}")
    self.stage = stage
    self.message = message
    self.cause = cause
