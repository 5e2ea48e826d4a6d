"""
Rewrite Strategies.

Strategies are selected by a tagged `StrategySpec` (see `metamorph.config`) and
built through the single dispatch function `build_strategy`. Adding a backend
means adding a `ServiceBackend` member and a client in `metamorph.services`;
the strategy code itself is shared.
"""

from typing import Optional

from metamorph.config import StrategySpec
from metamorph.core.strategies.annotate import AnnotateStrategy
from metamorph.core.strategies.base import RewriteOutcome, RewriteStrategy
from metamorph.core.strategies.external import ExternalTransformStrategy
from metamorph.core.tracer import TraceLogger
from metamorph.core.tree import TreeHandler
from metamorph.enums import StrategyKind
from metamorph.services import TransformationService, create_service


def build_strategy(
  spec: StrategySpec,
  tree_handler: TreeHandler,
  service: Optional[TransformationService] = None,
  tracer: Optional[TraceLogger] = None,
) -> RewriteStrategy:
  """
  Dispatches a strategy spec to its implementation.

  Args:
      spec (StrategySpec): The tagged strategy selection.
      tree_handler (TreeHandler): Handler shared with the engine.
      service (TransformationService, optional): Pre-built service client. Built from
          `spec.service` when omitted (EXTERNAL only).
      tracer (TraceLogger, optional): Event sink; defaults to the global tracer.

  Returns:
      RewriteStrategy: The ready strategy.
  """
  if spec.kind == StrategyKind.ANNOTATE:
    return AnnotateStrategy(spec.marker, tracer=tracer)

  if spec.kind == StrategyKind.EXTERNAL:
    return ExternalTransformStrategy(
      tree_handler,
      service or create_service(spec.service),
      spec.marker,
      instructions=spec.service.instructions,
      tracer=tracer,
    )

  raise ValueError(f"Unknown strategy kind: {spec.kind}")


__all__ = [
  "AnnotateStrategy",
  "ExternalTransformStrategy",
  "RewriteOutcome",
  "RewriteStrategy",
  "build_strategy",
]
