"""
Promotion Pipeline Package.

Modules:
    - ``orchestrator``: The stage state machine (`PromotionOrchestrator`).
    - ``journal``: Durable move journal and the compile/test source swap.
    - ``tooling``: Build and test tool runner, pytest summary parsing.
    - ``result``: Result models of a run.
"""

from metamorph.pipeline.journal import RollbackJournal, SourceSwap
from metamorph.pipeline.orchestrator import PromotionOrchestrator
from metamorph.pipeline.result import MetricsReport, PipelineResult
from metamorph.pipeline.tooling import CommandResult, CommandRunner

__all__ = [
  "CommandResult",
  "CommandRunner",
  "MetricsReport",
  "PipelineResult",
  "PromotionOrchestrator",
  "RollbackJournal",
  "SourceSwap",
]
