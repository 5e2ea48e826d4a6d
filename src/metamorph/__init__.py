"""
metamorph Package.

Function-level metamorphic rewriting of Python source, with complexity
measurement and a guarded promotion pipeline (build, test, deploy, rollback).

Usage
-----

Simple String Rewrite
^^^^^^^^^^^^^^^^^^^^^

.. code-block:: python

    import metamorph
    code = "def f(x): return x"
    print(metamorph.rewrite(code, strategy="annotate"))
    # # This function was rewritten by Metamorph
    # def f(x): return x

Promotion Pipeline
^^^^^^^^^^^^^^^^^^

.. code-block:: python

    from pathlib import Path
    from metamorph import PipelineConfig, PromotionOrchestrator

    config = PipelineConfig.load(Path("app/logic.py"), dry_run=True)
    result = PromotionOrchestrator(config).run()
    if not result.success:
        print(f"Failed at {result.failed_stage}: {result.error}")
"""

from typing import Optional, Union

from metamorph.analysis.complexity import ComplexityAnalyzer, MetricsRecord
from metamorph.config import PipelineConfig, ServiceConfig, StrategySpec
from metamorph.core.engine import RewriteEngine
from metamorph.enums import ServiceBackend, Stage, StrategyKind
from metamorph.pipeline.orchestrator import PromotionOrchestrator
from metamorph.pipeline.result import PipelineResult

__version__ = "0.1.0"


def rewrite(
  code: str,
  strategy: Union[str, StrategyKind] = StrategyKind.ANNOTATE,
  backend: Union[str, ServiceBackend] = ServiceBackend.GEMINI,
  comment: Optional[str] = None,
) -> str:
  """
  Rewrites a string of Python code.

  Args:
      code (str): The source code string.
      strategy (str): 'annotate' (default) or 'external'.
      backend (str): Transformation service for the external strategy.
      comment (str, optional): Marker comment override.

  Returns:
      str: The rewritten code, or the original with a diagnostic comment.
  """
  spec = StrategySpec(kind=strategy, comment=comment, service=ServiceConfig(backend=backend))
  return RewriteEngine.from_spec(spec).rewrite_content(code)


__all__ = [
  "ComplexityAnalyzer",
  "MetricsRecord",
  "PipelineConfig",
  "PipelineResult",
  "PromotionOrchestrator",
  "RewriteEngine",
  "Stage",
  "StrategySpec",
  "__version__",
  "rewrite",
]
