"""
Static analysis of Python modules.
"""

from metamorph.analysis.complexity import (
  ComplexityAnalyzer,
  DeltaRecord,
  MetricsRecord,
  compute_delta,
  functional_equivalence,
  render_report,
)

__all__ = [
  "ComplexityAnalyzer",
  "DeltaRecord",
  "MetricsRecord",
  "compute_delta",
  "functional_equivalence",
  "render_report",
]
