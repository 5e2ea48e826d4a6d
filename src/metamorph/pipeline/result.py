"""
Pipeline Result Models.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from metamorph.analysis.complexity import DeltaRecord, MetricsRecord
from metamorph.enums import Stage


class MetricsReport(BaseModel):
  """Measurements taken in the Measured stage."""

  original: MetricsRecord
  rewritten: MetricsRecord
  delta: DeltaRecord


class PipelineResult(BaseModel):
  """
  Summary of one promotion run.

  Attributes:
      stage (Stage): Last stage reached (FAILED when the run aborted).
      success (bool): True if the run finished without error.
      deployed (bool): True if a new binary was moved into place.
      metrics (MetricsReport): Complexity figures, when measured.
      functional_equivalence (float): Passing test percentage, when the test output had a summary.
      failed_stage (Stage): Stage whose work failed.
      error (str): Failure message.
      trace_events (List[Dict]): Exported trace log.
  """

  stage: Stage = Stage.IDLE
  success: bool = False
  deployed: bool = False
  metrics: Optional[MetricsReport] = None
  functional_equivalence: Optional[float] = None
  failed_stage: Optional[Stage] = None
  error: Optional[str] = None
  trace_events: List[Dict[str, Any]] = Field(default_factory=list)
