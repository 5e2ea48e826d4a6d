"""
Run Trace.

A flat, ordered log of what happened during a rewrite or promotion run. Each
event points at the phase it was recorded in, so the JSON dump written by
`--json-trace` can be folded back into a tree:

    Promotion
      Rewrite (ExternalTransformStrategy)
        function_rewritten: add
        function_rejected: parse_args
      stage_transition: rewritten -> measured
      ...
"""

import contextlib
import time
import uuid
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional


class TraceEventType(str, Enum):
  PHASE_START = "phase_start"
  PHASE_END = "phase_end"
  FUNCTION_REWRITTEN = "function_rewritten"
  FUNCTION_UNCHANGED = "function_unchanged"
  FUNCTION_REJECTED = "function_rejected"
  FUNCTION_SKIPPED = "function_skipped"
  STAGE_TRANSITION = "stage_transition"
  WARNING = "warning"


FUNCTION_OUTCOMES = (
  TraceEventType.FUNCTION_REWRITTEN,
  TraceEventType.FUNCTION_UNCHANGED,
  TraceEventType.FUNCTION_REJECTED,
  TraceEventType.FUNCTION_SKIPPED,
)


@dataclass
class TraceEvent:
  type: TraceEventType
  description: str
  parent_id: Optional[str] = None
  metadata: Dict[str, Any] = field(default_factory=dict)
  id: str = field(default_factory=lambda: uuid.uuid4().hex)
  timestamp: float = field(default_factory=time.time)

  def to_dict(self) -> Dict[str, Any]:
    return {
      "id": self.id,
      "type": self.type.value,
      "timestamp": self.timestamp,
      "description": self.description,
      "parent_id": self.parent_id,
      "metadata": dict(self.metadata),
    }


class TraceLogger:
  """
  Collects trace events for one run.

  The engine, the strategies and the orchestrator either receive a logger
  explicitly or fall back to the process-wide one from `get_tracer()`.
  """

  def __init__(self) -> None:
    self._events: List[TraceEvent] = []
    self._open: List[str] = []

  @property
  def current_phase(self) -> Optional[str]:
    return self._open[-1] if self._open else None

  def _record(self, evt_type: TraceEventType, description: str, **metadata: Any) -> TraceEvent:
    event = TraceEvent(evt_type, description, parent_id=self.current_phase, metadata=metadata)
    self._events.append(event)
    return event

  def start_phase(self, name: str, description: str = "") -> str:
    """Opens a phase nested in the current one and returns its id."""
    event = self._record(TraceEventType.PHASE_START, name, detail=description)
    self._open.append(event.id)
    return event.id

  def end_phase(self) -> None:
    """Closes the innermost open phase; a no-op when none is open."""
    if not self._open:
      return
    phase_id = self._open.pop()
    self._events.append(TraceEvent(TraceEventType.PHASE_END, "End Phase", parent_id=phase_id))

  @contextlib.contextmanager
  def phase(self, name: str, description: str = "") -> Iterator[str]:
    phase_id = self.start_phase(name, description)
    try:
      yield phase_id
    finally:
      self.end_phase()

  def log_function(self, outcome: TraceEventType, name: str, detail: str = "") -> None:
    if outcome not in FUNCTION_OUTCOMES:
      raise ValueError(f"{outcome} is not a function outcome")
    label = outcome.value.replace("_", " ").capitalize()
    self._record(outcome, f"{label}: {name}", function=name, detail=detail)

  def log_stage(self, previous: str, current: str) -> None:
    self._record(TraceEventType.STAGE_TRANSITION, f"{previous} -> {current}", **{"from": previous, "to": current})

  def log_warning(self, message: str) -> None:
    self._record(TraceEventType.WARNING, message, level="warning")

  def events_of(self, evt_type: TraceEventType) -> List[TraceEvent]:
    return [e for e in self._events if e.type == evt_type]

  def function_summary(self) -> Dict[str, int]:
    """Counts function outcomes, e.g. {"function_rewritten": 3, "function_rejected": 1}."""
    counts = Counter(e.type.value for e in self._events if e.type in FUNCTION_OUTCOMES)
    return dict(counts)

  def export(self) -> List[Dict[str, Any]]:
    """Returns the events as JSON-ready dicts, in recording order."""
    return [e.to_dict() for e in self._events]


_tracer = TraceLogger()


def get_tracer() -> TraceLogger:
  return _tracer


def reset_tracer() -> None:
  """Starts a fresh process-wide trace (one per CLI command or test)."""
  global _tracer
  _tracer = TraceLogger()
