"""
Tests for the Tracing System.
"""

import json

import pytest

from metamorph.core.tracer import TraceEventType, TraceLogger, get_tracer, reset_tracer


def test_phase_nesting():
  logger = TraceLogger()

  p1 = logger.start_phase("Parent")
  logger.start_phase("Child")
  logger.end_phase()  # End Child
  logger.end_phase()  # End Parent

  events = logger.export()

  # 4 events: Start P, Start C, End C, End P
  assert len(events) == 4
  assert events[0]["type"] == TraceEventType.PHASE_START
  assert events[1]["parent_id"] == p1
  assert events[2]["type"] == TraceEventType.PHASE_END


def test_end_phase_without_start_is_noop():
  logger = TraceLogger()
  logger.end_phase()
  assert logger.export() == []


def test_function_outcome_metadata():
  logger = TraceLogger()
  phase = logger.start_phase("Rewrite")
  logger.log_function(TraceEventType.FUNCTION_REJECTED, "compute", "no function in answer")

  event = logger.events_of(TraceEventType.FUNCTION_REJECTED)[0]
  assert event.parent_id == phase
  assert event.metadata == {"function": "compute", "detail": "no function in answer"}
  assert "compute" in event.description


def test_stage_transition():
  logger = TraceLogger()
  logger.log_stage("idle", "rewritten")
  event = logger.export()[0]
  assert event["type"] == TraceEventType.STAGE_TRANSITION
  assert event["metadata"] == {"from": "idle", "to": "rewritten"}


def test_export_is_json_serializable():
  logger = TraceLogger()
  logger.log_warning("careful")
  json.dumps(logger.export())


def test_reset_replaces_global_tracer():
  first = get_tracer()
  first.log_warning("old")
  reset_tracer()
  assert get_tracer() is not first
  assert get_tracer().export() == []


def test_phase_context_closes_on_error():
  logger = TraceLogger()
  try:
    with logger.phase("Rewrite"):
      raise RuntimeError("boom")
  except RuntimeError:
    pass
  assert [e["type"] for e in logger.export()] == ["phase_start", "phase_end"]
  assert logger.current_phase is None


def test_function_summary_counts_outcomes():
  logger = TraceLogger()
  logger.log_function(TraceEventType.FUNCTION_REWRITTEN, "a")
  logger.log_function(TraceEventType.FUNCTION_REWRITTEN, "b")
  logger.log_function(TraceEventType.FUNCTION_SKIPPED, "c")
  logger.log_warning("unrelated")
  assert logger.function_summary() == {"function_rewritten": 2, "function_skipped": 1}


def test_log_function_rejects_other_event_types():
  with pytest.raises(ValueError):
    TraceLogger().log_function(TraceEventType.WARNING, "f")
