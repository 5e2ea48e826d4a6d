"""
Promote Command Handler.

Implements `metamorph promote`: loads the pipeline configuration (TOML plus
CLI overrides), runs the `PromotionOrchestrator` and reports the outcome.
"""

from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError
from rich.markup import escape

from metamorph.cli.handlers.rewrite import write_trace
from metamorph.config import PipelineConfig
from metamorph.core.tracer import reset_tracer
from metamorph.pipeline.orchestrator import PromotionOrchestrator
from metamorph.utils.console import log_error, log_info


def handle_promote(
  input_path: Path,
  overrides: Dict[str, Any],
  json_trace_path: Optional[Path] = None,
) -> int:
  """
  Handles the 'promote' command execution.

  Args:
      input_path: Source file to rewrite and promote.
      overrides: PipelineConfig field overrides; `None` values keep the TOML/default value.
      json_trace_path: Optional path to dump execution trace JSON.

  Returns:
      int: Exit code (0 for success, 1 for failure).
  """
  if not input_path.is_file():
    log_error(f"Input not found: {escape(str(input_path))}")
    return 1

  try:
    config = PipelineConfig.load(input_path, search_path=input_path.parent, **overrides)
  except (ValidationError, ValueError) as e:
    log_error(f"Invalid configuration: {escape(str(e))}")
    return 1

  reset_tracer()
  result = PromotionOrchestrator(config).run()
  write_trace(json_trace_path, result.trace_events)

  if not result.success:
    failed = result.failed_stage.value if result.failed_stage else "unknown"
    log_error(f"Promotion failed at stage '{failed}'")
    return 1

  if not result.deployed:
    log_info("Dry run: no binary was deployed.")
  return 0
