"""
Rewrite Command Handler.

Implements `metamorph rewrite`: runs the rewrite engine over one source file
and saves the result (default `<input>.rewritten.py`), without building,
testing or deploying anything.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.markup import escape

from metamorph.config import PipelineConfig
from metamorph.core.engine import RewriteEngine
from metamorph.core.errors import MetamorphError
from metamorph.core.tracer import get_tracer, reset_tracer
from metamorph.utils.console import log_error, log_info, log_success


def write_trace(json_trace_path: Optional[Path], events: List[Dict[str, Any]]) -> None:
  """
  Dumps trace events to a JSON file (no-op without a path).

  Args:
      json_trace_path: Destination file.
      events: Exported trace events.
  """
  if not json_trace_path:
    return
  try:
    json_trace_path.parent.mkdir(parents=True, exist_ok=True)
    with open(json_trace_path, "wt", encoding="utf-8") as f:
      json.dump(events, f, indent=2, default=str)
    log_info(f"Trace saved to [path]{escape(str(json_trace_path))}[/path]")
  except OSError as e:
    log_error(f"Failed to write trace: {escape(str(e))}")


def handle_rewrite(
  input_path: Path,
  output_path: Optional[Path],
  strategy: Optional[str],
  backend: Optional[str],
  comment: Optional[str] = None,
  json_trace_path: Optional[Path] = None,
) -> int:
  """
  Handles the 'rewrite' command execution.

  Args:
      input_path: Source file to rewrite.
      output_path: Destination of the rewritten text (default `<input>.rewritten.py`).
      strategy: Strategy kind override ('annotate' or 'external').
      backend: Service backend override ('gemini' or 'anthropic').
      comment: Marker comment override.
      json_trace_path: Optional path to dump execution trace JSON.

  Returns:
      int: Exit code (0 for success, 1 for failure).
  """
  if not input_path.is_file():
    log_error(f"Input not found: {escape(str(input_path))}")
    return 1

  try:
    config = PipelineConfig.load(
      input_path,
      search_path=input_path.parent,
      output_path=output_path,
      strategy_kind=strategy,
      backend=backend,
      comment=comment,
    )
  except ValueError as e:
    log_error(f"Invalid configuration: {escape(str(e))}")
    return 1

  reset_tracer()
  destination = config.staged_path
  log_info(f"Rewriting [path]{escape(str(input_path))}[/path] to [path]{escape(str(destination))}[/path]...")

  try:
    engine = RewriteEngine.from_spec(config.strategy)
    rewritten = engine.rewrite_file(input_path)
    engine.save(destination, rewritten)
  except MetamorphError as e:
    log_error(f"Error rewriting file: {escape(str(e))}")
    return 1
  finally:
    write_trace(json_trace_path, get_tracer().export())

  summary = get_tracer().function_summary()
  if summary:
    log_info(", ".join(f"{k.replace('function_', '')}: {v}" for k, v in sorted(summary.items())))
  log_success("Rewriting completed successfully!")
  return 0
