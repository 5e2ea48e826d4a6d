"""
Metrics Command Handler.

Implements `metamorph metrics`: measures one file, or compares two.
"""

import json
from pathlib import Path
from typing import Optional

from rich.markup import escape
from rich.table import Table

from metamorph.analysis.complexity import ComplexityAnalyzer, compute_delta, render_report
from metamorph.core.errors import MetamorphError
from metamorph.utils.console import console, log_error


def handle_metrics(original_path: Path, rewritten_path: Optional[Path] = None, as_json: bool = False) -> int:
  """
  Handles the 'metrics' command execution.

  Args:
      original_path: File to measure.
      rewritten_path: Optional second file; when given, deltas are reported.
      as_json: Print machine-readable JSON instead of a table.

  Returns:
      int: Exit code (0 for success, 1 for failure).
  """
  analyzer = ComplexityAnalyzer()
  try:
    original = analyzer.analyze_file(original_path)
    rewritten = analyzer.analyze_file(rewritten_path) if rewritten_path else None
  except MetamorphError as e:
    log_error(f"Failed to calculate metrics: {escape(str(e))}")
    return 1

  if rewritten is None:
    if as_json:
      print(json.dumps(original.model_dump(), indent=2))
      return 0
    table = Table(title=f"Code Metrics: {escape(original_path.name)}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Lines of Code (LOC)", str(original.loc))
    table.add_row("Cyclomatic Complexity (CC)", str(original.cc))
    table.add_row("Cognitive Complexity (CogC)", str(original.cog_c))
    table.add_row("Functions", str(original.func_count))
    console.print(table)
    return 0

  delta = compute_delta(original, rewritten)
  if as_json:
    payload = {"original": original.model_dump(), "rewritten": rewritten.model_dump(), "delta": delta.model_dump()}
    print(json.dumps(payload, indent=2))
    return 0

  console.print(render_report(original, rewritten, delta))
  return 0
