"""
Static Complexity Analysis.

This module provides the `ComplexityAnalyzer`, which measures a Python module
with LibCST visitors and reports four numbers:

1.  **LOC**: non-blank lines that are not pure comment lines.
2.  **Cyclomatic Complexity (CC)**: one plus the decision points of the module
    (`if`/`elif`, `for`/`while`, each `and`/`or`, and `match` arms).
3.  **Cognitive Complexity (CogC)**: like CC but weighted by nesting depth,
    with flat increments for `else`, boolean operators, `break`/`continue`
    and in-place lambda calls.
4.  **Function count**: the declaration units of the module (see
    `metamorph.core.tree.iter_declaration_units`).

Comprehensions, conditional expressions and `try`/`except` are not decision
points here, and nested `def` bodies do not raise the nesting depth.
"""

from pathlib import Path
from typing import Optional, Union

import libcst as cst
from pydantic import BaseModel, ConfigDict
from rich import box
from rich.table import Table

from metamorph.core.source_io import SourceFile
from metamorph.core.tree import TreeHandler, iter_declaration_units


class MetricsRecord(BaseModel):
  """Complexity figures of one module."""

  model_config = ConfigDict(frozen=True)

  loc: int
  cc: int
  cog_c: int
  func_count: int


class DeltaRecord(BaseModel):
  """
  Relative change between two MetricsRecords, in percent.

  A field is None when the original figure is zero (no meaningful ratio).
  """

  model_config = ConfigDict(frozen=True)

  loc_delta: Optional[float] = None
  cc_delta: Optional[float] = None
  cog_c_delta: Optional[float] = None


def _match_arms(node: cst.Match) -> int:
  return len(node.cases)


class _CyclomaticVisitor(cst.CSTVisitor):
  """Counts decision points across the whole tree."""

  def __init__(self) -> None:
    self.complexity = 1

  def visit_If(self, node: cst.If) -> Optional[bool]:
    # `elif` is an If nested in the orelse slot, so it is counted here too
    self.complexity += 1
    return True

  def visit_For(self, node: cst.For) -> Optional[bool]:
    self.complexity += 1
    return True

  def visit_While(self, node: cst.While) -> Optional[bool]:
    self.complexity += 1
    return True

  def visit_BooleanOperation(self, node: cst.BooleanOperation) -> Optional[bool]:
    self.complexity += 1
    return True

  def visit_Match(self, node: cst.Match) -> Optional[bool]:
    arms = _match_arms(node)
    self.complexity += arms - 1 if arms else 1
    return True


class _CognitiveVisitor(cst.CSTVisitor):
  """
  Scores control flow by nesting depth.

  Structural constructs are walked by hand so that the depth applies to their
  bodies only, and so that an `elif` is scored at the depth of its chain head.

  Attributes:
      complexity (int): Accumulated score.
      depth (int): Current nesting depth.
  """

  def __init__(self) -> None:
    self.complexity = 0
    self.depth = 0

  def _nested(self, node: cst.CSTNode) -> None:
    self.depth += 1
    node.visit(self)
    self.depth -= 1

  def visit_If(self, node: cst.If) -> Optional[bool]:
    head_depth = self.depth
    branch: Union[cst.If, cst.Else, None] = node
    while isinstance(branch, cst.If):
      self.complexity += 1 + head_depth
      branch.test.visit(self)
      self._nested(branch.body)
      branch = branch.orelse
    if isinstance(branch, cst.Else):
      self.complexity += 1
      self._nested(branch.body)
    return False

  def _loop(self, node: Union[cst.For, cst.While], *headers: cst.CSTNode) -> bool:
    self.complexity += 1 + self.depth
    for header in headers:
      header.visit(self)
    self._nested(node.body)
    if node.orelse is not None:
      self.complexity += 1
      self._nested(node.orelse.body)
    return False

  def visit_For(self, node: cst.For) -> Optional[bool]:
    return self._loop(node, node.target, node.iter)

  def visit_While(self, node: cst.While) -> Optional[bool]:
    return self._loop(node, node.test)

  def visit_Match(self, node: cst.Match) -> Optional[bool]:
    arms = _match_arms(node)
    self.complexity += 1 + self.depth
    if arms:
      self.complexity += arms - 1
    node.subject.visit(self)
    for case in node.cases:
      if case.guard is not None:
        case.guard.visit(self)
      self._nested(case.body)
    return False

  def visit_BooleanOperation(self, node: cst.BooleanOperation) -> Optional[bool]:
    self.complexity += 1
    return True

  def visit_Break(self, node: cst.Break) -> Optional[bool]:
    self.complexity += 1
    return True

  def visit_Continue(self, node: cst.Continue) -> Optional[bool]:
    self.complexity += 1
    return True

  def visit_Expr(self, node: cst.Expr) -> Optional[bool]:
    value = node.value
    if isinstance(value, cst.Call) and isinstance(value.func, cst.Lambda):
      self.complexity += 1
    return True


def count_loc(text: str) -> int:
  """Counts non-blank lines that are not pure comment lines."""
  loc = 0
  for line in text.splitlines():
    stripped = line.strip()
    if stripped and not stripped.startswith("#"):
      loc += 1
  return loc


class ComplexityAnalyzer:
  """
  Computes MetricsRecords for modules, texts and files.

  Attributes:
      tree_handler (TreeHandler): Parser used for texts and files.
  """

  def __init__(self, tree_handler: Optional[TreeHandler] = None, source_file: Optional[SourceFile] = None):
    self.tree_handler = tree_handler or TreeHandler()
    self.source_file = source_file or SourceFile()

  def analyze(self, module: cst.Module) -> MetricsRecord:
    """
    Measures a parsed module.

    Args:
        module (cst.Module): The tree to measure. Its rendered code is used for LOC.

    Returns:
        MetricsRecord: The computed figures.
    """
    cyclomatic = _CyclomaticVisitor()
    module.visit(cyclomatic)
    cognitive = _CognitiveVisitor()
    module.visit(cognitive)

    return MetricsRecord(
      loc=count_loc(module.code),
      cc=cyclomatic.complexity,
      cog_c=cognitive.complexity,
      func_count=sum(1 for _ in iter_declaration_units(module)),
    )

  def analyze_source(self, text: str) -> MetricsRecord:
    """
    Raises:
        ParseError: If the text is not valid Python.
    """
    return self.analyze(self.tree_handler.parse_fragment(text))

  def analyze_file(self, path: Union[str, Path]) -> MetricsRecord:
    """
    Raises:
        SourceAccessError: If the file cannot be read.
        ParseError: If the file is not valid Python.
    """
    return self.analyze_source(self.source_file.read(path))


def _percent_change(old: int, new: int) -> Optional[float]:
  if old == 0:
    return None
  return (new - old) * 100 / old


def compute_delta(original: MetricsRecord, rewritten: MetricsRecord) -> DeltaRecord:
  """
  Relative change from `original` to `rewritten` as `(new - old) * 100 / old`.
  """
  return DeltaRecord(
    loc_delta=_percent_change(original.loc, rewritten.loc),
    cc_delta=_percent_change(original.cc, rewritten.cc),
    cog_c_delta=_percent_change(original.cog_c, rewritten.cog_c),
  )


def functional_equivalence(passed: int, total: int) -> float:
  """Share of passing tests in percent; 0.0 when nothing ran."""
  if total <= 0:
    return 0.0
  return passed * 100 / total


def format_delta(value: Optional[float]) -> str:
  if value is None:
    return "n/a"
  return f"{value:+.2f}%"


def render_report(original: MetricsRecord, rewritten: MetricsRecord, delta: DeltaRecord) -> Table:
  """Builds the console table comparing two measurements."""
  table = Table(title="Code Metrics", box=box.ROUNDED)
  table.add_column("Metric", style="cyan")
  table.add_column("Original", justify="right")
  table.add_column("Rewritten", justify="right")
  table.add_column("Change", justify="right", style="magenta")

  table.add_row("Lines of Code (LOC)", str(original.loc), str(rewritten.loc), format_delta(delta.loc_delta))
  table.add_row("Cyclomatic Complexity (CC)", str(original.cc), str(rewritten.cc), format_delta(delta.cc_delta))
  table.add_row("Cognitive Complexity (CogC)", str(original.cog_c), str(rewritten.cog_c), format_delta(delta.cog_c_delta))
  table.add_row("Functions", str(original.func_count), str(rewritten.func_count), "")
  return table
