"""
Annotation Strategy.

Attaches a fixed marker comment above every declaration unit of the module:
module-level functions and methods of module-level classes. Closures and
functions under conditionals are left alone, so the marker count always
equals the module's function count as reported by the complexity analyzer.
Used as a no-op baseline: the program's behaviour is unchanged, but the
pipeline can be exercised end to end.
"""

from typing import Optional, Set

import libcst as cst

from metamorph.config import DEFAULT_COMMENT
from metamorph.core.strategies.base import RewriteOutcome, RewriteStrategy
from metamorph.core.tracer import TraceEventType, TraceLogger, get_tracer
from metamorph.core.tree import add_leading_comment, iter_declaration_units


class _MarkerTransformer(cst.CSTTransformer):
  """Appends the marker comment to each targeted FunctionDef on the way out."""

  def __init__(self, comment: str, targets: Set[cst.FunctionDef], tracer: TraceLogger):
    self.comment = comment
    self.targets = targets
    self.tracer = tracer
    self.count = 0

  def visit_FunctionDef(self, node: cst.FunctionDef) -> Optional[bool]:
    # Function bodies never contain declaration units.
    return False

  def leave_FunctionDef(self, original_node: cst.FunctionDef, updated_node: cst.FunctionDef) -> cst.FunctionDef:
    if original_node not in self.targets:
      return updated_node
    self.count += 1
    self.tracer.log_function(TraceEventType.FUNCTION_REWRITTEN, original_node.name.value, "annotated")
    return add_leading_comment(updated_node, self.comment)


class AnnotateStrategy(RewriteStrategy):
  """
  Marks every declaration unit with a comment.

  Attributes:
      comment (str): The marker comment text.
  """

  def __init__(self, comment: str = DEFAULT_COMMENT, tracer: Optional[TraceLogger] = None):
    self.comment = comment
    self.tracer = tracer

  def rewrite(self, module: cst.Module) -> RewriteOutcome:
    targets = set(iter_declaration_units(module))
    transformer = _MarkerTransformer(self.comment, targets, self.tracer or get_tracer())
    tree = module.visit(transformer)
    return RewriteOutcome(changed=transformer.count > 0, tree=tree)
