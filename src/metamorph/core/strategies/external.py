"""
External Transformation Strategy.

Rewrites function bodies one at a time through an external transformation
service. For each declaration unit (module-level function, or method of a
module-level class), in source order:

1.  Sub-render the function (without the comment lines above it).
2.  Ask the service for a rewritten version (under the retry policy).
3.  If the answer equals the input, mark the function as analyzed and unchanged.
4.  Otherwise re-parse the answer as a standalone fragment and locate a function
    in it. Unparsable answers, answers without a function, and answers that
    alter the signature are rejected: the original body stays and a diagnostic
    comment is attached.
5.  Accepted answers contribute their *body only*; the name, parameters,
    annotations and `async` flag always come from the original definition.

A failure on one function never stops the others. Only a failure to extract a
function's own source (a tree-handler fault) aborts the strategy.
"""

from typing import List, Optional, Tuple

import libcst as cst
from rich.markup import escape

from metamorph.config import DEFAULT_INSTRUCTIONS
from metamorph.core.errors import ParseError, RenderError, ServiceError, StrategyError
from metamorph.core.strategies.base import RewriteOutcome, RewriteStrategy
from metamorph.core.tracer import TraceEventType, TraceLogger, get_tracer
from metamorph.core.tree import TreeHandler, add_leading_comment, find_first_function, has_body
from metamorph.services.base import TransformationRequest, TransformationService
from metamorph.utils.console import log_info, log_success, log_warning

UNCHANGED_SUFFIX = " (analyzed but no changes required)"
PARSE_FAILURE_COMMENT = "# Failed to parse rewritten function code: {error}"
MISSING_FUNCTION_COMMENT = "# Failed to find function in the rewritten code"
SIGNATURE_MISMATCH_COMMENT = "# Rewritten function changed its signature; body not replaced"
SERVICE_FAILURE_COMMENT = "# Transformation service failed: {error}"


class ExternalTransformStrategy(RewriteStrategy):
  """
  Splices service-rewritten function bodies into the module.

  Attributes:
      tree_handler (TreeHandler): Shared handler used for sub-renders and fragment parsing.
      service (TransformationService): The backend answering transformation requests.
      comment (str): Marker attached to successfully rewritten functions.
      instructions (str): Natural-language instructions sent with every function.
  """

  def __init__(
    self,
    tree_handler: TreeHandler,
    service: TransformationService,
    comment: str,
    instructions: str = DEFAULT_INSTRUCTIONS,
    tracer: Optional[TraceLogger] = None,
  ):
    self.tree_handler = tree_handler
    self.service = service
    self.comment = comment
    self.instructions = instructions
    self.tracer = tracer
    self._encountered = 0

  def rewrite(self, module: cst.Module) -> RewriteOutcome:
    self._encountered = 0
    changed = False
    new_body: List[cst.CSTNode] = []

    for stmt in module.body:
      if isinstance(stmt, cst.FunctionDef):
        stmt, did_change = self._process(stmt)
        changed = changed or did_change
      elif isinstance(stmt, cst.ClassDef) and isinstance(stmt.body, cst.IndentedBlock):
        members = []
        for member in stmt.body.body:
          if isinstance(member, cst.FunctionDef):
            member, did_change = self._process(member)
            changed = changed or did_change
          members.append(member)
        stmt = stmt.with_changes(body=stmt.body.with_changes(body=members))
      new_body.append(stmt)

    log_info(f"Rewrite summary: found {self._encountered} functions, changed: {changed}")
    if not changed:
      return RewriteOutcome(changed=False, tree=module)
    return RewriteOutcome(changed=True, tree=module.with_changes(body=new_body))

  def _process(self, func: cst.FunctionDef) -> Tuple[cst.FunctionDef, bool]:
    """
    Runs one function through the service.

    Returns:
        Tuple[cst.FunctionDef, bool]: The (possibly marked or rewritten) function and
        whether it counts as processed.

    Raises:
        StrategyError: If the function's own source cannot be extracted.
    """
    tracer = self.tracer or get_tracer()
    name = func.name.value
    self._encountered += 1

    if not has_body(func):
      log_info(f"Skipping function {name}: no body")
      tracer.log_function(TraceEventType.FUNCTION_SKIPPED, name, "declaration stub")
      return func, False

    log_info(f"Processing function: [code]{name}[/code]")
    try:
      source = self.tree_handler.render_node(func.with_changes(leading_lines=[]))
      signature = self.tree_handler.signature_of(func)
    except RenderError as e:
      raise StrategyError(f"failed to extract function source for {name}: {e}") from e

    try:
      answer = self.service.transform(TransformationRequest(source=source, instructions=self.instructions))
    except ServiceError as e:
      return self._reject(func, SERVICE_FAILURE_COMMENT.format(error=e), f"service failed: {e}"), False

    if answer.strip() == source.strip():
      log_info(f"Service didn't make any changes to function {name}")
      tracer.log_function(TraceEventType.FUNCTION_UNCHANGED, name)
      return add_leading_comment(func, self.comment + UNCHANGED_SUFFIX), True

    log_info(f"Got rewritten source for {name} ({len(answer)} bytes)")

    try:
      fragment = self.tree_handler.parse_fragment(answer)
    except ParseError as e:
      return self._reject(func, PARSE_FAILURE_COMMENT.format(error=e), f"unparsable answer: {e}"), False

    replacement = find_first_function(fragment)
    if replacement is None:
      return self._reject(func, MISSING_FUNCTION_COMMENT, "no function in answer"), False

    try:
      new_signature = self.tree_handler.signature_of(replacement)
    except RenderError as e:
      return self._reject(func, PARSE_FAILURE_COMMENT.format(error=e), f"unreadable signature: {e}"), False

    if new_signature != signature:
      detail = f"expected '{signature}', got '{new_signature}'"
      return self._reject(func, SIGNATURE_MISMATCH_COMMENT, detail), False

    log_success(f"Successfully rewrote function: {name}")
    tracer.log_function(TraceEventType.FUNCTION_REWRITTEN, name)
    return add_leading_comment(func.with_changes(body=replacement.body), self.comment), True

  def _reject(self, func: cst.FunctionDef, comment: str, detail: str) -> cst.FunctionDef:
    name = func.name.value
    log_warning(f"Keeping original body of {name}: {escape(detail)}")
    (self.tracer or get_tracer()).log_function(TraceEventType.FUNCTION_REJECTED, name, detail)
    return add_leading_comment(func, comment)
