"""
Orchestration Engine for Function Rewrites.

This module provides the `RewriteEngine`, the driver that turns one source file
into its rewritten text:

1.  **Read** the file (the only step allowed to raise, via `SourceAccessError`).
2.  **Parse** it into a LibCST module.
3.  **Strategy**: run the selected rewrite strategy over the module.
4.  **Render** the resulting module back to text.

Every other failure is expressed as annotated text: the original source with a
trailing diagnostic comment. Downstream tooling therefore always receives
syntactically recognisable Python, and "tried, nothing to do" is
distinguishable from "never tried".
"""

from pathlib import Path
from typing import Optional, Union

from rich.markup import escape

from metamorph.config import StrategySpec
from metamorph.core.errors import ParseError, RenderError, StrategyError
from metamorph.core.source_io import SourceFile
from metamorph.core.strategies import RewriteStrategy, build_strategy
from metamorph.core.tracer import get_tracer
from metamorph.core.tree import TreeHandler, as_comment
from metamorph.enums import StrategyKind
from metamorph.utils.console import log_info, log_success, log_warning

PARSE_FAILURE = "Failed to parse code for rewriting: {error}"
STRATEGY_FAILURE = "Error during rewriting: {error}"
NO_CHANGES = "No changes made by Metamorph"
RENDER_FAILURE = "Failed to print rewritten code: {error}"
NOTHING_TO_DO = "Processed by Metamorph (no changes needed)"


def annotate_text(content: str, message: str) -> str:
  """
  Appends a diagnostic comment to the end of a source text.

  Args:
      content (str): The original source.
      message (str): Diagnostic message (flattened to one comment line).

  Returns:
      str: The source followed by a blank line and the comment.
  """
  return f"{content}\n\n{as_comment(message)}\n"


class RewriteEngine:
  """
  Drives a single rewrite: read, parse, strategy, render.

  Attributes:
      tree_handler (TreeHandler): Parser/renderer shared with the strategy.
      strategy (RewriteStrategy): The active rewrite strategy.
  """

  def __init__(
    self,
    strategy: Optional[RewriteStrategy] = None,
    tree_handler: Optional[TreeHandler] = None,
    source_file: Optional[SourceFile] = None,
  ):
    """
    Initializes the Engine.

    Args:
        strategy (RewriteStrategy, optional): Strategy to apply. Defaults to annotation.
        tree_handler (TreeHandler, optional): Shared handler. A new one is created if None.
        source_file (SourceFile, optional): File access helper.
    """
    self.tree_handler = tree_handler or TreeHandler()
    self.source_file = source_file or SourceFile()
    self.strategy = strategy or build_strategy(StrategySpec(kind=StrategyKind.ANNOTATE), self.tree_handler)

  @classmethod
  def from_spec(cls, spec: StrategySpec, **kwargs) -> "RewriteEngine":
    """
    Builds an engine whose strategy is dispatched from a spec.

    Args:
        spec (StrategySpec): Strategy selection.
        **kwargs: Forwarded to `build_strategy` (e.g. `service`, `tracer`).
    """
    tree_handler = TreeHandler()
    return cls(strategy=build_strategy(spec, tree_handler, **kwargs), tree_handler=tree_handler)

  def set_strategy(self, strategy: RewriteStrategy) -> None:
    self.strategy = strategy

  def rewrite_file(self, path: Union[str, Path]) -> str:
    """
    Reads a file and rewrites its content.

    Raises:
        SourceAccessError: If the file cannot be read.
    """
    return self.rewrite_content(self.source_file.read(path))

  def rewrite_content(self, content: str) -> str:
    """
    Rewrites Python source text using the current strategy.

    Args:
        content (str): The original source.

    Returns:
        str: The rewritten source, or the original with a diagnostic comment.
    """
    with get_tracer().phase("Rewrite", type(self.strategy).__name__):
      return self._rewrite(content)

  def _rewrite(self, content: str) -> str:
    tracer = get_tracer()

    try:
      module = self.tree_handler.parse(content)
    except ParseError as e:
      log_warning(f"Failed to parse code for rewriting: {escape(str(e))}")
      tracer.log_warning(f"Parse failure: {e}")
      return annotate_text(content, PARSE_FAILURE.format(error=e))

    log_info("Applying rewriting strategy to the code...")
    try:
      outcome = self.strategy.rewrite(module)
    except StrategyError as e:
      log_warning(f"Error during rewriting: {escape(str(e))}")
      tracer.log_warning(f"Strategy failure: {e}")
      return annotate_text(content, STRATEGY_FAILURE.format(error=e))

    if not outcome.changed:
      log_warning("No changes were made during rewriting")
      return annotate_text(content, NO_CHANGES)

    log_info("Converting the tree back to source...")
    try:
      result = self.tree_handler.render(outcome.tree)
    except RenderError as e:
      log_warning(f"Failed to print rewritten code: {escape(str(e))}")
      tracer.log_warning(f"Render failure: {e}")
      return annotate_text(content, RENDER_FAILURE.format(error=e))

    if result == content:
      log_warning("Rendered output matches original content. Marking it as processed anyway.")
      return annotate_text(content, NOTHING_TO_DO)

    log_success("Successfully rewrote code.")
    return result

  def save(self, path: Union[str, Path], content: str) -> None:
    """Writes rewritten content to disk."""
    self.source_file.write(path, content)
