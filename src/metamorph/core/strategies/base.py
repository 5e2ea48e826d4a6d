"""
Rewrite Strategy contract.

A strategy receives a whole parsed module and returns a `RewriteOutcome`.
LibCST trees are immutable, so the "mutated" tree is the returned module; the
input module is left untouched and can be discarded by the caller.
"""

import abc
from dataclasses import dataclass

import libcst as cst


@dataclass(frozen=True)
class RewriteOutcome:
  """
  Result of running a strategy over a module.

  Attributes:
      changed (bool): True if anything was rewritten or marked as processed.
      tree (cst.Module): The resulting module (the input module when nothing changed).
  """

  changed: bool
  tree: cst.Module


class RewriteStrategy(abc.ABC):
  """
  Base class for rewrite strategies.
  """

  @abc.abstractmethod
  def rewrite(self, module: cst.Module) -> RewriteOutcome:
    """
    Rewrites a module.

    Args:
        module (cst.Module): The parsed program.

    Returns:
        RewriteOutcome: The changed flag and resulting tree.

    Raises:
        StrategyError: Only for handler-level faults (source extraction failure).
    """
