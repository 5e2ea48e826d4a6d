"""
CLI Command Handlers Facade.

Re-exports the handlers from `metamorph.cli.handlers` so the dispatcher (and
test patches) have a single import location.
"""

from metamorph.cli.handlers.metrics import handle_metrics
from metamorph.cli.handlers.promote import handle_promote
from metamorph.cli.handlers.rewrite import handle_rewrite

__all__ = [
  "handle_metrics",
  "handle_promote",
  "handle_rewrite",
]
