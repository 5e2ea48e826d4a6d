from .metrics import handle_metrics
from .promote import handle_promote
from .rewrite import handle_rewrite, write_trace

__all__ = [
  "handle_metrics",
  "handle_promote",
  "handle_rewrite",
  "write_trace",
]
