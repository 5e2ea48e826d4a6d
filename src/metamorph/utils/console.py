"""
Console and Logging.

All user-facing output goes through the `metamorph` logger, rendered by a
`rich` handler bound to a swappable Console:

- `console` is a module-level proxy. Code imports it once; `set_console`
  replaces the Console behind it (tests use an in-memory recording console)
  and re-binds the log handler to the new backend.
- `log_info`, `log_success`, `log_warning` and `log_error` prefix an icon and
  allow rich markup. `log_output` prints captured tool output verbatim.

Sub-loggers such as `metamorph.services.retry` propagate to the same handler.
"""

import logging
from typing import Any, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.theme import Theme

LOGGER_NAME = "metamorph"

SUCCESS_LEVEL_NUM = 25
logging.addLevelName(SUCCESS_LEVEL_NUM, "SUCCESS")

_THEME = Theme(
  {
    "logging.level.success": "green",
    "info": "dim cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "green",
    "path": "bold blue",
    "stage": "bold magenta",
    "code": "bold magenta",
  }
)

logger = logging.getLogger(LOGGER_NAME)


def _make_console() -> Console:
  return Console(theme=_THEME)


class _ConsoleProxy:
  """
  Stable handle on the active Rich Console.

  Attribute access falls through to the backend, so `console.print`,
  `console.width` or `console.export_text` behave like the real Console.
  """

  def __init__(self, backend: Optional[Console] = None) -> None:
    self._backend = backend or _make_console()
    self._handler: Optional[RichHandler] = None
    self._bind_logger()

  @property
  def backend(self) -> Console:
    return self._backend

  def swap(self, backend: Console) -> None:
    self._backend = backend
    self._bind_logger()

  def _bind_logger(self) -> None:
    if self._handler is not None:
      logger.removeHandler(self._handler)
    self._handler = RichHandler(
      console=self._backend,
      show_time=False,
      show_path=False,
      markup=True,
      rich_tracebacks=True,
    )
    logger.addHandler(self._handler)
    logger.setLevel(logging.INFO)

  def print(self, *args: Any, **kwargs: Any) -> None:
    self._backend.print(*args, **kwargs)

  def __getattr__(self, name: str) -> Any:
    return getattr(self._backend, name)


console = _ConsoleProxy()


def set_console(new_console: Console) -> None:
  """
  Routes console output and log records to another Console.

  Args:
      new_console (Console): E.g. `Console(file=io.StringIO(), record=True)`.
  """
  console.swap(new_console)


def reset_console() -> None:
  console.swap(_make_console())


def get_console() -> Console:
  return console.backend


def _emit(level: int, icon: str, msg: str) -> None:
  logger.log(level, f"{icon} {msg}", extra={"markup": True})


def log_info(msg: str) -> None:
  """
  Logs progress information. `msg` may contain markup such as `[path]...[/path]`.
  """
  _emit(logging.INFO, "ℹ️ ", msg)


def log_success(msg: str) -> None:
  _emit(SUCCESS_LEVEL_NUM, "✅", msg)


def log_warning(msg: str) -> None:
  _emit(logging.WARNING, "⚠️ ", msg)


def log_error(msg: str) -> None:
  _emit(logging.ERROR, "❌", msg)


def log_output(label: str, text: str) -> None:
  """
  Logs captured tool output (build or test streams) with markup escaped.

  Blank output is skipped.
  """
  if text.strip():
    logger.info(f"{label}:\n{escape(text.rstrip())}", extra={"markup": True})
