"""
External Tool Runner.

Runs the build and test tools as subprocesses from argv templates. Templates
may use the placeholders `{python}` (the running interpreter), `{target}`,
`{output}` and `{timeout}`.
"""

import re
import subprocess
import sys
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from rich.markup import escape

from metamorph.utils.console import log_info

_SUMMARY_RE = re.compile(r"(\d+) (passed|failed|errors?)\b")


@dataclass
class CommandResult:
  """Outcome of one tool invocation."""

  argv: List[str]
  returncode: Optional[int]
  stdout: str = ""
  stderr: str = ""
  timed_out: bool = False
  duration: float = 0.0

  @property
  def ok(self) -> bool:
    return not self.timed_out and self.returncode == 0

  def describe(self) -> str:
    if self.timed_out:
      return f"'{' '.join(self.argv)}' timed out after {self.duration:.1f}s"
    return f"'{' '.join(self.argv)}' exited with status {self.returncode}"


def format_command(template: Sequence[str], **values: object) -> List[str]:
  """
  Fills placeholders in an argv template.

  Raises:
      ValueError: If the template references an unknown placeholder.
  """
  context: Dict[str, object] = {"python": sys.executable, **values}
  try:
    return [part.format(**context) for part in template]
  except (KeyError, IndexError) as e:
    raise ValueError(f"Unknown placeholder {e} in command template {list(template)}") from e


class CommandRunner:
  """Thin wrapper around `subprocess.run` that never raises on tool failure."""

  def run(self, argv: Sequence[str], cwd: Optional[str] = None, timeout: Optional[float] = None) -> CommandResult:
    argv = list(argv)
    log_info(f"Running [code]{escape(' '.join(argv))}[/code]")
    start = time.monotonic()
    try:
      proc = subprocess.run(argv, cwd=cwd, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired as e:
      return CommandResult(
        argv=argv,
        returncode=None,
        stdout=_decode(e.stdout),
        stderr=_decode(e.stderr),
        timed_out=True,
        duration=time.monotonic() - start,
      )
    except OSError as e:
      return CommandResult(argv=argv, returncode=None, stderr=str(e), duration=time.monotonic() - start)

    return CommandResult(
      argv=argv,
      returncode=proc.returncode,
      stdout=proc.stdout or "",
      stderr=proc.stderr or "",
      duration=time.monotonic() - start,
    )


def _decode(stream) -> str:
  if stream is None:
    return ""
  if isinstance(stream, bytes):
    return stream.decode("utf-8", errors="replace")
  return stream


def parse_pytest_summary(output: str) -> Optional[Tuple[int, int]]:
  """
  Extracts (passed, total) from a pytest summary line such as
  `3 passed, 1 failed in 0.12s`.

  Returns:
      Optional[Tuple[int, int]]: None when no summary is present.
  """
  counts = {"passed": 0, "failed": 0, "error": 0}
  found = False
  for line in output.splitlines():
    matches = _SUMMARY_RE.findall(line)
    if not matches:
      continue
    found = True
    counts = {"passed": 0, "failed": 0, "error": 0}
    for number, word in matches:
      key = "error" if word.startswith("error") else word
      counts[key] += int(number)

  if not found:
    return None
  return counts["passed"], counts["passed"] + counts["failed"] + counts["error"]
