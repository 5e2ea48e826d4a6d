"""Whole-file text access for source files."""

from pathlib import Path
from typing import Union

from metamorph.core.errors import SourceAccessError

PathLike = Union[str, Path]


class SourceFile:
  """Reads and writes whole source files as UTF-8 text."""

  @staticmethod
  def read(path: PathLike) -> str:
    try:
      with open(path, "rt", encoding="utf-8") as f:
        return f.read()
    except OSError as e:
      raise SourceAccessError(f"failed to read file {path}: {e}") from e

  @staticmethod
  def write(path: PathLike, content: str) -> None:
    try:
      with open(path, "wt", encoding="utf-8") as f:
        f.write(content)
    except OSError as e:
      raise SourceAccessError(f"failed to write file {path}: {e}") from e
