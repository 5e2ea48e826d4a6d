"""
Rollback Journal.

Every file move made by the promotion pipeline goes through a `RollbackJournal`.
The journal records each move in a JSON file next to the source *before*
performing it and fsyncs the record, so an interrupted run can be compensated
later by replaying the moves in reverse (`RollbackJournal.recover`).

`SourceSwap` builds the compile/test swap on top of it:

1.  original source -> `<source>.backup`
2.  staged rewrite -> original source path
3.  (caller runs the build or test tool)
4.  on exit, whatever happened: moves undone in reverse, leaving the staged
    file at its staged path and the original source in place.
"""

import os
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, Field
from rich.markup import escape

from metamorph.core.errors import TransactionError
from metamorph.utils.console import log_info, log_warning

PathLike = Union[str, Path]


class JournalEntry(BaseModel):
  """One recorded move. Undoing it moves `dst` back to `src`."""

  src: str
  dst: str


class JournalState(BaseModel):
  entries: List[JournalEntry] = Field(default_factory=list)


def _fsync_dir(directory: Path) -> None:
  try:
    fd = os.open(directory, os.O_RDONLY)
  except OSError:
    return
  try:
    os.fsync(fd)
  except OSError:
    pass
  finally:
    os.close(fd)


class RollbackJournal:
  """
  Durable, ordered record of file moves with reverse replay.

  Attributes:
      path (Path): Location of the JSON journal file.
      entries (List[JournalEntry]): Moves performed and not yet undone or committed.
  """

  def __init__(self, path: PathLike, entries: Optional[List[JournalEntry]] = None):
    self.path = Path(path)
    self.entries: List[JournalEntry] = list(entries or [])

  @classmethod
  def load(cls, path: PathLike) -> "RollbackJournal":
    """
    Opens an existing journal file, or an empty journal if none exists.

    Raises:
        TransactionError: If the file exists but cannot be read.
    """
    path = Path(path)
    if not path.exists():
      return cls(path)
    try:
      state = JournalState.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
      raise TransactionError(f"Unreadable journal {path}: {e}") from e
    return cls(path, state.entries)

  @classmethod
  def recover(cls, path: PathLike) -> int:
    """
    Replays a leftover journal from an interrupted run.

    Returns:
        int: Number of moves undone (0 when there was nothing to recover).
    """
    journal = cls.load(path)
    if not journal.entries:
      return 0
    log_warning(f"Found unfinished journal [path]{escape(str(journal.path))}[/path], restoring files")
    return journal.rollback()

  @property
  def pending(self) -> bool:
    return bool(self.entries)

  def move(self, src: PathLike, dst: PathLike) -> None:
    """
    Moves a file and records the move.

    Raises:
        TransactionError: If the move fails. Nothing is recorded in that case.
    """
    entry = JournalEntry(src=str(src), dst=str(dst))
    self.entries.append(entry)
    self._persist()
    try:
      os.replace(src, dst)
    except OSError as e:
      self.entries.pop()
      self._persist()
      raise TransactionError(f"failed to move {src} to {dst}: {e}") from e

  def rollback(self) -> int:
    """
    Undoes recorded moves in reverse order.

    The journal file is rewritten after every undone entry, so a rollback that
    is itself interrupted can be resumed by `recover`. An entry whose `src`
    already exists was undone before (or its move never happened) and is
    dropped without touching either file. An entry whose `dst` is gone cannot
    be undone and is dropped with a warning. Moves that fail to undo stay in
    the journal.

    Returns:
        int: Number of moves undone.

    Raises:
        TransactionError: If at least one move could not be undone.
    """
    undone = 0
    failures: List[str] = []
    stuck: List[JournalEntry] = []
    journal_error: Optional[TransactionError] = None

    while self.entries:
      entry = self.entries[-1]
      src, dst = Path(entry.src), Path(entry.dst)
      if src.exists():
        log_info(f"Already restored: [path]{escape(entry.src)}[/path]")
      elif not dst.exists():
        log_warning(f"Cannot undo move {escape(entry.src)} -> {escape(entry.dst)}: destination is gone")
      else:
        try:
          os.replace(dst, src)
          undone += 1
        except OSError as e:
          failures.append(f"{entry.dst} -> {entry.src}: {e}")
          stuck.insert(0, entry)
      self.entries.pop()
      try:
        self._persist(self.entries + stuck)
      except TransactionError as e:
        journal_error = e

    self.entries = stuck
    if journal_error is not None:
      log_warning(f"Journal not updated during rollback: {escape(str(journal_error))}")

    if failures:
      raise TransactionError("Rollback incomplete: " + "; ".join(failures))
    return undone

  def commit(self) -> None:
    """
    Forgets all recorded moves, keeping their effects.

    The in-memory entries are kept if the journal file cannot be cleared, so
    the caller can still roll back.
    """
    self._persist([])
    self.entries = []

  def _persist(self, entries: Optional[List[JournalEntry]] = None) -> None:
    entries = self.entries if entries is None else entries
    try:
      if not entries:
        if self.path.exists():
          self.path.unlink()
          _fsync_dir(self.path.parent)
        return

      tmp_path = self.path.with_name(self.path.name + ".tmp")
      payload = JournalState(entries=entries).model_dump_json(indent=2)
      with open(tmp_path, "w", encoding="utf-8") as f:
        f.write(payload)
        f.flush()
        os.fsync(f.fileno())
      os.replace(tmp_path, self.path)
      _fsync_dir(self.path.parent)
    except OSError as e:
      raise TransactionError(f"failed to write journal {self.path}: {e}") from e


class SourceSwap:
  """
  Context manager that puts the staged rewrite in place of the original source.

  Usage:
      with SourceSwap(journal, source, staged, backup):
          runner.run(build_cmd)

  On exit the staged file is returned to its staged path and the original is
  restored from the backup, before any exception from the body propagates.
  """

  def __init__(self, journal: RollbackJournal, source: PathLike, staged: PathLike, backup: PathLike):
    self.journal = journal
    self.source = Path(source)
    self.staged = Path(staged)
    self.backup = Path(backup)

  def __enter__(self) -> "SourceSwap":
    if not self.staged.exists():
      raise TransactionError(f"Staged source not found: {self.staged}")
    try:
      if self.source.exists():
        self.journal.move(self.source, self.backup)
      self.journal.move(self.staged, self.source)
    except TransactionError:
      self.journal.rollback()
      raise
    log_info(f"Swapped [path]{escape(str(self.staged))}[/path] into [path]{escape(str(self.source))}[/path]")
    return self

  def __exit__(self, exc_type, exc, tb) -> bool:
    self.journal.rollback()
    log_info(f"Restored original source at [path]{escape(str(self.source))}[/path]")
    return False
