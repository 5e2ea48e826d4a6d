"""
Tests for the Rollback Journal and the compile/test Source Swap.
"""

import json
from pathlib import Path

import pytest

from metamorph.core.errors import TransactionError
from metamorph.pipeline.journal import RollbackJournal, SourceSwap


def make_files(tmp_path):
  source = tmp_path / "logic.py"
  staged = tmp_path / "logic.py.rewritten.py"
  backup = tmp_path / "logic.py.backup"
  source.write_text("ORIGINAL\n", encoding="utf-8")
  staged.write_text("REWRITTEN\n", encoding="utf-8")
  return source, staged, backup


def test_move_is_persisted_before_commit(tmp_path):
  a = tmp_path / "a"
  b = tmp_path / "b"
  a.write_text("x")
  journal_path = tmp_path / "j.json"

  journal = RollbackJournal(journal_path)
  journal.move(a, b)

  assert b.exists() and not a.exists()
  data = json.loads(journal_path.read_text())
  assert data["entries"] == [{"src": str(a), "dst": str(b)}]

  journal.commit()
  assert not journal_path.exists()
  assert b.exists()


def test_rollback_reverses_moves_in_order(tmp_path):
  source, staged, backup = make_files(tmp_path)
  journal = RollbackJournal(tmp_path / "j.json")
  journal.move(source, backup)
  journal.move(staged, source)

  assert journal.rollback() == 2
  assert source.read_text() == "ORIGINAL\n"
  assert staged.read_text() == "REWRITTEN\n"
  assert not backup.exists()
  assert not journal.pending


def test_failed_move_is_not_recorded(tmp_path):
  journal = RollbackJournal(tmp_path / "j.json")
  with pytest.raises(TransactionError):
    journal.move(tmp_path / "missing", tmp_path / "elsewhere")
  assert journal.entries == []
  assert not (tmp_path / "j.json").exists()


def test_recover_replays_leftover_journal(tmp_path):
  source, staged, backup = make_files(tmp_path)
  journal_path = tmp_path / "logic.py.journal.json"
  journal = RollbackJournal(journal_path)
  journal.move(source, backup)
  journal.move(staged, source)
  # Simulate a crash: the in-memory journal is gone, the file remains.
  del journal

  assert RollbackJournal.recover(journal_path) == 2
  assert source.read_text() == "ORIGINAL\n"
  assert staged.read_text() == "REWRITTEN\n"
  assert not journal_path.exists()


def test_recover_without_journal(tmp_path):
  assert RollbackJournal.recover(tmp_path / "none.json") == 0


def test_unreadable_journal(tmp_path):
  path = tmp_path / "j.json"
  path.write_text("{not json")
  with pytest.raises(TransactionError):
    RollbackJournal.load(path)


def test_source_swap_restores_on_success(tmp_path):
  source, staged, backup = make_files(tmp_path)
  journal = RollbackJournal(tmp_path / "j.json")

  with SourceSwap(journal, source, staged, backup):
    assert source.read_text() == "REWRITTEN\n"
    assert backup.read_text() == "ORIGINAL\n"
    assert not staged.exists()

  assert source.read_text() == "ORIGINAL\n"
  assert staged.read_text() == "REWRITTEN\n"
  assert not backup.exists()
  assert not (tmp_path / "j.json").exists()


def test_source_swap_restores_before_error_propagates(tmp_path):
  source, staged, backup = make_files(tmp_path)
  journal = RollbackJournal(tmp_path / "j.json")

  with pytest.raises(RuntimeError):
    with SourceSwap(journal, source, staged, backup):
      raise RuntimeError("build exploded")

  assert source.read_text() == "ORIGINAL\n"
  assert staged.read_text() == "REWRITTEN\n"


def test_source_swap_requires_staged_file(tmp_path):
  source, staged, backup = make_files(tmp_path)
  staged.unlink()
  with pytest.raises(TransactionError):
    with SourceSwap(RollbackJournal(tmp_path / "j.json"), source, staged, backup):
      pass
  assert source.read_text() == "ORIGINAL\n"


@pytest.mark.parametrize("crash_on_write", [1, 2])
def test_rollback_interrupted_midway_is_resumable(tmp_path, crash_on_write):
  source, staged, backup = make_files(tmp_path)
  journal_path = tmp_path / "logic.py.journal.json"
  journal = RollbackJournal(journal_path)
  journal.move(source, backup)
  journal.move(staged, source)

  real_persist = journal._persist
  writes = []

  def dying_persist(entries=None):
    writes.append(entries)
    if len(writes) == crash_on_write:
      raise SystemExit("killed")
    real_persist(entries)

  journal._persist = dying_persist
  with pytest.raises(SystemExit):
    journal.rollback()

  RollbackJournal.recover(journal_path)

  assert source.read_text() == "ORIGINAL\n"
  assert staged.read_text() == "REWRITTEN\n"
  assert not backup.exists()
  assert not journal_path.exists()


def test_recover_ignores_move_that_never_happened(tmp_path):
  source, staged, backup = make_files(tmp_path)
  backup.write_text("STALE\n", encoding="utf-8")
  journal_path = tmp_path / "logic.py.journal.json"
  # The entry was written, then the process died before the rename.
  journal_path.write_text(json.dumps({"entries": [{"src": str(source), "dst": str(backup)}]}), encoding="utf-8")

  assert RollbackJournal.recover(journal_path) == 0
  assert source.read_text() == "ORIGINAL\n"
  assert not journal_path.exists()


def test_commit_failure_keeps_entries(tmp_path, monkeypatch):
  a = tmp_path / "a"
  a.write_text("x")
  journal = RollbackJournal(tmp_path / "j.json")
  journal.move(a, tmp_path / "b")

  def read_only(path):
    raise OSError("read-only file system")

  monkeypatch.setattr(Path, "unlink", read_only)
  with pytest.raises(TransactionError):
    journal.commit()
  assert journal.pending


def test_rollback_restores_files_when_journal_is_unwritable(tmp_path):
  source, staged, backup = make_files(tmp_path)
  journal = RollbackJournal(tmp_path / "j.json")
  journal.move(source, backup)
  journal.move(staged, source)

  def read_only_persist(entries=None):
    raise TransactionError("failed to write journal: read-only file system")

  journal._persist = read_only_persist

  assert journal.rollback() == 2
  assert source.read_text() == "ORIGINAL\n"
  assert staged.read_text() == "REWRITTEN\n"
  assert journal.entries == []
