"""
Tests for configuration loading and derived paths.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from metamorph.config import (
  DEFAULT_COMMENT,
  PipelineConfig,
  ServiceConfig,
  StrategySpec,
  parse_cli_key_values,
  parse_duration,
)
from metamorph.enums import ServiceBackend, StrategyKind


def test_derived_paths():
  config = PipelineConfig(source_path=Path("pkg/logic.py"), binary_dir=Path("out/tool"))
  assert config.staged_path == Path("pkg/logic.py.rewritten.py")
  assert config.source_backup_path == Path("pkg/logic.py.backup")
  assert config.journal_path == Path("pkg/logic.py.journal.json")
  assert config.binary_path == Path("out/tool/tool")
  assert config.new_binary_path == Path("out/tool/tool.new")
  assert config.binary_backup_path == Path("out/tool/tool.backup")
  assert config.effective_build_target == "pkg"


def test_defaults():
  config = PipelineConfig(source_path=Path("a.py"))
  assert config.test_timeout == 30.0
  assert config.keep_rewritten is True
  assert config.force_rewrite is False
  assert config.dry_run is False
  assert config.strategy.kind == StrategyKind.EXTERNAL


@pytest.mark.parametrize("value, seconds", [(30, 30.0), ("45", 45.0), ("30s", 30.0), ("500ms", 0.5), ("2m", 120.0)])
def test_parse_duration(value, seconds):
  assert parse_duration(value) == seconds


@pytest.mark.parametrize("value", ["soon", "-5", 0])
def test_parse_duration_rejects(value):
  with pytest.raises(ValueError):
    parse_duration(value)


def test_invalid_timeout_fails_validation():
  with pytest.raises(ValidationError):
    PipelineConfig(source_path=Path("a.py"), test_timeout="forever")


def test_markers():
  assert StrategySpec(kind=StrategyKind.ANNOTATE).marker == DEFAULT_COMMENT
  assert StrategySpec().marker == "# This function was rewritten by Gemini"
  anthropic = StrategySpec(service=ServiceConfig(backend=ServiceBackend.ANTHROPIC))
  assert anthropic.marker == "# This function was rewritten by Anthropic"
  assert StrategySpec(comment="# custom").marker == "# custom"


def test_service_defaults_per_backend():
  assert ServiceConfig().effective_model == "gemini-1.5-flash"
  assert ServiceConfig().effective_api_key_env == "GEMINI_API_KEY"
  anthropic = ServiceConfig(backend="anthropic")
  assert anthropic.effective_api_key_env == "ANTHROPIC_API_KEY"
  assert ServiceConfig(model="gemini-2.0-flash").effective_model == "gemini-2.0-flash"


def test_load_from_pyproject(tmp_path):
  (tmp_path / "pyproject.toml").write_text(
    """
[tool.metamorph]
binary_dir = "dist/app"
test_timeout = "1m"
keep_rewritten = false

[tool.metamorph.strategy]
kind = "annotate"

[tool.metamorph.strategy.service]
backend = "anthropic"
""",
    encoding="utf-8",
  )
  nested = tmp_path / "src"
  nested.mkdir()

  config = PipelineConfig.load(nested / "logic.py", search_path=nested)

  assert config.binary_dir == (tmp_path / "dist" / "app").resolve()
  assert config.test_timeout == 60.0
  assert config.keep_rewritten is False
  assert config.strategy.kind == StrategyKind.ANNOTATE
  assert config.strategy.service.backend == ServiceBackend.ANTHROPIC


def test_explicit_overrides_win(tmp_path):
  (tmp_path / "pyproject.toml").write_text('[tool.metamorph]\ndry_run = false\ntest_timeout = 10\n', encoding="utf-8")

  config = PipelineConfig.load(
    tmp_path / "logic.py",
    search_path=tmp_path,
    dry_run=True,
    test_timeout=None,
    strategy_kind="annotate",
    backend="anthropic",
    comment="# hi",
  )

  assert config.dry_run is True
  assert config.test_timeout == 10.0
  assert config.strategy.kind == StrategyKind.ANNOTATE
  assert config.strategy.service.backend == ServiceBackend.ANTHROPIC
  assert config.strategy.marker == "# hi"


def test_load_without_pyproject(tmp_path):
  config = PipelineConfig.load(tmp_path / "x.py", search_path=tmp_path)
  assert config.source_path == tmp_path / "x.py"


def test_parse_cli_key_values():
  parsed = parse_cli_key_values(["dry_run=true", "test_timeout=60", "ratio=0.5", "binary_dir=out/x", "junk"])
  assert parsed == {"dry_run": True, "test_timeout": 60, "ratio": 0.5, "binary_dir": "out/x"}
  assert parse_cli_key_values(None) == {}
