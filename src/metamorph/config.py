"""
Runtime Configuration Store.

Pydantic models for the rewrite strategy, the transformation service and the
promotion pipeline. `PipelineConfig.load` reads `[tool.metamorph]` from the
nearest `pyproject.toml` and lets explicit (CLI) arguments override it.
"""

import re
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator
from rich.markup import escape

from metamorph.enums import ServiceBackend, StrategyKind
from metamorph.utils.console import log_warning

if sys.version_info >= (3, 11):
  import tomllib
else:
  import tomli as tomllib

DEFAULT_COMMENT = "# This function was rewritten by Metamorph"

DEFAULT_INSTRUCTIONS = """You are an expert Python programmer tasked with refactoring a Python function.

I will provide you with a Python function that needs to be refactored to improve its:
- Readability
- Performance
- Error handling
- Maintainability

CRITICAL REQUIREMENTS:
1. Return ONLY the complete function code with NO explanations before or after
2. The function signature must remain exactly the same (name, parameters, annotations, return type)
3. Your response must be valid Python code that can be parsed on its own
4. Do not change the overall behavior or functionality of the function
5. Do not add imports; only use names already available to the original function"""

_BACKEND_DEFAULTS: Dict[ServiceBackend, Tuple[str, str]] = {
  ServiceBackend.GEMINI: ("gemini-1.5-flash", "GEMINI_API_KEY"),
  ServiceBackend.ANTHROPIC: ("claude-3-5-haiku-latest", "ANTHROPIC_API_KEY"),
}

DEFAULT_BUILD_COMMAND = ["{python}", "-m", "zipapp", "{target}", "-o", "{output}"]
DEFAULT_TEST_COMMAND = ["{python}", "-m", "pytest", "-q", "{target}"]

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Union[str, int, float]) -> float:
  """
  Converts a duration into seconds.

  Accepts plain numbers (seconds) and strings such as "30s", "500ms", "2m".

  Raises:
      ValueError: If the value is negative or not understood.
  """
  if isinstance(value, (int, float)):
    seconds = float(value)
  else:
    match = _DURATION_RE.match(value)
    if not match:
      raise ValueError(f"Invalid duration: '{value}'. Expected e.g. 30, '30s', '2m'.")
    seconds = float(match.group(1)) * _DURATION_UNITS[match.group(2) or "s"]
  if seconds <= 0:
    raise ValueError(f"Duration must be positive, got {value!r}")
  return seconds


class ServiceConfig(BaseModel):
  """
  Settings for one transformation service backend.
  """

  backend: ServiceBackend = Field(ServiceBackend.GEMINI, description="Which service answers transformation requests.")
  model: Optional[str] = Field(None, description="Model identifier. Defaults per backend.")
  api_key_env: Optional[str] = Field(None, description="Environment variable holding the API key.")
  temperature: float = Field(0.2, description="Sampling temperature; low values keep code focused.")
  top_k: int = 64
  top_p: float = 0.95
  max_output_tokens: int = 8192
  max_attempts: int = Field(5, ge=1, description="Attempts per function when rate limited.")
  max_backoff: float = Field(60.0, gt=0, description="Upper bound in seconds for one backoff wait.")
  instructions: str = Field(DEFAULT_INSTRUCTIONS, description="Natural-language transformation instructions.")

  @property
  def effective_model(self) -> str:
    return self.model or _BACKEND_DEFAULTS[self.backend][0]

  @property
  def effective_api_key_env(self) -> str:
    return self.api_key_env or _BACKEND_DEFAULTS[self.backend][1]


class StrategySpec(BaseModel):
  """
  Tagged selection of a rewrite strategy.

  `kind` is the tag; `service` only applies to the EXTERNAL variant.
  """

  kind: StrategyKind = StrategyKind.EXTERNAL
  comment: Optional[str] = Field(None, description="Marker comment attached to processed functions.")
  service: ServiceConfig = Field(default_factory=ServiceConfig)

  @property
  def marker(self) -> str:
    if self.comment:
      return self.comment
    if self.kind == StrategyKind.EXTERNAL:
      return f"# This function was rewritten by {self.service.backend.value.capitalize()}"
    return DEFAULT_COMMENT


class PipelineConfig(BaseModel):
  """
  Working set of one promotion run.

  Derived paths follow the on-disk contract shared between runs:
  `<source>.rewritten.py` (staged source), `<source>.backup`,
  `<binary_dir>/<name>`, `<binary_dir>/<name>.new` and `<binary_dir>/<name>.backup`
  where `<name>` is the base name of `binary_dir`.
  """

  source_path: Path = Field(..., description="Source file to rewrite.")
  output_path: Optional[Path] = Field(None, description="Staged rewritten source (default <source>.rewritten.py).")
  build_target: Optional[str] = Field(None, description="Target handed to the build tool (default: source directory).")
  test_target: Optional[str] = Field(None, description="Target handed to the test tool (default: source directory).")
  binary_dir: Path = Field(Path("build"), description="Directory holding the deployed binary.")
  build_command: List[str] = Field(default_factory=lambda: list(DEFAULT_BUILD_COMMAND))
  test_command: List[str] = Field(default_factory=lambda: list(DEFAULT_TEST_COMMAND))
  test_timeout: float = Field(30.0, description="Seconds before the test run is killed.")
  keep_rewritten: bool = True
  force_rewrite: bool = False
  dry_run: bool = False
  strategy: StrategySpec = Field(default_factory=StrategySpec)

  @field_validator("test_timeout", mode="before")
  @classmethod
  def validate_timeout(cls, v: Any) -> float:
    """Accepts seconds or duration strings ("30s", "2m")."""
    return parse_duration(v)

  @property
  def staged_path(self) -> Path:
    return self.output_path or Path(f"{self.source_path}.rewritten.py")

  @property
  def source_backup_path(self) -> Path:
    return Path(f"{self.source_path}.backup")

  @property
  def journal_path(self) -> Path:
    return Path(f"{self.source_path}.journal.json")

  @property
  def binary_name(self) -> str:
    return self.binary_dir.resolve().name

  @property
  def binary_path(self) -> Path:
    return self.binary_dir / self.binary_name

  @property
  def new_binary_path(self) -> Path:
    return self.binary_dir / f"{self.binary_name}.new"

  @property
  def binary_backup_path(self) -> Path:
    return self.binary_dir / f"{self.binary_name}.backup"

  @property
  def effective_build_target(self) -> str:
    return self.build_target or str(self.source_path.parent)

  @property
  def effective_test_target(self) -> str:
    return self.test_target or str(self.source_path.parent)

  @classmethod
  def load(
    cls,
    source_path: Path,
    search_path: Optional[Path] = None,
    **overrides: Any,
  ) -> "PipelineConfig":
    """
    Loads configuration from pyproject.toml and overrides it with explicit arguments.

    Args:
        source_path (Path): The file to rewrite.
        search_path (Optional[Path]): Directory to start searching for TOML config.
        **overrides: Field values; `None` means "not given" and keeps the TOML/default value.
            `backend`, `strategy_kind` and `comment` are routed into the strategy spec.

    Returns:
        PipelineConfig: The fully resolved configuration object.
    """
    start_dir = search_path or Path.cwd()
    toml_config, toml_dir = _load_toml_settings(start_dir)

    data: Dict[str, Any] = dict(toml_config)
    if toml_dir:
      for key in ("binary_dir", "output_path"):
        if key in data:
          data[key] = (toml_dir / Path(data[key])).resolve()

    strategy_data: Dict[str, Any] = dict(data.pop("strategy", {}))
    service_data: Dict[str, Any] = dict(strategy_data.pop("service", {}))

    kind = overrides.pop("strategy_kind", None)
    backend = overrides.pop("backend", None)
    comment = overrides.pop("comment", None)
    if kind is not None:
      strategy_data["kind"] = kind
    if comment is not None:
      strategy_data["comment"] = comment
    if backend is not None:
      service_data["backend"] = backend

    for key, value in overrides.items():
      if value is not None:
        data[key] = value

    data["source_path"] = source_path
    data["strategy"] = {**strategy_data, "service": service_data}
    return cls.model_validate(data)


def _load_toml_settings(start_path: Path) -> Tuple[Dict[str, Any], Optional[Path]]:
  """
  Searches the start directory and its parents for 'pyproject.toml' and extracts config.

  Returns:
      Tuple[Dict, Optional[Path]]: The config dict and the directory it was found in.
  """
  current = start_path.resolve()

  for parent in [current, *current.parents]:
    toml_path = parent / "pyproject.toml"
    if toml_path.exists() and toml_path.is_file():
      try:
        with open(toml_path, "rb") as f:
          data = tomllib.load(f)
      except (OSError, tomllib.TOMLDecodeError):
        return {}, None
      return data.get("tool", {}).get("metamorph", {}), parent

  return {}, None


def _coerce_scalar(text: str) -> Any:
  lowered = text.lower()
  if lowered in ("true", "false"):
    return lowered == "true"
  for cast in (int, float):
    try:
      return cast(text)
    except ValueError:
      continue
  return text


def parse_cli_key_values(items: Optional[List[str]]) -> Dict[str, Any]:
  """
  Parses `--set key=value` pairs into PipelineConfig overrides.

  Values become bool, int or float when they look like one, else stay strings.
  Items without '=' are ignored with a warning.
  """
  overrides: Dict[str, Any] = {}
  for item in items or []:
    key, sep, value = item.partition("=")
    if not sep or not key.strip():
      log_warning(f"Ignoring invalid --set value '{escape(item)}'. Expected 'key=value'.")
      continue
    overrides[key.strip()] = _coerce_scalar(value.strip())
  return overrides
