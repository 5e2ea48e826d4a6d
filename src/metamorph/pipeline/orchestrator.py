"""
Promotion Orchestrator.

Sequences one promotion run through its stages, in forced linear order:

    IDLE -> REWRITTEN -> MEASURED -> COMPILED -> TESTED -> DEPLOYED -> CLEANED_UP

Each stage is a method with its own failure domain. A stage that fails raises
`PipelineError` naming itself; `run()` turns that into a failed
`PipelineResult` (stage FAILED). Every step that substitutes files goes through
the `RollbackJournal`, so the original source and the deployed binary are
restored before an error surfaces, and a run killed half way is compensated at
the start of the next one.
"""

import os
from pathlib import Path
from typing import List, Optional

from rich.markup import escape

from metamorph.analysis.complexity import ComplexityAnalyzer, compute_delta, functional_equivalence, render_report
from metamorph.config import PipelineConfig
from metamorph.core.engine import RewriteEngine
from metamorph.core.errors import MetamorphError, PipelineError, TransactionError
from metamorph.core.tracer import TraceLogger, get_tracer
from metamorph.enums import Stage
from metamorph.pipeline.journal import RollbackJournal, SourceSwap
from metamorph.pipeline.result import MetricsReport, PipelineResult
from metamorph.pipeline.tooling import CommandResult, CommandRunner, format_command, parse_pytest_summary
from metamorph.utils.console import console, log_error, log_info, log_output, log_success, log_warning


class PromotionOrchestrator:
  """
  Runs the rewrite, measure, build, test, deploy and cleanup stages for one source file.

  Attributes:
      config (PipelineConfig): Paths, tool commands and flags of the run.
      runner (CommandRunner): Executes the build and test tools.
      analyzer (ComplexityAnalyzer): Measures original and rewritten sources.
      stage (Stage): Last stage reached.
  """

  def __init__(
    self,
    config: PipelineConfig,
    engine: Optional[RewriteEngine] = None,
    runner: Optional[CommandRunner] = None,
    analyzer: Optional[ComplexityAnalyzer] = None,
    tracer: Optional[TraceLogger] = None,
  ):
    self.config = config
    self._engine = engine
    self.runner = runner or CommandRunner()
    self.analyzer = analyzer or ComplexityAnalyzer()
    self.tracer = tracer
    self.stage = Stage.IDLE
    self.metrics: Optional[MetricsReport] = None
    self.functional_equivalence: Optional[float] = None
    self.deployed = False

  @property
  def engine(self) -> RewriteEngine:
    """The rewrite engine, built from the configured strategy on first use."""
    if self._engine is None:
      self._engine = RewriteEngine.from_spec(self.config.strategy, tracer=self.tracer)
    return self._engine

  def _trace(self) -> TraceLogger:
    return self.tracer or get_tracer()

  def _advance(self, stage: Stage) -> None:
    self._trace().log_stage(self.stage.value, stage.value)
    self.stage = stage

  def _journal(self) -> RollbackJournal:
    return RollbackJournal(self.config.journal_path)

  def recover(self) -> int:
    """
    Compensates a run that was interrupted mid-swap.

    Raises:
        PipelineError: If the leftover journal cannot be replayed.
    """
    try:
      restored = RollbackJournal.recover(self.config.journal_path)
    except TransactionError as e:
      raise PipelineError(Stage.IDLE, f"recovery of interrupted run failed: {e}", e) from e
    if restored:
      log_warning(f"Restored {restored} file(s) left behind by an interrupted run")
    return restored

  def run_rewriter(self) -> bool:
    """
    Produces the staged rewritten source.

    Skipped when the staged file already exists and `force_rewrite` is off.

    Returns:
        bool: True if a rewrite was performed.
    """
    staged = self.config.staged_path
    if staged.exists() and not self.config.force_rewrite:
      log_info(f"Rewritten file already exists at [path]{escape(str(staged))}[/path], skipping rewriting step")
      self._advance(Stage.REWRITTEN)
      return False
    if staged.exists():
      log_info(f"Rewritten file exists at [path]{escape(str(staged))}[/path] but force rewrite is enabled")

    log_info(f"Rewriting [path]{escape(str(self.config.source_path))}[/path]...")
    try:
      content = self.engine.rewrite_file(self.config.source_path)
      self.engine.save(staged, content)
    except MetamorphError as e:
      raise PipelineError(Stage.REWRITTEN, str(e), e) from e

    log_success(f"Rewritten source saved to [path]{escape(str(staged))}[/path]")
    self._advance(Stage.REWRITTEN)
    return True

  def calculate_metrics(self) -> MetricsReport:
    """Measures original and staged sources and prints the comparison."""
    log_info("Calculating code metrics...")
    try:
      original = self.analyzer.analyze_file(self.config.source_path)
    except MetamorphError as e:
      raise PipelineError(Stage.MEASURED, f"failed to calculate metrics for original code: {e}", e) from e
    try:
      rewritten = self.analyzer.analyze_file(self.config.staged_path)
    except MetamorphError as e:
      raise PipelineError(Stage.MEASURED, f"failed to calculate metrics for rewritten code: {e}", e) from e

    delta = compute_delta(original, rewritten)
    console.print(render_report(original, rewritten, delta))

    self.metrics = MetricsReport(original=original, rewritten=rewritten, delta=delta)
    self._advance(Stage.MEASURED)
    return self.metrics

  def _command(self, stage: Stage, template: List[str], target: str) -> List[str]:
    try:
      return format_command(template, target=target, output=self.config.new_binary_path, timeout=self.config.test_timeout)
    except ValueError as e:
      raise PipelineError(stage, str(e), e) from e

  def _swap_and_run(self, stage: Stage, argv: List[str], timeout: Optional[float] = None) -> CommandResult:
    config = self.config
    try:
      with SourceSwap(self._journal(), config.source_path, config.staged_path, config.source_backup_path):
        result = self.runner.run(argv, timeout=timeout)
    except TransactionError as e:
      raise PipelineError(stage, str(e), e) from e
    return result

  def compile_rewritten(self) -> CommandResult:
    """Builds the staged binary from the rewritten source."""
    config = self.config
    log_info("Compiling rewritten code...")
    try:
      config.binary_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
      raise PipelineError(Stage.COMPILED, f"failed to create binary directory {config.binary_dir}: {e}", e) from e

    argv = self._command(Stage.COMPILED, config.build_command, config.effective_build_target)
    result = self._swap_and_run(Stage.COMPILED, argv)
    if not result.ok:
      log_output("Build stdout", result.stdout)
      log_output("Build stderr", result.stderr)
      raise PipelineError(Stage.COMPILED, f"compilation failed: {result.describe()}")

    log_success(f"Successfully compiled binary: [path]{escape(str(config.new_binary_path))}[/path]")
    self._advance(Stage.COMPILED)
    return result

  def run_tests(self) -> CommandResult:
    """Runs the test tool against the rewritten source, bounded by `test_timeout`."""
    config = self.config
    log_info("Testing rewritten code...")
    argv = self._command(Stage.TESTED, config.test_command, config.effective_test_target)
    result = self._swap_and_run(Stage.TESTED, argv, timeout=config.test_timeout)

    summary = parse_pytest_summary(result.stdout)
    if summary is not None:
      passed, total = summary
      self.functional_equivalence = functional_equivalence(passed, total)
      log_info(f"Functional equivalence: {self.functional_equivalence:.2f}% ({passed}/{total} tests passed)")

    if not result.ok:
      log_output("Test stdout", result.stdout)
      log_output("Test stderr", result.stderr)
      raise PipelineError(Stage.TESTED, f"tests failed on rewritten code: {result.describe()}")

    log_output("Test output", result.stdout)
    self._advance(Stage.TESTED)
    return result

  def deploy_binary(self) -> bool:
    """
    Moves the staged binary into place, keeping the previous one as backup.

    Returns:
        bool: True if a binary was deployed (False in dry-run mode).
    """
    config = self.config
    if config.dry_run:
      log_info("Dry run: skipping deployment")
      return False

    log_info("Deploying new binary...")
    new_binary = config.new_binary_path
    if not new_binary.exists():
      raise PipelineError(Stage.DEPLOYED, f"new binary not found at {new_binary}")

    journal = self._journal()
    try:
      if config.binary_path.exists():
        journal.move(config.binary_path, config.binary_backup_path)
        log_info(f"Backed up existing binary to [path]{escape(str(config.binary_backup_path))}[/path]")
      journal.move(new_binary, config.binary_path)
      journal.commit()
    except TransactionError as e:
      try:
        journal.rollback()
      except TransactionError as restore_error:
        log_error(f"CRITICAL: failed to restore previous binary: {escape(str(restore_error))}")
      raise PipelineError(Stage.DEPLOYED, f"failed to deploy new binary: {e}", e) from e

    self.deployed = True
    log_success(f"Successfully deployed new binary: [path]{escape(str(config.binary_path))}[/path]")
    self._advance(Stage.DEPLOYED)
    return True

  def clean_up(self) -> None:
    """Removes backups and staging artifacts. Failures are logged, never raised."""
    config = self.config
    targets = [config.binary_backup_path, config.new_binary_path]

    if config.source_path.exists():
      targets.append(config.source_backup_path)
    elif config.source_backup_path.exists():
      log_warning(f"Keeping [path]{escape(str(config.source_backup_path))}[/path]: original source is missing")

    if config.keep_rewritten:
      log_info(f"Keeping rewritten source file for future use: [path]{escape(str(config.staged_path))}[/path]")
    else:
      targets.append(config.staged_path)

    for path in targets:
      _remove_quietly(path)

    log_info("Cleanup finished.")
    self._advance(Stage.CLEANED_UP)

  def run(self) -> PipelineResult:
    """
    Executes the whole promotion.

    Returns:
        PipelineResult: Final state, metrics and failure details.
    """
    failure: Optional[PipelineError] = None
    with self._trace().phase("Promotion", str(self.config.source_path)):
      log_info("Starting automated rewrite and deploy process...")
      try:
        self.recover()
        self.run_rewriter()
        self.calculate_metrics()
        self.compile_rewritten()
        self.run_tests()
        self.deploy_binary()
        self.clean_up()
      except PipelineError as e:
        log_error(escape(str(e)))
        self._advance(Stage.FAILED)
        failure = e

    if failure is not None:
      return self._result(failed_stage=failure.stage, error=str(failure))
    if self.deployed:
      log_success("Process completed successfully!")
    else:
      log_success("Process completed successfully (dry run: no binary was deployed).")
    return self._result()

  def _result(self, failed_stage: Optional[Stage] = None, error: Optional[str] = None) -> PipelineResult:
    return PipelineResult(
      stage=self.stage,
      success=error is None,
      deployed=self.deployed,
      metrics=self.metrics,
      functional_equivalence=self.functional_equivalence,
      failed_stage=failed_stage,
      error=error,
      trace_events=self._trace().export(),
    )


def _remove_quietly(path: Path) -> None:
  if not path.exists():
    return
  try:
    os.remove(path)
    log_info(f"Removed [path]{escape(str(path))}[/path]")
  except OSError as e:
    log_warning(f"Failed to remove {escape(str(path))}: {escape(str(e))}")
