"""
Main Entry Point for metamorph CLI.

This module handles argument parsing and dispatches to specific command
handlers defined in `metamorph.cli.commands`.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from metamorph import __version__
from metamorph.cli import commands
from metamorph.config import parse_cli_key_values
from metamorph.enums import ServiceBackend, StrategyKind

_STRATEGIES = [k.value for k in StrategyKind]
_BACKENDS = [b.value for b in ServiceBackend]


def _add_strategy_options(cmd: argparse.ArgumentParser) -> None:
  cmd.add_argument("--strategy", choices=_STRATEGIES, default=None, help="Rewrite strategy (default: from toml, else external)")
  cmd.add_argument("--backend", choices=_BACKENDS, default=None, help="Transformation service (default: from toml, else gemini)")
  cmd.add_argument("--comment", default=None, help="Marker comment attached to processed functions")
  cmd.add_argument(
    "--json-trace", type=Path, default=None, help="Dump full execution trace (events, stages) to a JSON file."
  )


def main(argv: Optional[List[str]] = None) -> int:
  """
  Main CLI entry point.

  Parses arguments via argparse and calls the appropriate handler function.

  Args:
      argv: Optional list of command line arguments (defaults to sys.argv).

  Returns:
      int: Exit code (0 for success, non-zero for failure).
  """
  parser = argparse.ArgumentParser(description="metamorph: Function-level rewriting with guarded promotion")
  parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

  subparsers = parser.add_subparsers(dest="command", required=True)

  # --- Command: REWRITE ---
  cmd_rw = subparsers.add_parser("rewrite", help="Rewrite the functions of a Python file")
  cmd_rw.add_argument("path", type=Path, help="Input source file")
  cmd_rw.add_argument("--out", type=Path, default=None, help="Output file (default: <input>.rewritten.py)")
  _add_strategy_options(cmd_rw)

  # --- Command: METRICS ---
  cmd_met = subparsers.add_parser("metrics", help="Report LOC and complexity, optionally against a rewrite")
  cmd_met.add_argument("original", type=Path, help="Source file to measure")
  cmd_met.add_argument("rewritten", type=Path, nargs="?", default=None, help="Rewritten file to compare with")
  cmd_met.add_argument("--json", action="store_true", help="Print JSON instead of a table")

  # --- Command: PROMOTE ---
  cmd_pro = subparsers.add_parser("promote", help="Rewrite, measure, build, test and deploy")
  cmd_pro.add_argument("path", type=Path, help="Source file to rewrite and promote")
  cmd_pro.add_argument("--out", type=Path, default=None, help="Staged rewritten source (default: <input>.rewritten.py)")
  cmd_pro.add_argument("--target", default=None, help="Target handed to the build tool (default: source directory)")
  cmd_pro.add_argument("--test-target", default=None, help="Target handed to the test tool (default: source directory)")
  cmd_pro.add_argument("--binary-dir", type=Path, default=None, help="Directory holding the deployed binary")
  cmd_pro.add_argument("--timeout", default=None, help="Test timeout, e.g. 30s or 2m (default: 30s)")
  cmd_pro.add_argument(
    "--keep",
    action=argparse.BooleanOptionalAction,
    default=None,
    help="Keep the rewritten source after promotion (default: true)",
  )
  cmd_pro.add_argument("--dry-run", action="store_true", default=None, help="Run every stage except deployment")
  cmd_pro.add_argument(
    "--force-rewrite", action="store_true", default=None, help="Rewrite even if the staged file already exists"
  )
  cmd_pro.add_argument(
    "--set",
    nargs="*",
    help="Extra configuration in key=value format (e.g. keep_rewritten=false test_timeout=60)",
  )
  _add_strategy_options(cmd_pro)

  args = parser.parse_args(argv)

  if args.command == "rewrite":
    return commands.handle_rewrite(args.path, args.out, args.strategy, args.backend, args.comment, args.json_trace)

  elif args.command == "metrics":
    return commands.handle_metrics(args.original, args.rewritten, args.json)

  elif args.command == "promote":
    overrides = parse_cli_key_values(args.set)
    flags = {
      "output_path": args.out,
      "build_target": args.target,
      "test_target": args.test_target,
      "binary_dir": args.binary_dir,
      "test_timeout": args.timeout,
      "keep_rewritten": args.keep,
      "dry_run": args.dry_run,
      "force_rewrite": args.force_rewrite,
      "strategy_kind": args.strategy,
      "backend": args.backend,
      "comment": args.comment,
    }
    overrides.update({k: v for k, v in flags.items() if v is not None})
    return commands.handle_promote(args.path, overrides, args.json_trace)

  return 0


if __name__ == "__main__":
  sys.exit(main())
