"""
Tests for the external tool runner and pytest summary parsing.
"""

import subprocess
import sys
from unittest.mock import patch

import pytest

from metamorph.pipeline.tooling import CommandRunner, format_command, parse_pytest_summary


def test_format_command_placeholders():
  argv = format_command(["{python}", "-m", "zipapp", "{target}", "-o", "{output}"], target="app", output="build/app.new")
  assert argv == [sys.executable, "-m", "zipapp", "app", "-o", "build/app.new"]


def test_format_command_unknown_placeholder():
  with pytest.raises(ValueError, match="nope"):
    format_command(["{nope}"], target="x")


def test_runner_success():
  result = CommandRunner().run([sys.executable, "-c", "print('hello')"])
  assert result.ok
  assert result.stdout.strip() == "hello"


def test_runner_failure():
  result = CommandRunner().run([sys.executable, "-c", "import sys; sys.exit(3)"])
  assert not result.ok
  assert result.returncode == 3
  assert "status 3" in result.describe()


def test_runner_timeout():
  with patch("metamorph.pipeline.tooling.subprocess.run") as mock_run:
    mock_run.side_effect = subprocess.TimeoutExpired(cmd=["x"], timeout=1, output=b"partial")
    result = CommandRunner().run(["x"], timeout=1)
  assert result.timed_out
  assert not result.ok
  assert result.stdout == "partial"
  assert "timed out" in result.describe()


def test_runner_missing_executable():
  result = CommandRunner().run(["definitely-not-a-real-binary-metamorph"])
  assert not result.ok
  assert result.returncode is None


@pytest.mark.parametrize(
  "output, expected",
  [
    ("....\n4 passed in 0.01s\n", (4, 4)),
    ("===== 3 passed, 1 failed in 0.12s =====", (3, 4)),
    ("== 2 passed, 1 failed, 2 errors in 1.0s ==", (2, 5)),
    ("== 1 error in 0.3s ==", (0, 1)),
    ("no tests ran", None),
    ("", None),
  ],
)
def test_parse_pytest_summary(output, expected):
  assert parse_pytest_summary(output) == expected
