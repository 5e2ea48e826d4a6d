"""
Entry point for module execution (``python -m metamorph``).

This module delegates execution to the CLI handler in ``metamorph.cli.__main__``.
"""

import sys
from metamorph.cli.__main__ import main

if __name__ == "__main__":
  sys.exit(main())
