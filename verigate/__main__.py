"""
Allow running VeriGate as a module: ``python -m verigate``.

This delegates to the CLI entry point so that both
``verigate`` (console script) and ``python -m verigate``
behave identically.
"""

import sys

from verigate.cli import main

if __name__ == "__main__":
    sys.exit(main())
