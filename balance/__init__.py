# Balance module for simulation analysis
# This module provides:
# - analyzer.py: balance accumulator, scores and issues
# - simulate.py: simulation CLI with report tables
# - balance_check.py: pass/fail balance gate

__version__ = "0.1.0"
