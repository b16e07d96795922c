# SPDX-License-Identifier: MIT
"""
M5 Circular solver: depreciation, interest, zakat, working capital and cash, iterated to a fixed point.
"""
from .engine import SolverInputs, solve_circular  # re-export
__all__ = ["SolverInputs", "solve_circular"]
