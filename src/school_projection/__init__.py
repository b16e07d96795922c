# SPDX-License-Identifier: MIT
"""
School projection engine: 30-year (2023-2052) P&L, cash flow and balance-sheet
drivers for a school operating model, solved with a bounded fixed-point loop.
"""
from .modules.m7_projection.engine import calculate_full_projection, submit_projection  # re-export

__version__ = "1.0.0"
__all__ = ["calculate_full_projection", "submit_projection", "__version__"]
