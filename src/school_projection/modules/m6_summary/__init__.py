# SPDX-License-Identifier: MIT
"""
M6 Summary: totals, averages and dynamic-window NPVs over the solved projection.
"""
from .engine import calculate_npv, summarize_projection  # re-export
__all__ = ["calculate_npv", "summarize_projection"]
