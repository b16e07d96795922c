# SPDX-License-Identifier: MIT
"""
M1 Revenue: CPI-stepped tuition x capacity-clamped enrollment, per curriculum.
"""
from .engine import calculate_revenue, calculate_tuition_for_year  # re-export
__all__ = ["calculate_revenue", "calculate_tuition_for_year"]
