# SPDX-License-Identifier: MIT
"""
M2 Staff costs: stepped forward growth, per-year backward deflation, base cost from staffing ratios.
"""
from .engine import calculate_staff_cost_for_year, calculate_staff_costs  # re-export
__all__ = ["calculate_staff_cost_for_year", "calculate_staff_costs"]
