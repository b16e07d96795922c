# SPDX-License-Identifier: MIT
"""
M3 Rent: FIXED_ESCALATION / REVENUE_SHARE / PARTNER_MODEL, dispatched once per projection.
"""
from .engine import calculate_rent, rent_function_for  # re-export
__all__ = ["calculate_rent", "rent_function_for"]
