# SPDX-License-Identifier: MIT
"""
M4 Opex + EBITDA.
"""
from .engine import calculate_ebitda, calculate_opex  # re-export
__all__ = ["calculate_ebitda", "calculate_opex"]
