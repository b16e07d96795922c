# SPDX-License-Identifier: MIT
"""
M0 Setup: data contract, period classifier, period data resolver and input pack loading.
"""
from .engine import Period, get_period_for_year, load_input_pack  # re-export
__all__ = ["Period", "get_period_for_year", "load_input_pack"]
