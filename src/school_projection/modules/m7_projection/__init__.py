# SPDX-License-Identifier: MIT
"""
M7 Full projection: orchestration, tabular views and the projection runner.
"""
from .engine import calculate_full_projection, projection_to_frame, submit_projection  # re-export
__all__ = ["calculate_full_projection", "projection_to_frame", "submit_projection"]
