"""
Typed errors raised by the projection engine.

Every error carries a stable ``code`` so callers can branch without parsing
messages. Non-convergence of the circular solver is NOT an error; it is
reported on the result (``converged=False``).
"""
from __future__ import annotations
from typing import Any, Dict, Optional


class ProjectionError(Exception):
    code = "PROJECTION_ERROR"

    def __init__(self, message: str, *, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = dict(details or {})

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class InputValidationError(ProjectionError, ValueError):
    """Malformed or out-of-range input (base cost <= 0, bad frequency, year outside the horizon...)."""
    code = "VALIDATION_ERROR"


class NotFoundError(ProjectionError, KeyError):
    code = "NOT_FOUND"


class HistoricalDataNotFound(NotFoundError):
    """A required HistoricalActuals value is missing (e.g. 2024 rent for transition years)."""
    code = "HISTORICAL_DATA_NOT_FOUND"
