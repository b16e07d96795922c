from __future__ import annotations
import functools
import math
from decimal import Context, Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Any, Callable, Iterable, TypeVar

from .errors import InputValidationError

# Money arithmetic runs under this context; the process-wide context is never touched.
MONEY_CONTEXT = Context(prec=28, rounding=ROUND_HALF_UP)

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")
DAYS_PER_YEAR = Decimal("365")

F = TypeVar("F", bound=Callable[..., Any])


def money_context(fn: F) -> F:
    """Run ``fn`` under MONEY_CONTEXT."""
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        with localcontext(MONEY_CONTEXT):
            return fn(*args, **kwargs)
    return wrapper  # type: ignore[return-value]


def to_decimal(value: Any, field: str = "value") -> Decimal:
    """
    Coerce ints, strings, Decimals and (finite) floats to Decimal.
    Floats go through ``str`` so 0.03 stays 0.03 and not its binary expansion.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise InputValidationError(f"{field} must be numeric, got {value!r}")
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise InputValidationError(f"{field} must be finite, got {value!r}")
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise InputValidationError(f"{field} is not a number: {value!r}") from exc
    if not result.is_finite():
        raise InputValidationError(f"{field} must be finite, got {value!r}")
    return result


def safe_divide(numerator: Decimal, denominator: Decimal, default: Decimal = ZERO) -> Decimal:
    if denominator == 0:
        return default
    return numerator / denominator


def decimal_sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)
