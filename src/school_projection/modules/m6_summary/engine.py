from __future__ import annotations
from decimal import Decimal
from typing import Mapping, Sequence

from school_projection.errors import InputValidationError
from school_projection.utils import ONE, decimal_sum, money_context, safe_divide
from school_projection.modules.m0_setup.data_contract import (
    DYNAMIC_START, HORIZON_END, ProjectionSummary, YearlyProjection,
)

NPV_START_YEAR = DYNAMIC_START
NPV_END_YEAR = HORIZON_END


@money_context
def calculate_npv(
    values_by_year: Mapping[int, Decimal],
    discount_rate: Decimal,
    start_year: int = NPV_START_YEAR,
    end_year: int = NPV_END_YEAR,
) -> Decimal:
    """sum(value / (1 + rate) ** (year - start_year)) over [start_year, end_year]; other years are ignored."""
    if discount_rate < 0 or discount_rate > 1:
        raise InputValidationError(f"Discount rate must be within [0, 1], got {discount_rate}")
    factor = ONE + discount_rate
    return decimal_sum(
        value / factor ** (year - start_year)
        for year, value in sorted(values_by_year.items())
        if start_year <= year <= end_year
    )


def _mean(values: Sequence[Decimal]) -> Decimal:
    return safe_divide(decimal_sum(values), Decimal(len(values)))


@money_context
def summarize_projection(years: Sequence[YearlyProjection], discount_rate: Decimal) -> ProjectionSummary:
    """
    NPV of rent and of net cash flow use the dynamic window only (2028-2052).
    Average EBITDA margin and rent load are plain means over every year given.
    """
    return ProjectionSummary(
        total_revenue=decimal_sum(y.revenue for y in years),
        avg_ebitda_margin=_mean([y.ebitda_margin for y in years]),
        avg_rent_load=_mean([y.rent_load for y in years]),
        npv_rent=calculate_npv({y.year: y.rent for y in years}, discount_rate),
        total_staff_cost=decimal_sum(y.staff_cost for y in years),
        total_rent=decimal_sum(y.rent for y in years),
        total_opex=decimal_sum(y.opex for y in years),
        total_ebitda=decimal_sum(y.ebitda for y in years),
        total_capex=decimal_sum(y.capex for y in years),
        total_net_cash_flow=decimal_sum(y.net_cash_flow for y in years),
        npv_cash_flow=calculate_npv({y.year: y.net_cash_flow for y in years}, discount_rate),
    )
