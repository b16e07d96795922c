from __future__ import annotations
from decimal import Decimal
from typing import Callable, Dict, Mapping, Optional, Sequence

from school_projection.errors import InputValidationError
from school_projection.utils import HUNDRED, ONE, ZERO, money_context
from school_projection.modules.m0_setup.data_contract import (
    HISTORICAL_YEARS, AdminSettings, FixedEscalationParams, PartnerModelParams,
    RentPlan, RevenueShareParams, TransitionYearData,
)
from school_projection.modules.m0_setup.engine import PeriodDataResolver

RentFunction = Callable[[int, Decimal], Decimal]

# ----------------------------- rent models -----------------------------

def calculate_fixed_escalation_rent(params: FixedEscalationParams, year: int, revenue: Decimal = ZERO) -> Decimal:
    """base_rent * (1 + escalation_rate) ** (year - start_year), compounded annually from the model's own start year."""
    if year < params.start_year:
        raise InputValidationError(f"Year {year} is before the rent start year {params.start_year}")
    return params.base_rent * (ONE + params.escalation_rate) ** (year - params.start_year)


def calculate_revenue_share_rent(params: RevenueShareParams, year: int, revenue: Decimal = ZERO) -> Decimal:
    if revenue < 0:
        raise InputValidationError(f"Revenue cannot be negative ({year}: {revenue})")
    return max(params.min_rent, revenue * params.revenue_share_percent)


def calculate_partner_model_rent(params: PartnerModelParams, year: int, revenue: Decimal = ZERO) -> Decimal:
    """(land + construction) * yield; constant across years and not enrollment-sensitive."""
    land = params.land_size * params.land_price_per_sqm
    construction = params.bua_size * params.construction_cost_per_sqm
    return (land + construction) * params.yield_base


_RENT_MODELS: Dict[str, Callable[..., Decimal]] = {
    "FIXED_ESCALATION": calculate_fixed_escalation_rent,
    "REVENUE_SHARE": calculate_revenue_share_rent,
    "PARTNER_MODEL": calculate_partner_model_rent,
}


def rent_function_for(plan: RentPlan) -> RentFunction:
    """Dispatch on the model tag once; the returned callable is (year, revenue) -> rent."""
    params = plan.rent_model
    try:
        model_fn = _RENT_MODELS[params.model]
    except KeyError:
        raise InputValidationError(f"Unknown rent model '{params.model}'") from None

    def _rent(year: int, revenue: Decimal) -> Decimal:
        return model_fn(params, year, revenue)

    return _rent


def calculate_transition_rent(rent_2024: Decimal, adjustment_percent: Decimal) -> Decimal:
    return rent_2024 * (ONE + adjustment_percent / HUNDRED)


# ----------------------------- projection wiring -----------------------------

@money_context
def calculate_rent(
    plan: RentPlan,
    revenue_by_year: Mapping[int, Decimal],
    settings: AdminSettings,
    resolver: PeriodDataResolver,
    years: Sequence[int],
) -> Dict[int, Decimal]:
    """
    HISTORICAL: actual rent (zero when missing). TRANSITION: 2024 actual rent
    adjusted by the admin percentage, same value every transition year; a
    missing 2024 actual raises HistoricalDataNotFound. DYNAMIC: the rent model.
    """
    rent_fn = rent_function_for(plan)
    transition_rent: Optional[Decimal] = None

    def _transition(_record: Optional[TransitionYearData]) -> Decimal:
        nonlocal transition_rent
        if transition_rent is None:
            base = resolver.historical_value("rent", HISTORICAL_YEARS[-1])
            transition_rent = calculate_transition_rent(base, settings.transition_rent_adjustment_percent)
        return transition_rent

    out: Dict[int, Decimal] = {}
    for year in years:
        out[year] = resolver.resolve(
            "rent", year,
            lambda y=year: rent_fn(y, revenue_by_year[y]),
            transition_override=_transition,
            historical_fallback=lambda: ZERO,
        )
    return out
