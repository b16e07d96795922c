from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Mapping, Sequence

from school_projection.errors import InputValidationError
from school_projection.utils import HUNDRED, ZERO, money_context, safe_divide
from school_projection.modules.m0_setup.data_contract import OpexSubAccount
from school_projection.modules.m0_setup.engine import PeriodDataResolver


@dataclass(frozen=True)
class OpexBreakdown:
    total: Decimal
    variable: Decimal
    fixed: Decimal
    by_account: Dict[str, Decimal]


@dataclass(frozen=True)
class EbitdaRow:
    year: int
    revenue: Decimal
    staff_cost: Decimal
    rent: Decimal
    opex: Decimal
    ebitda: Decimal
    ebitda_margin: Decimal


# ----------------------------- opex -----------------------------

@money_context
def calculate_opex_for_year(accounts: Sequence[OpexSubAccount], revenue: Decimal) -> OpexBreakdown:
    """Fixed sub-accounts at their amount plus variable sub-accounts at percent_of_revenue * revenue."""
    if revenue < 0:
        raise InputValidationError(f"Revenue cannot be negative, got {revenue}")
    by_account: Dict[str, Decimal] = {}
    fixed = ZERO
    variable = ZERO
    for acc in accounts:
        if acc.is_fixed:
            amount = acc.fixed_amount
            fixed += amount
        else:
            amount = acc.percent_of_revenue * revenue
            variable += amount
        by_account[acc.name] = by_account.get(acc.name, ZERO) + amount
    return OpexBreakdown(total=fixed + variable, variable=variable, fixed=fixed, by_account=by_account)


@money_context
def calculate_opex(
    accounts: Sequence[OpexSubAccount],
    revenue_by_year: Mapping[int, Decimal],
    resolver: PeriodDataResolver,
    years: Sequence[int],
) -> Dict[int, Decimal]:
    # historical actual first, formula otherwise
    return {
        year: resolver.resolve("opex", year, lambda y=year: calculate_opex_for_year(accounts, revenue_by_year[y]).total)
        for year in years
    }


# ----------------------------- EBITDA -----------------------------

@money_context
def calculate_ebitda_for_year(year: int, revenue: Decimal, staff_cost: Decimal, rent: Decimal, opex: Decimal) -> EbitdaRow:
    """
    EBITDA = revenue - staff - rent - opex. The margin (in %) is exactly 0 when
    revenue is 0. A negative EBITDA is a valid result.
    """
    for label, value in (("revenue", revenue), ("staff_cost", staff_cost), ("rent", rent), ("opex", opex)):
        if value < 0:
            raise InputValidationError(f"{label} cannot be negative ({year}: {value})")
    ebitda = revenue - staff_cost - rent - opex
    margin = safe_divide(ebitda, revenue) * HUNDRED
    return EbitdaRow(
        year=year, revenue=revenue, staff_cost=staff_cost, rent=rent, opex=opex,
        ebitda=ebitda, ebitda_margin=margin,
    )


def calculate_ebitda(
    revenue: Mapping[int, Decimal],
    staff_cost: Mapping[int, Decimal],
    rent: Mapping[int, Decimal],
    opex: Mapping[int, Decimal],
) -> Dict[int, EbitdaRow]:
    years = sorted(revenue)
    missing = [y for y in years if y not in staff_cost or y not in rent or y not in opex]
    if missing:
        raise InputValidationError(f"EBITDA inputs are missing years {missing}")
    return {y: calculate_ebitda_for_year(y, revenue[y], staff_cost[y], rent[y], opex[y]) for y in years}
