from __future__ import annotations
from decimal import Decimal
from typing import Dict, Iterable, List, Sequence

from school_projection.utils import ONE, ZERO, decimal_sum, money_context
from school_projection.modules.m0_setup.data_contract import HORIZON_END, CapexItem, CapexRule
from school_projection.modules.m0_setup.engine import PeriodDataResolver


@money_context
def calculate_capex_from_rule(rule: CapexRule, cpi_rate: Decimal, end_year: int = HORIZON_END) -> List[CapexItem]:
    """Recurring reinvestment: one item every ``cycle_years`` from ``starting_year``, cost grown by CPI each year."""
    items = []
    for year in range(rule.starting_year, end_year + 1, rule.cycle_years):
        amount = rule.base_cost * (ONE + cpi_rate) ** (year - rule.starting_year)
        items.append(CapexItem(year=year, amount=amount, rule_id=rule.id, category=rule.category))
    return items


def calculate_capex_from_rules(rules: Iterable[CapexRule], cpi_rate: Decimal, end_year: int = HORIZON_END) -> List[CapexItem]:
    items: List[CapexItem] = []
    for rule in rules:
        items.extend(calculate_capex_from_rule(rule, cpi_rate, end_year))
    return sorted(items, key=lambda i: (i.year, i.category or ""))


def opening_fixed_assets(items: Iterable[CapexItem], start_year: int) -> Decimal:
    """Cumulative capex dated before the horizon start."""
    return decimal_sum(i.amount for i in items if i.year < start_year)


def capex_by_year(items: Sequence[CapexItem], resolver: PeriodDataResolver, years: Sequence[int]) -> Dict[int, Decimal]:
    totals: Dict[int, Decimal] = {}
    for item in items:
        totals[item.year] = totals.get(item.year, ZERO) + item.amount
    return {y: resolver.resolve("capex", y, lambda y=y: totals.get(y, ZERO)) for y in years}
