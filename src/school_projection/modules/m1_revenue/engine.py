from __future__ import annotations
import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Mapping, Sequence, Tuple

from school_projection.errors import InputValidationError
from school_projection.utils import ONE, ZERO, decimal_sum, money_context, to_decimal
from school_projection.modules.m0_setup.data_contract import ALLOWED_CPI_FREQUENCIES, AdminSettings, CurriculumPlan
from school_projection.modules.m0_setup.engine import (
    Period, PeriodDataResolver, apply_transition_capacity_cap, get_period_for_year,
)


@dataclass(frozen=True)
class RevenueResult:
    by_year: Dict[int, Decimal]
    by_curriculum: Dict[int, Dict[str, Decimal]]
    students: Dict[int, Dict[str, int]]
    diagnostics: Tuple[str, ...] = field(default_factory=tuple)


@money_context
def calculate_tuition_for_year(tuition_base, cpi_rate, cpi_frequency: int, base_year: int, year: int) -> Decimal:
    """Stepped forward growth only: tuition * (1 + cpi) ** floor((year - base_year) / frequency)."""
    base = to_decimal(tuition_base, "tuition_base")
    rate = to_decimal(cpi_rate, "cpi_rate")
    if base <= 0:
        raise InputValidationError(f"Tuition base must be positive, got {base}")
    if rate < 0:
        raise InputValidationError(f"CPI rate cannot be negative, got {rate}")
    if cpi_frequency not in ALLOWED_CPI_FREQUENCIES:
        raise InputValidationError(f"CPI frequency must be one of {ALLOWED_CPI_FREQUENCIES}, got {cpi_frequency}")
    if year < base_year:
        raise InputValidationError(f"Tuition base year {base_year} is after requested year {year}")
    return base * (ONE + rate) ** ((year - base_year) // cpi_frequency)


def calculate_curriculum_revenue(tuition: Decimal, students: int, capacity: int) -> Decimal:
    if students < 0:
        raise InputValidationError(f"Students cannot be negative, got {students}")
    return tuition * min(students, capacity)


def allocate_transition_enrollment(projected: Mapping[str, int], target: int) -> Dict[str, int]:
    """Split ``target`` across curricula by each one's share of the projected total (floored)."""
    total = sum(projected.values())
    if total == 0:
        return {k: 0 for k in projected}
    return {k: int(math.floor(Decimal(target) * Decimal(v) / Decimal(total))) for k, v in projected.items()}


def enrollment_for_year(
    plans: Sequence[CurriculumPlan],
    year: int,
    resolver: PeriodDataResolver,
    capacity_cap: int,
    diagnostics: List[str],
) -> Dict[str, int]:
    students: Dict[str, int] = {}
    for plan in plans:
        value = plan.students_for_year(year)
        if value is None:
            diagnostics.append(f"{year}: no enrollment for {plan.curriculum_type}; assuming 0 students")
            value = 0
        students[plan.curriculum_type] = value

    if get_period_for_year(year) is Period.TRANSITION:
        record = resolver.transition_for(year)
        if record is not None:
            students = allocate_transition_enrollment(students, record.target_enrollment)
        students = apply_transition_capacity_cap(students, capacity_cap)
    return students


@money_context
def calculate_revenue(
    plans: Sequence[CurriculumPlan],
    settings: AdminSettings,
    resolver: PeriodDataResolver,
    years: Sequence[int],
    other_revenue_by_year: Mapping[int, Decimal] | None = None,
) -> RevenueResult:
    """
    Per curriculum: tuition(year) * min(students, capacity). Transition years use
    the admin target enrollment (if any) and the capacity cap; historical years
    take the actual, with this formula only as fallback.
    """
    other = other_revenue_by_year or {}
    diagnostics: List[str] = []
    by_year: Dict[int, Decimal] = {}
    by_curriculum: Dict[int, Dict[str, Decimal]] = {}
    students_by_year: Dict[int, Dict[str, int]] = {}

    for year in years:
        students = enrollment_for_year(plans, year, resolver, settings.transition_capacity_cap, diagnostics)
        breakdown: Dict[str, Decimal] = {}

        # left empty when a historical actual is used
        def _formula(year=year, students=students, breakdown=breakdown) -> Decimal:
            for plan in plans:
                tuition = calculate_tuition_for_year(
                    plan.tuition_base, settings.cpi_rate, plan.cpi_frequency, plan.tuition_base_year, year)
                breakdown[plan.curriculum_type] = calculate_curriculum_revenue(
                    tuition, students[plan.curriculum_type], plan.capacity)
            return decimal_sum(breakdown.values()) + to_decimal(other.get(year, ZERO), "other_revenue")

        by_year[year] = resolver.resolve("revenue", year, _formula)
        by_curriculum[year] = breakdown
        students_by_year[year] = students

    return RevenueResult(
        by_year=by_year,
        by_curriculum=by_curriculum,
        students=students_by_year,
        diagnostics=tuple(diagnostics),
    )
