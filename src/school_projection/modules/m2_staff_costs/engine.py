"""
M2 Staff Cost Engine

Two directions around an anchor (base) year:
- forward (year >= base_year): stepped growth, CPI applied once every ``cpi_frequency`` years;
- backward (year < base_year): per-year deflation, not stepped.

The anchor year is exact in both directions; earlier years always come out
smaller than the anchor for a positive CPI rate.
"""
from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from school_projection.errors import InputValidationError
from school_projection.utils import ONE, decimal_sum, money_context, to_decimal
from school_projection.modules.m0_setup.data_contract import (
    ALLOWED_CPI_FREQUENCIES, HORIZON_END, HORIZON_START,
    AdminSettings, CurriculumPlan, StaffCostParams, StaffingInputs, TransitionYearData,
)
from school_projection.modules.m0_setup.engine import PeriodDataResolver

MONTHS_PER_YEAR = 12


@dataclass(frozen=True)
class StaffCostRow:
    year: int
    staff_cost: Decimal
    cpi_period: int


@dataclass(frozen=True)
class StaffCostBase:
    total: Decimal
    enrollment_year_used: Dict[str, int]
    diagnostics: Tuple[str, ...] = ()


def _validate(base: Decimal, rate: Decimal, frequency: int, years: Iterable[int]) -> None:
    if base <= 0:
        raise InputValidationError(f"Base staff cost must be positive, got {base}")
    if rate < 0:
        raise InputValidationError(f"CPI rate cannot be negative, got {rate}")
    if frequency not in ALLOWED_CPI_FREQUENCIES:
        raise InputValidationError(f"CPI frequency must be one of {ALLOWED_CPI_FREQUENCIES}, got {frequency}")
    for y in years:
        if y < HORIZON_START or y > HORIZON_END:
            raise InputValidationError(f"Year {y} is outside [{HORIZON_START}, {HORIZON_END}]")


def cpi_period_for(year: int, base_year: int, frequency: int) -> int:
    # floor division: floor(d / f) forward, -ceil(|d| / f) backward
    return (year - base_year) // frequency


@money_context
def calculate_staff_cost_for_year(base, cpi_rate, cpi_frequency: int, base_year: int, year: int) -> Decimal:
    base = to_decimal(base, "base_staff_cost")
    rate = to_decimal(cpi_rate, "cpi_rate")
    _validate(base, rate, cpi_frequency, (year,))
    delta = year - base_year
    if delta >= 0:
        return base * (ONE + rate) ** cpi_period_for(year, base_year, cpi_frequency)
    return base / (ONE + rate) ** (-delta)


@money_context
def calculate_staff_costs(params: StaffCostParams) -> List[StaffCostRow]:
    """Staff cost for every year of [start_year, end_year]; fails fast before producing any row."""
    base = to_decimal(params.base_staff_cost, "base_staff_cost")
    rate = to_decimal(params.cpi_rate, "cpi_rate")
    if params.start_year > params.end_year:
        raise InputValidationError(f"start_year {params.start_year} is after end_year {params.end_year}")
    _validate(base, rate, params.cpi_frequency, (params.start_year, params.end_year))

    rows = []
    for year in range(params.start_year, params.end_year + 1):
        rows.append(StaffCostRow(
            year=year,
            staff_cost=calculate_staff_cost_for_year(base, rate, params.cpi_frequency, params.base_year, year),
            cpi_period=cpi_period_for(year, params.base_year, params.cpi_frequency),
        ))
    return rows


# ----------------------------- base cost from staffing ratios -----------------------------

def _normalise_ratio(value: Optional[Decimal], label: str, diagnostics: List[str]) -> Decimal:
    if value is None:
        raise InputValidationError(f"{label} is required to derive the staff cost base")
    ratio = to_decimal(value, label)
    if ratio <= 0:
        raise InputValidationError(f"{label} must be positive, got {ratio}")
    if ratio > 1:
        diagnostics.append(f"{label} {ratio} looks like a percentage; using {ratio / 100}")
        ratio = ratio / 100
    return ratio


def _positive(value: Optional[Decimal], label: str) -> Decimal:
    if value is None:
        raise InputValidationError(f"{label} is required to derive the staff cost base")
    amount = to_decimal(value, label)
    if amount <= 0:
        raise InputValidationError(f"{label} must be positive, got {amount}")
    return amount


def _nearest_enrollment(plan: CurriculumPlan, base_year: int) -> Tuple[int, int]:
    if not plan.students_projection:
        raise InputValidationError(f"{plan.curriculum_type}: no enrollment data to derive the staff cost base")
    # earlier year wins a tie
    entry = min(plan.students_projection, key=lambda s: (abs(s.year - base_year), s.year))
    return entry.year, entry.students


@money_context
def calculate_staff_cost_base_from_curriculum(plans: Sequence[CurriculumPlan], base_year: int) -> StaffCostBase:
    """
    annual = (students*teacher_ratio*teacher_salary + students*non_teacher_ratio*non_teacher_salary) * 12,
    summed over curricula at ``base_year`` enrollment.
    """
    if not plans:
        raise InputValidationError("At least one curriculum plan is required to derive the staff cost base")

    diagnostics: List[str] = []
    used: Dict[str, int] = {}
    costs = []
    for plan in plans:
        label = plan.curriculum_type
        students = plan.students_for_year(base_year)
        year_used = base_year
        if students is None:
            year_used, students = _nearest_enrollment(plan, base_year)
            diagnostics.append(f"{label}: no enrollment for {base_year}; using {year_used} ({students} students)")
        used[label] = year_used

        teacher_ratio = _normalise_ratio(plan.teacher_ratio, f"{label} teacher_ratio", diagnostics)
        non_teacher_ratio = _normalise_ratio(plan.non_teacher_ratio, f"{label} non_teacher_ratio", diagnostics)
        teacher_salary = _positive(plan.teacher_monthly_salary, f"{label} teacher_monthly_salary")
        non_teacher_salary = _positive(plan.non_teacher_monthly_salary, f"{label} non_teacher_monthly_salary")

        teachers = Decimal(students) * teacher_ratio
        non_teachers = Decimal(students) * non_teacher_ratio
        monthly = teachers * teacher_salary + non_teachers * non_teacher_salary
        costs.append(monthly * MONTHS_PER_YEAR)

    total = decimal_sum(costs)
    if total <= 0:
        raise InputValidationError(f"Derived staff cost base is zero for {base_year}; check enrollment and staffing ratios")
    return StaffCostBase(total=total, enrollment_year_used=used, diagnostics=tuple(diagnostics))


# ----------------------------- projection wiring -----------------------------

def resolve_base_staff_cost(staffing: StaffingInputs, plans: Sequence[CurriculumPlan]) -> StaffCostBase:
    if staffing.base_staff_cost is not None:
        return StaffCostBase(total=staffing.base_staff_cost, enrollment_year_used={})
    return calculate_staff_cost_base_from_curriculum(plans, staffing.base_year)


@money_context
def calculate_projection_staff_costs(
    staffing: StaffingInputs,
    plans: Sequence[CurriculumPlan],
    settings: AdminSettings,
    resolver: PeriodDataResolver,
    years: Sequence[int],
) -> Tuple[Dict[int, Decimal], Tuple[str, ...]]:
    """
    HISTORICAL: actual (formula fallback); TRANSITION: the year's staff_cost_base
    override when present; DYNAMIC: formula anchored at ``staffing.base_year``.
    """
    base = resolve_base_staff_cost(staffing, plans)
    # validate the whole range once so a bad input fails before any year is produced
    _validate(base.total, settings.cpi_rate, staffing.cpi_frequency, years)

    def _override(record: Optional[TransitionYearData]) -> Optional[Decimal]:
        return record.staff_cost_base if record is not None else None

    out: Dict[int, Decimal] = {}
    for year in years:
        out[year] = resolver.resolve(
            "staff_cost", year,
            lambda y=year: calculate_staff_cost_for_year(
                base.total, settings.cpi_rate, staffing.cpi_frequency, staffing.base_year, y),
            transition_override=_override,
        )
    return out, base.diagnostics
