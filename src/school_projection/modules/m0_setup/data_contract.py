# The definitive data contract for the school projection engine.
# Inputs are frozen pydantic models; engine outputs are frozen dataclasses.
from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Annotated, Dict, Literal, Optional, Tuple, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator, model_validator

HORIZON_START = 2023
HORIZON_END = 2052
HISTORICAL_YEARS = (2023, 2024)
TRANSITION_YEARS = (2025, 2026, 2027)
DYNAMIC_START = 2028
TRANSITION_CAPACITY_CAP = 1850
ALLOWED_CPI_FREQUENCIES = (1, 2, 3)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


def _check_frequency(v: int) -> int:
    if v not in ALLOWED_CPI_FREQUENCIES:
        raise ValueError(f"cpi_frequency must be one of {ALLOWED_CPI_FREQUENCIES}, got {v}")
    return v


CpiFrequency = Annotated[int, AfterValidator(_check_frequency)]


# ----------------------------- curricula -----------------------------

class StudentsYear(_Frozen):
    year: int
    students: int = Field(ge=0)


class CurriculumPlan(_Frozen):
    curriculum_type: str = Field(min_length=1)
    capacity: int = Field(ge=0)
    tuition_base: Decimal = Field(gt=0)
    cpi_frequency: CpiFrequency = 1
    tuition_base_year: int = HORIZON_START
    students_projection: Tuple[StudentsYear, ...] = ()
    # staffing ratios, only needed when the staff cost base is derived
    teacher_ratio: Optional[Decimal] = None
    non_teacher_ratio: Optional[Decimal] = None
    teacher_monthly_salary: Optional[Decimal] = None
    non_teacher_monthly_salary: Optional[Decimal] = None

    @model_validator(mode="after")
    def _one_entry_per_year(self):
        years = [s.year for s in self.students_projection]
        dupes = sorted({y for y in years if years.count(y) > 1})
        if dupes:
            raise ValueError(f"{self.curriculum_type}: duplicate students_projection years {dupes}")
        return self

    def students_for_year(self, year: int) -> Optional[int]:
        for entry in self.students_projection:
            if entry.year == year:
                return entry.students
        return None


# ----------------------------- rent (tagged union) -----------------------------

class FixedEscalationParams(_Frozen):
    model: Literal["FIXED_ESCALATION"] = "FIXED_ESCALATION"
    base_rent: Decimal = Field(gt=0)
    escalation_rate: Decimal = Field(ge=0)
    start_year: int = DYNAMIC_START


class RevenueShareParams(_Frozen):
    model: Literal["REVENUE_SHARE"] = "REVENUE_SHARE"
    revenue_share_percent: Decimal = Field(ge=0, le=1)
    min_rent: Decimal = Field(default=Decimal("0"), ge=0)


class PartnerModelParams(_Frozen):
    model: Literal["PARTNER_MODEL"] = "PARTNER_MODEL"
    land_size: Decimal = Field(gt=0)
    land_price_per_sqm: Decimal = Field(gt=0)
    bua_size: Decimal = Field(gt=0)
    construction_cost_per_sqm: Decimal = Field(gt=0)
    yield_base: Decimal = Field(gt=0, le=1)


RentModelParams = Annotated[
    Union[FixedEscalationParams, RevenueShareParams, PartnerModelParams],
    Field(discriminator="model"),
]


class RentPlan(_Frozen):
    rent_model: RentModelParams


# ----------------------------- staff -----------------------------

class StaffCostParams(_Frozen):
    """Raw calculator inputs; range checks live in the calculator so they surface as VALIDATION_ERROR."""
    base_staff_cost: Decimal
    cpi_rate: Decimal
    cpi_frequency: int
    base_year: int
    start_year: int = HORIZON_START
    end_year: int = HORIZON_END


class StaffingInputs(_Frozen):
    base_staff_cost: Optional[Decimal] = Field(default=None, gt=0)
    cpi_frequency: CpiFrequency = 1
    base_year: int = DYNAMIC_START


# ----------------------------- capex / opex -----------------------------

class CapexItem(_Frozen):
    year: int
    amount: Decimal = Field(ge=0)
    rule_id: Optional[str] = None
    category: Optional[str] = None


class CapexRule(_Frozen):
    id: str = Field(min_length=1)
    category: str
    cycle_years: int = Field(ge=1, le=50)
    base_cost: Decimal = Field(gt=0)
    starting_year: int = Field(ge=HORIZON_START, le=HORIZON_END)


class OpexSubAccount(_Frozen):
    name: str = Field(min_length=1)
    percent_of_revenue: Optional[Decimal] = Field(default=None, ge=0, le=1)
    is_fixed: bool = False
    fixed_amount: Optional[Decimal] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _amount_matches_kind(self):
        if self.is_fixed and self.fixed_amount is None:
            raise ValueError(f"opex '{self.name}': fixed sub-account requires fixed_amount")
        if not self.is_fixed and self.percent_of_revenue is None:
            raise ValueError(f"opex '{self.name}': variable sub-account requires percent_of_revenue")
        return self


# ----------------------------- period overrides -----------------------------

class HistoricalActuals(_Frozen):
    year: int
    revenue: Decimal = Field(ge=0)
    staff_cost: Decimal = Field(ge=0)
    rent: Decimal = Field(ge=0)
    opex: Decimal = Field(ge=0)
    capex: Decimal = Field(ge=0)

    @field_validator("year")
    @classmethod
    def _historical_year(cls, v: int) -> int:
        if v not in HISTORICAL_YEARS:
            raise ValueError(f"historical actuals year must be one of {HISTORICAL_YEARS}, got {v}")
        return v


class TransitionYearData(_Frozen):
    year: int
    target_enrollment: int = Field(gt=0)
    staff_cost_base: Decimal = Field(gt=0)

    @field_validator("year")
    @classmethod
    def _transition_year(cls, v: int) -> int:
        if v not in TRANSITION_YEARS:
            raise ValueError(f"transition year must be one of {TRANSITION_YEARS}, got {v}")
        return v


# ----------------------------- admin settings -----------------------------

class WorkingCapitalPolicy(_Frozen):
    ar_collection_days: Decimal = Field(default=Decimal("0"), ge=0)
    ap_payment_days: Decimal = Field(default=Decimal("30"), ge=0)
    deferred_income_factor: Decimal = Field(default=Decimal("0.25"), ge=0, le=1)
    accrued_expense_days: Decimal = Field(default=Decimal("15"), ge=0)


class AdminSettings(_Frozen):
    cpi_rate: Decimal = Field(default=Decimal("0.03"), ge=0)
    discount_rate: Decimal = Field(default=Decimal("0.08"), ge=0, le=1)
    zakat_rate: Decimal = Field(default=Decimal("0.025"), ge=0, le=Decimal("0.1"))
    debt_rate: Decimal = Field(default=Decimal("0.05"), ge=0)
    deposit_rate: Decimal = Field(default=Decimal("0.02"), ge=0)
    depreciation_rate: Decimal = Field(default=Decimal("0.10"), ge=0, le=1)
    transition_capacity_cap: int = Field(default=TRANSITION_CAPACITY_CAP, gt=0, le=5000)
    transition_rent_adjustment_percent: Decimal = Field(default=Decimal("0"), ge=-100, le=1000)
    working_capital: WorkingCapitalPolicy = WorkingCapitalPolicy()
    max_iterations: int = Field(default=50, ge=1)
    convergence_tolerance: Decimal = Field(default=Decimal("0.01"), gt=0)
    interest_basis: Literal["OPENING", "AVERAGE"] = "OPENING"
    opening_cash: Decimal = Decimal("0")


# ----------------------------- engine entry -----------------------------

class ProjectionParams(_Frozen):
    curricula: Tuple[CurriculumPlan, ...] = Field(min_length=1)
    rent_plan: RentPlan
    staffing: StaffingInputs = StaffingInputs()
    capex_items: Tuple[CapexItem, ...] = ()
    capex_rules: Tuple[CapexRule, ...] = ()
    opex_sub_accounts: Tuple[OpexSubAccount, ...] = ()
    historical_actuals: Tuple[HistoricalActuals, ...] = ()
    transition_data: Tuple[TransitionYearData, ...] = ()
    other_revenue_by_year: Dict[int, Decimal] = Field(default_factory=dict)
    financing_by_year: Dict[int, Decimal] = Field(default_factory=dict)
    settings: AdminSettings = AdminSettings()
    start_year: int = HORIZON_START
    end_year: int = HORIZON_END

    @model_validator(mode="after")
    def _consistent(self):
        for name in ("start_year", "end_year"):
            v = getattr(self, name)
            if not HORIZON_START <= v <= HORIZON_END:
                raise ValueError(f"{name} {v} outside [{HORIZON_START}, {HORIZON_END}]")
        if self.start_year > self.end_year:
            raise ValueError(f"start_year {self.start_year} is after end_year {self.end_year}")
        for label, records in (("historical_actuals", self.historical_actuals),
                               ("transition_data", self.transition_data)):
            years = [r.year for r in records]
            if len(years) != len(set(years)):
                raise ValueError(f"{label}: at most one record per year")
        kinds = [c.curriculum_type for c in self.curricula]
        if len(kinds) != len(set(kinds)):
            raise ValueError("curricula: curriculum_type must be unique")
        for year, amount in self.other_revenue_by_year.items():
            if amount < 0:
                raise ValueError(f"other_revenue_by_year[{year}] must be >= 0")
        return self


# ----------------------------- input pack sheet rows -----------------------------

class ParametersModel(BaseModel):
    Key: str
    Value: str | int | float


class CurriculaModel(BaseModel):
    Curriculum_Type: str
    Capacity: int = Field(ge=0)
    Tuition_Base: Decimal = Field(gt=0)
    CPI_Frequency: int = 1
    Tuition_Base_Year: Optional[int] = None
    Teacher_Ratio: Optional[Decimal] = None
    Non_Teacher_Ratio: Optional[Decimal] = None
    Teacher_Monthly_Salary: Optional[Decimal] = None
    Non_Teacher_Monthly_Salary: Optional[Decimal] = None


class EnrollmentModel(BaseModel):
    Curriculum_Type: str
    Year: int
    Students: int = Field(ge=0)


class RentModel(BaseModel):
    Key: str
    Value: str | int | float


class OpexModel(BaseModel):
    Name: str
    Percent_Of_Revenue: Optional[Decimal] = None
    Is_Fixed: bool = False
    Fixed_Amount: Optional[Decimal] = None


class CapexModel(BaseModel):
    Year: int
    Amount: Decimal = Field(ge=0)
    Category: Optional[str] = None
    Rule_ID: Optional[str] = None


class CapexRulesModel(BaseModel):
    Rule_ID: str
    Category: str
    Cycle_Years: int = Field(ge=1, le=50)
    Base_Cost: Decimal = Field(gt=0)
    Starting_Year: int


class HistoricalActualsModel(BaseModel):
    Year: int
    Revenue: Decimal = Field(ge=0)
    Staff_Cost: Decimal = Field(ge=0)
    Rent: Decimal = Field(ge=0)
    Opex: Decimal = Field(ge=0)
    Capex: Decimal = Field(ge=0)


class TransitionModel(BaseModel):
    Year: int
    Target_Enrollment: int = Field(gt=0)
    Staff_Cost_Base: Decimal = Field(gt=0)


class YearAmountModel(BaseModel):
    Year: int
    Amount: Decimal


# ----------------------------- engine outputs -----------------------------

@dataclass(frozen=True)
class YearlyProjection:
    year: int
    period: str
    revenue: Decimal
    staff_cost: Decimal
    rent: Decimal
    opex: Decimal
    ebitda: Decimal
    ebitda_margin: Decimal
    capex: Decimal
    depreciation: Decimal
    interest_expense: Decimal
    interest_income: Decimal
    zakat: Decimal
    net_result: Decimal
    working_capital_change: Decimal
    operating_cash_flow: Decimal
    investing_cash_flow: Decimal
    financing_cash_flow: Decimal
    net_cash_flow: Decimal
    fixed_assets_closing: Decimal
    cash_closing: Decimal
    rent_load: Decimal
    accounts_receivable: Decimal
    accounts_payable: Decimal
    deferred_income: Decimal
    accrued_expenses: Decimal
    debt_balance: Decimal
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal


@dataclass(frozen=True)
class ProjectionSummary:
    total_revenue: Decimal
    avg_ebitda_margin: Decimal
    avg_rent_load: Decimal
    npv_rent: Decimal
    total_staff_cost: Decimal
    total_rent: Decimal
    total_opex: Decimal
    total_ebitda: Decimal
    total_capex: Decimal
    total_net_cash_flow: Decimal
    npv_cash_flow: Decimal


@dataclass(frozen=True)
class SolverMetadata:
    converged: bool
    iterations: int
    max_difference: Decimal


@dataclass(frozen=True)
class ProjectionResult:
    years: Tuple[YearlyProjection, ...]
    summary: ProjectionSummary
    metadata: SolverMetadata
    diagnostics: Tuple[str, ...] = ()

    def year(self, year: int) -> YearlyProjection:
        for row in self.years:
            if row.year == year:
                return row
        raise KeyError(year)
