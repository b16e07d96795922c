from __future__ import annotations
import json
import math
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Type

import numpy as np
import pandas as pd
from pydantic import BaseModel, ValidationError

from school_projection.errors import HistoricalDataNotFound, InputValidationError
from .data_contract import (
    DYNAMIC_START, HISTORICAL_YEARS, HORIZON_END, HORIZON_START, TRANSITION_YEARS,
    HistoricalActuals, ProjectionParams, TransitionYearData,
    ParametersModel, CurriculaModel, EnrollmentModel, RentModel, OpexModel,
    CapexModel, CapexRulesModel, HistoricalActualsModel, TransitionModel, YearAmountModel,
)

# ----------------------------- period classifier -----------------------------

class Period(str, Enum):
    HISTORICAL = "HISTORICAL"
    TRANSITION = "TRANSITION"
    DYNAMIC = "DYNAMIC"


_PERIOD_DESCRIPTIONS = {
    Period.HISTORICAL: "Historical actuals (read-only, from uploaded financial statements)",
    Period.TRANSITION: "Transition years (admin overrides for enrollment and staff cost base)",
    Period.DYNAMIC: "Dynamic years (fully formula-driven)",
}


def get_period_for_year(year: int) -> Period:
    if not isinstance(year, (int, np.integer)) or isinstance(year, bool):
        raise InputValidationError(f"year must be an integer, got {year!r}")
    if year < HORIZON_START or year > HORIZON_END:
        raise InputValidationError(f"Year {year} is outside the projection horizon [{HORIZON_START}, {HORIZON_END}]")
    if year in HISTORICAL_YEARS:
        return Period.HISTORICAL
    if year in TRANSITION_YEARS:
        return Period.TRANSITION
    return Period.DYNAMIC


def period_boundaries(period: Period) -> Tuple[int, int]:
    if period is Period.HISTORICAL:
        return HISTORICAL_YEARS[0], HISTORICAL_YEARS[-1]
    if period is Period.TRANSITION:
        return TRANSITION_YEARS[0], TRANSITION_YEARS[-1]
    return DYNAMIC_START, HORIZON_END


def years_for_period(period: Period) -> List[int]:
    start, end = period_boundaries(period)
    return list(range(start, end + 1))


def describe_period(period: Period) -> str:
    return _PERIOD_DESCRIPTIONS[period]


def apply_transition_capacity_cap(students: Dict[str, int], cap: int) -> Dict[str, int]:
    """
    Proportional rationing: when the summed enrollment exceeds ``cap`` every
    curriculum is scaled by cap / total and floored. Below the cap the input
    is returned unchanged (as a new dict).
    """
    if cap <= 0:
        raise InputValidationError(f"Capacity cap must be positive, got {cap}")
    total = sum(students.values())
    if total <= cap:
        return dict(students)
    factor = Decimal(cap) / Decimal(total)
    return {k: int(math.floor(Decimal(v) * factor)) for k, v in students.items()}


def create_calendar(start_year: int = HORIZON_START, end_year: int = HORIZON_END) -> pd.DataFrame:
    years = list(range(start_year, end_year + 1))
    return pd.DataFrame({
        "Year": years,
        "Year_Index": range(1, len(years) + 1),
        "Period": [get_period_for_year(y).value for y in years],
    })


# ----------------------------- period data resolver -----------------------------

class PeriodDataResolver:
    """
    "Get value for (metric, year)": the single place where the three-way
    HISTORICAL / TRANSITION / DYNAMIC sourcing decision is made.

    ``metric`` names a HistoricalActuals field (revenue, staff_cost, rent, opex, capex).
    Formulas and overrides are passed as callables so they only run when used.
    """

    def __init__(self, actuals: Iterable[HistoricalActuals] = (), transition: Iterable[TransitionYearData] = ()):
        self._actuals: Dict[int, HistoricalActuals] = {a.year: a for a in actuals}
        self._transition: Dict[int, TransitionYearData] = {t.year: t for t in transition}
        self.diagnostics: List[str] = []

    def actuals_for(self, year: int) -> Optional[HistoricalActuals]:
        return self._actuals.get(year)

    def transition_for(self, year: int) -> Optional[TransitionYearData]:
        return self._transition.get(year)

    def historical_value(self, metric: str, year: int) -> Decimal:
        record = self._actuals.get(year)
        if record is None:
            raise HistoricalDataNotFound(
                f"Historical {metric} for {year} not found",
                details={"metric": metric, "year": year},
            )
        return getattr(record, metric)

    def resolve(
        self,
        metric: str,
        year: int,
        formula: Callable[[], Decimal],
        *,
        transition_override: Optional[Callable[[Optional[TransitionYearData]], Optional[Decimal]]] = None,
        historical_fallback: Optional[Callable[[], Decimal]] = None,
    ) -> Decimal:
        period = get_period_for_year(year)
        if period is Period.HISTORICAL:
            record = self._actuals.get(year)
            if record is not None:
                return getattr(record, metric)
            fallback = historical_fallback or formula
            self.diagnostics.append(f"{year}: no historical actuals for {metric}; using calculated value")
            return fallback()
        if period is Period.TRANSITION and transition_override is not None:
            value = transition_override(self._transition.get(year))
            if value is not None:
                return value
        return formula()


# ----------------------------- input pack -----------------------------

SHEET_MODEL_MAP: Dict[str, Type[BaseModel]] = {
    "Parameters": ParametersModel, "Curricula": CurriculaModel,
    "Enrollment": EnrollmentModel, "Rent": RentModel,
    "Opex": OpexModel, "Capex": CapexModel, "Capex_Rules": CapexRulesModel,
    "Historical_Actuals": HistoricalActualsModel, "Transition": TransitionModel,
    "Other_Revenue": YearAmountModel, "Financing": YearAmountModel,
}

REQUIRED_SHEETS = ("Parameters", "Curricula", "Enrollment", "Rent")

# Parameters sheet key -> (section, field)
PARAMETER_KEYS: Dict[str, Tuple[str, str]] = {
    "START_YEAR": ("root", "start_year"),
    "END_YEAR": ("root", "end_year"),
    "CPI_RATE": ("settings", "cpi_rate"),
    "DISCOUNT_RATE": ("settings", "discount_rate"),
    "ZAKAT_RATE": ("settings", "zakat_rate"),
    "DEBT_RATE": ("settings", "debt_rate"),
    "DEPOSIT_RATE": ("settings", "deposit_rate"),
    "DEPRECIATION_RATE": ("settings", "depreciation_rate"),
    "TRANSITION_CAPACITY_CAP": ("settings", "transition_capacity_cap"),
    "TRANSITION_RENT_ADJUSTMENT_PCT": ("settings", "transition_rent_adjustment_percent"),
    "MAX_ITERATIONS": ("settings", "max_iterations"),
    "CONVERGENCE_TOLERANCE": ("settings", "convergence_tolerance"),
    "INTEREST_BASIS": ("settings", "interest_basis"),
    "OPENING_CASH": ("settings", "opening_cash"),
    "AR_COLLECTION_DAYS": ("working_capital", "ar_collection_days"),
    "AP_PAYMENT_DAYS": ("working_capital", "ap_payment_days"),
    "DEFERRED_INCOME_FACTOR": ("working_capital", "deferred_income_factor"),
    "ACCRUED_EXPENSE_DAYS": ("working_capital", "accrued_expense_days"),
    "BASE_STAFF_COST": ("staffing", "base_staff_cost"),
    "STAFF_CPI_FREQUENCY": ("staffing", "cpi_frequency"),
    "STAFF_BASE_YEAR": ("staffing", "base_year"),
}


def _nan_to_none(d: Dict[str, Any]) -> Dict[str, Any]:
    out = {}
    for k, v in d.items():
        if isinstance(v, float) and (pd.isna(v) or v is np.nan):
            out[k] = None
        else:
            out[k] = v
    return out


def _clean(value: Any) -> Any:
    """Excel hands back floats for whole numbers and numpy scalars; normalise for pydantic."""
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, float):
        return str(value)
    return value


def _rows(df: Optional[pd.DataFrame]) -> List[Dict[str, Any]]:
    if df is None or df.empty:
        return []
    return [{k: _clean(v) for k, v in _nan_to_none(r).items()} for r in df.to_dict(orient="records")]


def _key_values(df: Optional[pd.DataFrame]) -> Dict[str, Any]:
    return {str(r["Key"]).strip().upper(): r["Value"] for r in _rows(df) if r.get("Value") is not None}


def load_and_validate_input_pack(file_path: Path) -> Dict[str, pd.DataFrame]:
    """Read the Excel input pack and validate every row of every known sheet, collecting all errors."""
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Error: Input file not found at {file_path}")

    try:
        sheets: Dict[str, pd.DataFrame] = pd.read_excel(file_path, sheet_name=None, engine="openpyxl")
    except Exception as exc:
        raise RuntimeError(f"Failed to read Excel workbook at {file_path}: {exc}") from exc

    validation_errors: List[str] = []

    for name in REQUIRED_SHEETS:
        if name not in sheets:
            validation_errors.append(f"Missing required sheet '{name}'")

    for sheet_name, df in sheets.items():
        model = SHEET_MODEL_MAP.get(sheet_name)
        if model is None:
            continue
        for idx, row in df.iterrows():
            row_dict = _nan_to_none(row.to_dict())
            try:
                model(**{k: _clean(v) for k, v in row_dict.items()})
            except ValidationError as e:
                validation_errors.append(
                    f"Validation Error in sheet '{sheet_name}', row {idx + 2}:\n  Data: {row_dict}\n  Errors: {e}\n"
                )

    if validation_errors:
        raise InputValidationError(
            f"Input data validation failed with {len(validation_errors)} error(s):\n\n" + "\n".join(validation_errors)
        )

    return sheets


def build_projection_params(sheets: Dict[str, pd.DataFrame]) -> ProjectionParams:
    """Assemble ProjectionParams from validated input pack sheets."""
    root: Dict[str, Any] = {}
    settings: Dict[str, Any] = {}
    working_capital: Dict[str, Any] = {}
    staffing: Dict[str, Any] = {}
    sections = {"root": root, "settings": settings, "working_capital": working_capital, "staffing": staffing}

    for key, value in _key_values(sheets.get("Parameters")).items():
        target = PARAMETER_KEYS.get(key)
        if target is None:
            continue
        section, field = target
        sections[section][field] = value
    if working_capital:
        settings["working_capital"] = working_capital

    enrollment: Dict[str, List[Dict[str, int]]] = {}
    for r in _rows(sheets.get("Enrollment")):
        enrollment.setdefault(str(r["Curriculum_Type"]), []).append({"year": r["Year"], "students": r["Students"]})

    curricula = []
    for r in _rows(sheets.get("Curricula")):
        kind = str(r["Curriculum_Type"])
        plan = {
            "curriculum_type": kind,
            "capacity": r["Capacity"],
            "tuition_base": r["Tuition_Base"],
            "cpi_frequency": r.get("CPI_Frequency") or 1,
            "students_projection": enrollment.get(kind, []),
            "teacher_ratio": r.get("Teacher_Ratio"),
            "non_teacher_ratio": r.get("Non_Teacher_Ratio"),
            "teacher_monthly_salary": r.get("Teacher_Monthly_Salary"),
            "non_teacher_monthly_salary": r.get("Non_Teacher_Monthly_Salary"),
        }
        if r.get("Tuition_Base_Year") is not None:
            plan["tuition_base_year"] = r["Tuition_Base_Year"]
        curricula.append(plan)

    rent = {k.lower(): v for k, v in _key_values(sheets.get("Rent")).items()}

    payload: Dict[str, Any] = {
        **root,
        "curricula": curricula,
        "rent_plan": {"rent_model": rent},
        "staffing": staffing,
        "settings": settings,
        "opex_sub_accounts": [
            {"name": r["Name"], "percent_of_revenue": r.get("Percent_Of_Revenue"),
             "is_fixed": bool(r.get("Is_Fixed") or False), "fixed_amount": r.get("Fixed_Amount")}
            for r in _rows(sheets.get("Opex"))
        ],
        "capex_items": [
            {"year": r["Year"], "amount": r["Amount"], "category": r.get("Category"), "rule_id": r.get("Rule_ID")}
            for r in _rows(sheets.get("Capex"))
        ],
        "capex_rules": [
            {"id": r["Rule_ID"], "category": r["Category"], "cycle_years": r["Cycle_Years"],
             "base_cost": r["Base_Cost"], "starting_year": r["Starting_Year"]}
            for r in _rows(sheets.get("Capex_Rules"))
        ],
        "historical_actuals": [
            {"year": r["Year"], "revenue": r["Revenue"], "staff_cost": r["Staff_Cost"],
             "rent": r["Rent"], "opex": r["Opex"], "capex": r["Capex"]}
            for r in _rows(sheets.get("Historical_Actuals"))
        ],
        "transition_data": [
            {"year": r["Year"], "target_enrollment": r["Target_Enrollment"], "staff_cost_base": r["Staff_Cost_Base"]}
            for r in _rows(sheets.get("Transition"))
        ],
        "other_revenue_by_year": {r["Year"]: r["Amount"] for r in _rows(sheets.get("Other_Revenue"))},
        "financing_by_year": {r["Year"]: r["Amount"] for r in _rows(sheets.get("Financing"))},
    }
    return coerce_projection_params(payload)


def coerce_projection_params(payload: Any) -> ProjectionParams:
    """Validate a mapping into ProjectionParams, surfacing pydantic errors as VALIDATION_ERROR."""
    if isinstance(payload, ProjectionParams):
        return payload
    try:
        return ProjectionParams.model_validate(payload)
    except ValidationError as exc:
        raise InputValidationError(f"Invalid projection parameters ({exc.error_count()} error(s)):\n{exc}") from exc


def load_input_pack(file_path: Path) -> ProjectionParams:
    """Load a ``.xlsx`` input pack or a ``.json`` parameter document."""
    file_path = Path(file_path)
    if file_path.suffix.lower() == ".json":
        if not file_path.exists():
            raise FileNotFoundError(f"Error: Input file not found at {file_path}")
        payload = json.loads(file_path.read_text(encoding="utf-8"), parse_float=Decimal)
        return coerce_projection_params(payload)
    return build_projection_params(load_and_validate_input_pack(file_path))
