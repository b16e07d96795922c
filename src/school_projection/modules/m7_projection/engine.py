"""
M7 Full Projection

Wires the per-year calculators into the circular solver:

  M0 period resolver -> M1 revenue -> M2 staff -> M3 rent -> M4 opex/EBITDA
      -> capex (items + rules) -> M5 solver -> M6 summary

``calculate_full_projection`` is a pure function of its inputs: every call
builds its own resolver and returns new frozen objects. All validation
happens before the solver runs.
"""
from __future__ import annotations
from concurrent.futures import Executor, Future
from dataclasses import asdict, fields
from decimal import Decimal
from typing import Any, Dict, Mapping, Union

import pandas as pd

from school_projection.utils import HUNDRED, money_context, safe_divide
from school_projection.modules.m0_setup.data_contract import (
    ProjectionParams, ProjectionResult, SolverMetadata, YearlyProjection,
)
from school_projection.modules.m0_setup.engine import (
    PeriodDataResolver, coerce_projection_params, get_period_for_year,
)
from school_projection.modules.m1_revenue.engine import calculate_revenue
from school_projection.modules.m2_staff_costs.engine import calculate_projection_staff_costs
from school_projection.modules.m3_rent.engine import calculate_rent
from school_projection.modules.m4_opex_ebitda.engine import calculate_ebitda, calculate_opex
from school_projection.modules.m5_circular_solver.engine import SolverInputs, solve_circular
from school_projection.modules.m6_summary.engine import summarize_projection
from .capex import calculate_capex_from_rules, capex_by_year, opening_fixed_assets


@money_context
def calculate_full_projection(params: Union[ProjectionParams, Mapping[str, Any]]) -> ProjectionResult:
    params = coerce_projection_params(params)
    settings = params.settings
    years = list(range(params.start_year, params.end_year + 1))
    resolver = PeriodDataResolver(params.historical_actuals, params.transition_data)

    revenue = calculate_revenue(params.curricula, settings, resolver, years, params.other_revenue_by_year)
    staff, staff_diagnostics = calculate_projection_staff_costs(
        params.staffing, params.curricula, settings, resolver, years)
    rent = calculate_rent(params.rent_plan, revenue.by_year, settings, resolver, years)
    opex = calculate_opex(params.opex_sub_accounts, revenue.by_year, resolver, years)
    ebitda = calculate_ebitda(revenue.by_year, staff, rent, opex)

    capex_items = list(params.capex_items) + calculate_capex_from_rules(params.capex_rules, settings.cpi_rate)
    capex = capex_by_year(capex_items, resolver, years)

    solved = solve_circular(SolverInputs(
        years=tuple(years),
        ebitda={y: row.ebitda for y, row in ebitda.items()},
        revenue=revenue.by_year,
        opex=opex,
        capex=capex,
        settings=settings,
        opening_fixed_assets=opening_fixed_assets(capex_items, params.start_year),
        financing=params.financing_by_year,
    ))

    projections = []
    for row in solved.years:
        e = ebitda[row.year]
        projections.append(YearlyProjection(
            year=row.year,
            period=get_period_for_year(row.year).value,
            revenue=e.revenue,
            staff_cost=e.staff_cost,
            rent=e.rent,
            opex=e.opex,
            ebitda=e.ebitda,
            ebitda_margin=e.ebitda_margin,
            capex=row.capex,
            depreciation=row.depreciation,
            interest_expense=row.interest_expense,
            interest_income=row.interest_income,
            zakat=row.zakat,
            net_result=row.net_result,
            working_capital_change=row.working_capital_change,
            operating_cash_flow=row.operating_cash_flow,
            investing_cash_flow=row.investing_cash_flow,
            financing_cash_flow=row.financing_cash_flow,
            net_cash_flow=row.net_cash_flow,
            fixed_assets_closing=row.fixed_assets_closing,
            cash_closing=row.cash_closing,
            rent_load=safe_divide(e.rent, e.revenue) * HUNDRED,
            accounts_receivable=row.accounts_receivable,
            accounts_payable=row.accounts_payable,
            deferred_income=row.deferred_income,
            accrued_expenses=row.accrued_expenses,
            debt_balance=row.debt_balance,
            total_assets=row.total_assets,
            total_liabilities=row.total_liabilities,
            total_equity=row.total_equity,
        ))

    return ProjectionResult(
        years=tuple(projections),
        summary=summarize_projection(projections, settings.discount_rate),
        metadata=SolverMetadata(
            converged=solved.converged,
            iterations=solved.iterations,
            max_difference=solved.max_difference,
        ),
        diagnostics=tuple(resolver.diagnostics) + revenue.diagnostics + staff_diagnostics,
    )


def submit_projection(params: Union[ProjectionParams, Mapping[str, Any]], executor: Executor) -> "Future[ProjectionResult]":
    """Run the projection on a caller-owned executor (thread or process pool); inputs and outputs go by value."""
    return executor.submit(calculate_full_projection, params)


# ----------------------------- tabular views -----------------------------

PROJECTION_COLUMNS: Dict[str, str] = {
    "year": "Year",
    "period": "Period",
    "revenue": "Revenue",
    "staff_cost": "Staff_Cost",
    "rent": "Rent",
    "opex": "Opex",
    "ebitda": "EBITDA",
    "ebitda_margin": "EBITDA_Margin_Pct",
    "capex": "Capex",
    "depreciation": "Depreciation",
    "interest_expense": "Interest_Expense",
    "interest_income": "Interest_Income",
    "zakat": "Zakat",
    "net_result": "Net_Result",
    "working_capital_change": "Working_Capital_Change",
    "operating_cash_flow": "CFO",
    "investing_cash_flow": "CFI",
    "financing_cash_flow": "CFF",
    "net_cash_flow": "Net_Cash_Flow",
    "fixed_assets_closing": "Fixed_Assets_Closing",
    "cash_closing": "Cash_Closing",
    "rent_load": "Rent_Load_Pct",
    "accounts_receivable": "Accounts_Receivable",
    "accounts_payable": "Accounts_Payable",
    "deferred_income": "Deferred_Income",
    "accrued_expenses": "Accrued_Expenses",
    "debt_balance": "Debt_Balance",
    "total_assets": "Assets_Total",
    "total_liabilities": "Liabilities_Total",
    "total_equity": "Equity_Total",
}


def projection_to_frame(result: ProjectionResult) -> pd.DataFrame:
    """One row per year; money stays Decimal (object dtype)."""
    names = [f.name for f in fields(YearlyProjection)]
    df = pd.DataFrame([[getattr(row, n) for n in names] for row in result.years], columns=names)
    return df.rename(columns=PROJECTION_COLUMNS)


def summary_to_dict(result: ProjectionResult) -> Dict[str, Any]:
    """JSON-ready summary; decimals as strings so nothing is lost to float."""
    def _s(v: Any) -> Any:
        return str(v) if isinstance(v, Decimal) else v

    out: Dict[str, Any] = {k: _s(v) for k, v in asdict(result.summary).items()}
    out["converged"] = result.metadata.converged
    out["iterations"] = result.metadata.iterations
    out["max_difference"] = _s(result.metadata.max_difference)
    out["diagnostics"] = list(result.diagnostics)
    return out
