"""
M5 Circular Solver

Interest depends on cash, cash depends on net result, net result depends on
interest and depreciation. The loop below resolves that cycle for every year
at once by fixed-point iteration on the closing-cash vector.

Per pass, years in increasing order:
  depreciation     = fixed_assets(prev) * depreciation_rate
  fixed_assets     = fixed_assets(prev) + capex - depreciation
  interest basis   = cash(prev)                                  (OPENING)
                   | (cash(prev) + last pass cash(year)) / 2     (AVERAGE)
  interest_income  = max(0, basis) * deposit_rate
  interest_expense = max(0, -basis) * debt_rate
  pre_zakat        = ebitda - depreciation - interest_expense + interest_income
  zakat            = max(0, pre_zakat) * zakat_rate
  net_result       = pre_zakat - zakat
  cfo              = net_result + depreciation - working_capital_change
  cash             = cash(prev) + cfo - capex + financing

Stops when max |cash - last pass cash| < tolerance or after max_iterations.
Non-convergence is returned as data (converged=False), never raised.

Balance-sheet drivers:
  assets      = cash + receivables + fixed assets
  liabilities = payables + deferred income + accrued expenses + debt
  equity      = opening cash + opening fixed assets + cumulative net result
"""
from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Mapping, Sequence, Tuple

from school_projection.errors import InputValidationError
from school_projection.utils import DAYS_PER_YEAR, ZERO, money_context
from school_projection.modules.m0_setup.data_contract import AdminSettings, WorkingCapitalPolicy

__version__ = "1.0.0"

IDENTITY_TOLERANCE = Decimal("0.0001")


@dataclass(frozen=True)
class WorkingCapitalRow:
    year: int
    accounts_receivable: Decimal
    accounts_payable: Decimal
    deferred_income: Decimal
    accrued_expenses: Decimal
    change: Decimal


@dataclass(frozen=True)
class SolverInputs:
    years: Tuple[int, ...]
    ebitda: Mapping[int, Decimal]
    revenue: Mapping[int, Decimal]
    opex: Mapping[int, Decimal]
    capex: Mapping[int, Decimal]
    settings: AdminSettings
    opening_fixed_assets: Decimal = ZERO
    financing: Mapping[int, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class SolvedYear:
    year: int
    ebitda: Decimal
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
    accounts_receivable: Decimal
    accounts_payable: Decimal
    deferred_income: Decimal
    accrued_expenses: Decimal
    debt_balance: Decimal
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal


@dataclass(frozen=True)
class SolverResult:
    years: Tuple[SolvedYear, ...]
    converged: bool
    iterations: int
    max_difference: Decimal


# ----------------------------- working capital -----------------------------

@money_context
def calculate_working_capital(
    revenue: Mapping[int, Decimal],
    opex: Mapping[int, Decimal],
    policy: WorkingCapitalPolicy,
    years: Sequence[int],
) -> Dict[int, WorkingCapitalRow]:
    """
    Receivables and deferred income follow revenue; payables and accrued
    expenses follow opex. Balances before the first year are zero.
    change = d(AR) - d(AP) - d(deferred) - d(accrued); positive ties up cash.
    """
    out: Dict[int, WorkingCapitalRow] = {}
    prev_ar = prev_ap = prev_def = prev_acc = ZERO
    for year in years:
        ar = revenue[year] / DAYS_PER_YEAR * policy.ar_collection_days
        ap = opex[year] / DAYS_PER_YEAR * policy.ap_payment_days
        deferred = revenue[year] * policy.deferred_income_factor
        accrued = opex[year] * policy.accrued_expense_days / DAYS_PER_YEAR
        change = (ar - prev_ar) - (ap - prev_ap) - (deferred - prev_def) - (accrued - prev_acc)
        out[year] = WorkingCapitalRow(year, ar, ap, deferred, accrued, change)
        prev_ar, prev_ap, prev_def, prev_acc = ar, ap, deferred, accrued
    return out


# ----------------------------- one pass -----------------------------

def _run_pass(
    inputs: SolverInputs,
    working_capital: Mapping[int, WorkingCapitalRow],
    previous_cash: Sequence[Decimal],
) -> List[SolvedYear]:
    s = inputs.settings
    rows: List[SolvedYear] = []
    fixed_assets_prev = inputs.opening_fixed_assets
    cash_prev = s.opening_cash
    opening_equity = s.opening_cash + inputs.opening_fixed_assets
    retained = ZERO
    debt = ZERO

    for idx, year in enumerate(inputs.years):
        capex = inputs.capex.get(year, ZERO)
        depreciation = fixed_assets_prev * s.depreciation_rate
        fixed_assets = fixed_assets_prev + capex - depreciation

        if s.interest_basis == "AVERAGE":
            basis = (cash_prev + previous_cash[idx]) / 2
        else:
            basis = cash_prev
        interest_income = max(ZERO, basis) * s.deposit_rate
        interest_expense = max(ZERO, -basis) * s.debt_rate

        pre_zakat = inputs.ebitda[year] - depreciation - interest_expense + interest_income
        zakat = max(ZERO, pre_zakat) * s.zakat_rate
        net_result = pre_zakat - zakat

        wc = working_capital[year]
        cfo = net_result + depreciation - wc.change
        cfi = -capex
        cff = inputs.financing.get(year, ZERO)
        net_cash_flow = cfo + cfi + cff
        cash = cash_prev + net_cash_flow

        retained += net_result
        debt += cff
        total_assets = cash + wc.accounts_receivable + fixed_assets
        total_liabilities = wc.accounts_payable + wc.deferred_income + wc.accrued_expenses + debt
        total_equity = opening_equity + retained

        rows.append(SolvedYear(
            year=year, ebitda=inputs.ebitda[year], capex=capex, depreciation=depreciation,
            interest_expense=interest_expense, interest_income=interest_income,
            zakat=zakat, net_result=net_result, working_capital_change=wc.change,
            operating_cash_flow=cfo, investing_cash_flow=cfi, financing_cash_flow=cff,
            net_cash_flow=net_cash_flow, fixed_assets_closing=fixed_assets, cash_closing=cash,
            accounts_receivable=wc.accounts_receivable, accounts_payable=wc.accounts_payable,
            deferred_income=wc.deferred_income, accrued_expenses=wc.accrued_expenses,
            debt_balance=debt, total_assets=total_assets, total_liabilities=total_liabilities,
            total_equity=total_equity,
        ))
        fixed_assets_prev = fixed_assets
        cash_prev = cash
    return rows


def _check_identity(rows: Sequence[SolvedYear]) -> None:
    for r in rows:
        diff = abs(r.total_assets - r.total_liabilities - r.total_equity)
        if diff > IDENTITY_TOLERANCE:
            raise AssertionError(f"[M5] Balance sheet identity failed in {r.year}. Abs diff={diff}")


# ----------------------------- solver -----------------------------

@money_context
def solve_circular(inputs: SolverInputs) -> SolverResult:
    years = list(inputs.years)
    if not years:
        raise InputValidationError("Solver needs at least one year")
    for label, series in (("ebitda", inputs.ebitda), ("revenue", inputs.revenue), ("opex", inputs.opex)):
        missing = [y for y in years if y not in series]
        if missing:
            raise InputValidationError(f"Solver input '{label}' is missing years {missing}")
    negative = [y for y in years if inputs.capex.get(y, ZERO) < 0]
    if negative:
        raise InputValidationError(f"Capex cannot be negative (years {negative})")

    s = inputs.settings
    working_capital = calculate_working_capital(inputs.revenue, inputs.opex, s.working_capital, years)

    previous_cash: List[Decimal] = [ZERO] * len(years)
    rows: List[SolvedYear] = []
    max_difference = ZERO
    converged = False
    iterations = 0

    for iterations in range(1, s.max_iterations + 1):
        rows = _run_pass(inputs, working_capital, previous_cash)
        cash = [r.cash_closing for r in rows]
        max_difference = max(abs(new - old) for new, old in zip(cash, previous_cash))
        previous_cash = cash
        if max_difference < s.convergence_tolerance:
            converged = True
            break

    _check_identity(rows)
    return SolverResult(
        years=tuple(rows),
        converged=converged,
        iterations=iterations,
        max_difference=max_difference,
    )
