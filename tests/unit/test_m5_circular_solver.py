import unittest
from decimal import Decimal
from pathlib import Path
import sys

# Ensure src/ is on sys.path for direct test runs
ROOT = Path(__file__).resolve().parents[2]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from school_projection.errors import InputValidationError
from school_projection.modules.m0_setup.data_contract import AdminSettings, WorkingCapitalPolicy
from school_projection.modules.m5_circular_solver.engine import (
    SolverInputs, calculate_working_capital, solve_circular,
)

YEARS = tuple(range(2023, 2053))
NO_WC = WorkingCapitalPolicy(ap_payment_days=0, deferred_income_factor=0, accrued_expense_days=0)


def _flat(value):
    return {y: Decimal(value) for y in YEARS}


class TestCircularSolver(unittest.TestCase):

    def _inputs(self, **over):
        base = dict(
            years=YEARS,
            ebitda=_flat("1000000"),
            revenue=_flat("0"),
            opex=_flat("0"),
            capex=_flat("0"),
            settings=AdminSettings(working_capital=NO_WC),
        )
        base.update(over)
        return SolverInputs(**base)

    # 1) hand-checked first two years
    def test_first_years_by_hand(self):
        res = solve_circular(self._inputs())
        y1, y2 = res.years[0], res.years[1]
        self.assertEqual(y1.interest_income, 0)
        self.assertEqual(y1.zakat, Decimal("25000"))
        self.assertEqual(y1.net_result, Decimal("975000"))
        self.assertEqual(y1.cash_closing, Decimal("975000"))
        self.assertEqual(y2.interest_income, Decimal("19500"))
        self.assertEqual(y2.zakat, Decimal("25487.5"))
        self.assertEqual(y2.net_result, Decimal("994012.5"))

    # 2) default cap is enough for a 30-year run
    def test_converges_within_default_cap(self):
        res = solve_circular(self._inputs(capex={y: Decimal("250000") for y in YEARS},
                                          opening_fixed_assets=Decimal("5000000")))
        self.assertTrue(res.converged)
        self.assertLessEqual(res.iterations, 50)
        self.assertLess(res.max_difference, Decimal("0.01"))
        self.assertEqual(len(res.years), 30)

    # 3) average-balance interest is genuinely iterative and still converges
    def test_average_basis_converges(self):
        settings = AdminSettings(working_capital=NO_WC, interest_basis="AVERAGE")
        res = solve_circular(self._inputs(settings=settings))
        self.assertTrue(res.converged)
        self.assertGreater(res.iterations, 2)
        first = res.years[0]
        # half of the closing balance earns interest in year one
        self.assertGreater(first.interest_income, 0)

    # 4) non-convergence is data, not an exception
    def test_non_convergence_flagged(self):
        settings = AdminSettings(working_capital=NO_WC, max_iterations=1)
        res = solve_circular(self._inputs(settings=settings))
        self.assertFalse(res.converged)
        self.assertEqual(res.iterations, 1)
        self.assertGreater(res.max_difference, Decimal("0.01"))
        self.assertEqual(len(res.years), 30)

    # 5) no fixed assets -> nothing to depreciate
    def test_zero_capex_zero_depreciation(self):
        res = solve_circular(self._inputs())
        for row in res.years:
            self.assertEqual(row.depreciation, 0)
            self.assertEqual(row.fixed_assets_closing, 0)

    # 6) depreciation chain
    def test_depreciation_on_prior_closing(self):
        capex = _flat("0")
        capex[2023] = Decimal("500")
        res = solve_circular(self._inputs(capex=capex, opening_fixed_assets=Decimal("1000")))
        y1, y2 = res.years[0], res.years[1]
        self.assertEqual(y1.depreciation, Decimal("100"))
        self.assertEqual(y1.fixed_assets_closing, Decimal("1400"))
        self.assertEqual(y2.depreciation, Decimal("140"))
        self.assertEqual(y1.investing_cash_flow, Decimal("-500"))

    # 7) losses: no zakat, negative cash pays debt interest
    def test_losses_and_overdraft_interest(self):
        res = solve_circular(self._inputs(ebitda=_flat("-1000000")))
        y1, y2 = res.years[0], res.years[1]
        self.assertEqual(y1.zakat, 0)
        self.assertEqual(y1.cash_closing, Decimal("-1000000"))
        self.assertEqual(y2.interest_expense, Decimal("50000"))
        self.assertEqual(y2.interest_income, 0)
        self.assertEqual(y2.net_result, Decimal("-1050000"))

    # 8) financing and working capital keep the balance sheet balanced
    def test_balance_sheet_identity(self):
        settings = AdminSettings(opening_cash=Decimal("2000000"))
        financing = {2025: Decimal("3000000"), 2030: Decimal("-1000000")}
        res = solve_circular(self._inputs(
            revenue=_flat("20000000"), opex=_flat("3000000"), capex=_flat("400000"),
            opening_fixed_assets=Decimal("10000000"), settings=settings, financing=financing))
        for row in res.years:
            self.assertLessEqual(abs(row.total_assets - row.total_liabilities - row.total_equity), Decimal("0.0001"))
        self.assertEqual(res.years[-1].debt_balance, Decimal("2000000"))
        self.assertEqual(res.years[2].financing_cash_flow, Decimal("3000000"))

    def test_missing_year_rejected(self):
        ebitda = _flat("1")
        del ebitda[2040]
        with self.assertRaises(InputValidationError):
            solve_circular(self._inputs(ebitda=ebitda))


def test_working_capital_policy():
    years = [2023, 2024]
    revenue = {2023: Decimal("365000"), 2024: Decimal("730000")}
    opex = {2023: Decimal("365"), 2024: Decimal("365")}
    wc = calculate_working_capital(revenue, opex, WorkingCapitalPolicy(), years)
    first = wc[2023]
    assert first.accounts_receivable == 0
    assert first.accounts_payable == Decimal("30")
    assert first.deferred_income == Decimal("91250")
    assert first.accrued_expenses == Decimal("15")
    assert first.change == Decimal("-91295")
    # only deferred income moves in year two
    assert wc[2024].change == Decimal("-91250")


if __name__ == "__main__":
    unittest.main()
