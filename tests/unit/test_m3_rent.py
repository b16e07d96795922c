import unittest
from decimal import Decimal
from pathlib import Path
import sys

# Ensure src/ is on sys.path for direct test runs
ROOT = Path(__file__).resolve().parents[2]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from pydantic import ValidationError

from school_projection.errors import HistoricalDataNotFound, InputValidationError
from school_projection.modules.m0_setup.data_contract import AdminSettings, HistoricalActuals, RentPlan
from school_projection.modules.m0_setup.engine import PeriodDataResolver
from school_projection.modules.m3_rent.engine import calculate_rent, calculate_transition_rent, rent_function_for

YEARS = list(range(2023, 2053))


def _plan(**model):
    return RentPlan.model_validate({"rent_model": model})


def _actual(year, rent):
    return HistoricalActuals(year=year, revenue=Decimal("1000"), staff_cost=1, rent=Decimal(rent), opex=1, capex=0)


class TestRentModels(unittest.TestCase):

    def test_fixed_escalation_compounds_from_own_start_year(self):
        fn = rent_function_for(_plan(model="FIXED_ESCALATION", base_rent="1000000", escalation_rate="0.02", start_year=2030))
        self.assertEqual(fn(2030, Decimal("0")), Decimal("1000000"))
        self.assertEqual(fn(2032, Decimal("0")), Decimal("1040400"))
        with self.assertRaises(InputValidationError):
            fn(2029, Decimal("0"))

    def test_revenue_share_floor(self):
        fn = rent_function_for(_plan(model="REVENUE_SHARE", revenue_share_percent="0.1", min_rent="500"))
        self.assertEqual(fn(2030, Decimal("10000")), Decimal("1000"))
        self.assertEqual(fn(2030, Decimal("1000")), Decimal("500"))
        self.assertEqual(fn(2030, Decimal("0")), Decimal("500"))

    def test_partner_model_constant(self):
        fn = rent_function_for(_plan(model="PARTNER_MODEL", land_size=1000, land_price_per_sqm=500,
                                     bua_size=2000, construction_cost_per_sqm=3000, yield_base="0.08"))
        # (1000*500 + 2000*3000) * 0.08
        self.assertEqual(fn(2028, Decimal("1")), Decimal("520000"))
        self.assertEqual(fn(2052, Decimal("99999999")), Decimal("520000"))

    def test_unknown_model_rejected_by_contract(self):
        with self.assertRaises(ValidationError):
            _plan(model="GROUND_LEASE", base_rent=1)

    def test_partner_yield_bounds(self):
        with self.assertRaises(ValidationError):
            _plan(model="PARTNER_MODEL", land_size=1, land_price_per_sqm=1, bua_size=1,
                  construction_cost_per_sqm=1, yield_base="1.5")

    def test_transition_rent_formula(self):
        self.assertEqual(calculate_transition_rent(Decimal("7000000"), Decimal("10")), Decimal("7700000"))
        self.assertEqual(calculate_transition_rent(Decimal("7000000"), Decimal("-100")), Decimal("0"))


class TestProjectionRent(unittest.TestCase):

    def setUp(self):
        self.plan = _plan(model="FIXED_ESCALATION", base_rent="8000000", escalation_rate="0.03")
        self.revenue = {y: Decimal("40000000") for y in YEARS}

    def test_period_sourcing(self):
        resolver = PeriodDataResolver([_actual(2023, "6000000"), _actual(2024, "6500000")])
        settings = AdminSettings(transition_rent_adjustment_percent=Decimal("10"))
        out = calculate_rent(self.plan, self.revenue, settings, resolver, YEARS)
        self.assertEqual(out[2023], Decimal("6000000"))
        self.assertEqual(out[2024], Decimal("6500000"))
        for y in (2025, 2026, 2027):
            self.assertEqual(out[y], Decimal("7150000"))
        self.assertEqual(out[2028], Decimal("8000000"))
        self.assertEqual(out[2029], Decimal("8240000"))

    def test_missing_2024_actual_is_hard_error(self):
        resolver = PeriodDataResolver([_actual(2023, "6000000")])
        with self.assertRaises(HistoricalDataNotFound) as ctx:
            calculate_rent(self.plan, self.revenue, AdminSettings(), resolver, YEARS)
        self.assertEqual(ctx.exception.code, "HISTORICAL_DATA_NOT_FOUND")

    def test_missing_historical_rent_is_zero_with_diagnostic(self):
        resolver = PeriodDataResolver([_actual(2024, "6500000")])
        out = calculate_rent(self.plan, self.revenue, AdminSettings(), resolver, YEARS)
        self.assertEqual(out[2023], Decimal("0"))
        self.assertEqual(len(resolver.diagnostics), 1)

    def test_dynamic_only_range_needs_no_actuals(self):
        out = calculate_rent(self.plan, self.revenue, AdminSettings(), PeriodDataResolver(), list(range(2028, 2053)))
        self.assertEqual(len(out), 25)

    def test_revenue_share_reads_same_year_revenue(self):
        plan = _plan(model="REVENUE_SHARE", revenue_share_percent="0.15", min_rent="0")
        revenue = {2030: Decimal("100"), 2031: Decimal("200")}
        out = calculate_rent(plan, revenue, AdminSettings(), PeriodDataResolver(), [2030, 2031])
        self.assertEqual(out, {2030: Decimal("15"), 2031: Decimal("30")})


if __name__ == "__main__":
    unittest.main()
