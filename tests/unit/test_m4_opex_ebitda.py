from decimal import Decimal
from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[2]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from pydantic import ValidationError

from school_projection.errors import InputValidationError
from school_projection.modules.m0_setup.data_contract import HistoricalActuals, OpexSubAccount
from school_projection.modules.m0_setup.engine import PeriodDataResolver
from school_projection.modules.m4_opex_ebitda.engine import (
    calculate_ebitda, calculate_ebitda_for_year, calculate_opex, calculate_opex_for_year,
)

ACCOUNTS = [
    OpexSubAccount(name="Utilities", is_fixed=True, fixed_amount=Decimal("200000")),
    OpexSubAccount(name="Insurance", is_fixed=True, fixed_amount=Decimal("50000")),
    OpexSubAccount(name="Marketing", percent_of_revenue=Decimal("0.05")),
    OpexSubAccount(name="IT", percent_of_revenue=Decimal("0.02")),
]


def test_opex_breakdown():
    out = calculate_opex_for_year(ACCOUNTS, Decimal("1000000"))
    assert out.fixed == Decimal("250000")
    assert out.variable == Decimal("70000")
    assert out.total == Decimal("320000")
    assert out.by_account["Marketing"] == Decimal("50000")


def test_opex_zero_revenue_leaves_fixed_only():
    assert calculate_opex_for_year(ACCOUNTS, Decimal("0")).total == Decimal("250000")


def test_opex_sub_account_kind_enforced():
    with pytest.raises(ValidationError):
        OpexSubAccount(name="Rates", is_fixed=True)
    with pytest.raises(ValidationError):
        OpexSubAccount(name="Rates", percent_of_revenue=Decimal("1.5"))


def test_opex_historical_actual_then_formula():
    resolver = PeriodDataResolver([HistoricalActuals(
        year=2024, revenue=1, staff_cost=1, rent=1, opex=Decimal("999"), capex=0)])
    out = calculate_opex(ACCOUNTS, {2024: Decimal("1000000"), 2025: Decimal("1000000")}, resolver, [2024, 2025])
    assert out[2024] == Decimal("999")
    assert out[2025] == Decimal("320000")


def test_ebitda_and_margin():
    row = calculate_ebitda_for_year(2030, Decimal("1000"), Decimal("500"), Decimal("200"), Decimal("100"))
    assert row.ebitda == Decimal("200")
    assert row.ebitda_margin == Decimal("20")


def test_zero_revenue_margin_is_exactly_zero():
    row = calculate_ebitda_for_year(2030, Decimal("0"), Decimal("500"), Decimal("200"), Decimal("100"))
    assert row.ebitda == Decimal("-800")
    assert row.ebitda_margin == 0
    assert row.ebitda_margin.is_finite()


def test_negative_ebitda_is_valid():
    row = calculate_ebitda_for_year(2030, Decimal("100"), Decimal("500"), Decimal("0"), Decimal("0"))
    assert row.ebitda == Decimal("-400")
    assert row.ebitda_margin == Decimal("-400")


def test_negative_inputs_rejected():
    with pytest.raises(InputValidationError):
        calculate_ebitda_for_year(2030, Decimal("100"), Decimal("-1"), Decimal("0"), Decimal("0"))


def test_ebitda_requires_aligned_years():
    with pytest.raises(InputValidationError):
        calculate_ebitda({2030: Decimal("1")}, {}, {2030: Decimal("0")}, {2030: Decimal("0")})
