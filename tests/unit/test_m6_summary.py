from dataclasses import replace
from decimal import Decimal
from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[2]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from school_projection.errors import InputValidationError
from school_projection.modules.m0_setup.data_contract import YearlyProjection
from school_projection.modules.m6_summary.engine import calculate_npv, summarize_projection

Z = Decimal("0")


def _row(year, rent="100", revenue="1000", margin="10", rent_load="10"):
    zeros = {f: Z for f in YearlyProjection.__dataclass_fields__ if f not in ("year", "period")}
    zeros.update(year=year, period="X", rent=Decimal(rent), revenue=Decimal(revenue),
                 ebitda_margin=Decimal(margin), rent_load=Decimal(rent_load))
    return YearlyProjection(**zeros)


def test_npv_dynamic_window_only():
    values = {y: Decimal("100") for y in range(2023, 2053)}
    npv = calculate_npv(values, Decimal("0"))
    assert npv == Decimal("2500")  # 25 dynamic years, undiscounted


def test_npv_first_dynamic_year_not_discounted():
    assert calculate_npv({2028: Decimal("110")}, Decimal("0.1")) == Decimal("110")
    assert calculate_npv({2029: Decimal("110")}, Decimal("0.1")) == Decimal("100")


def test_npv_rate_bounds():
    with pytest.raises(InputValidationError):
        calculate_npv({2030: Decimal("1")}, Decimal("1.5"))


def test_summary_ignores_pre_dynamic_rent_in_npv():
    rows = [_row(y) for y in range(2023, 2053)]
    base = summarize_projection(rows, Decimal("0.08"))
    changed = [replace(r, rent=Decimal("999999")) if r.year < 2028 else r for r in rows]
    other = summarize_projection(changed, Decimal("0.08"))
    assert base.npv_rent == other.npv_rent
    assert base.total_rent != other.total_rent


def test_averages_span_all_years():
    rows = [_row(y, margin="0", rent_load="0") for y in range(2023, 2028)]
    rows += [_row(y, margin="30", rent_load="12") for y in range(2028, 2053)]
    s = summarize_projection(rows, Decimal("0.08"))
    assert s.avg_ebitda_margin == Decimal("25")   # 25*30 / 30
    assert s.avg_rent_load == Decimal("10")       # 25*12 / 30
    assert s.total_revenue == Decimal("30000")


def test_empty_projection_summary_is_zero():
    s = summarize_projection([], Decimal("0.08"))
    assert s.avg_ebitda_margin == 0 and s.npv_rent == 0
