import json
import tempfile
import unittest
from pathlib import Path
import sys

import pandas as pd

ROOT = Path(__file__).resolve().parents[2]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from school_projection.modules.m0_setup.runner import run_m0
from school_projection.modules.m7_projection.runner import run_projection

PACK = {
    "start_year": 2028,
    "curricula": [
        {"curriculum_type": "NATIONAL", "capacity": 900, "tuition_base": "42000", "cpi_frequency": 1,
         "students_projection": [{"year": y, "students": 700} for y in range(2028, 2053)]},
    ],
    "rent_plan": {"rent_model": {"model": "REVENUE_SHARE", "revenue_share_percent": "0.12", "min_rent": "2500000"}},
    "staffing": {"base_staff_cost": "12000000", "cpi_frequency": 2, "base_year": 2028},
    "opex_sub_accounts": [{"name": "Utilities", "is_fixed": True, "fixed_amount": "900000"}],
    "capex_items": [{"year": 2026, "amount": "20000000"}],
}


class TestProjectionSmoke(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmp = tempfile.TemporaryDirectory()
        cls.OUT = Path(cls._tmp.name)
        pack = cls.OUT / "pack.json"
        pack.write_text(json.dumps(PACK), encoding="utf-8")
        cls.written = run_projection(str(pack), str(cls.OUT / "outputs"))
        cls.m0_written = run_m0(str(pack), str(cls.OUT / "m0"))

    @classmethod
    def tearDownClass(cls):
        cls._tmp.cleanup()

    def test_artifacts_exist(self):
        out = self.OUT / "outputs"
        for name in ("projection_years.parquet", "projection_summary.json",
                     "projection_smoke_report.md", "projection_run_log.json"):
            self.assertTrue((out / name).exists(), f"{name} not found")
        self.assertEqual(self.written["projection_years.parquet"], 25)

    def test_identity_holds(self):
        df = pd.read_parquet(self.OUT / "outputs" / "projection_years.parquet")
        diff = (df["Assets_Total"] - df["Liabilities_Total"] - df["Equity_Total"]).abs().max()
        self.assertLessEqual(diff, 1e-3)
        self.assertTrue((df["Period"] == "DYNAMIC").all())

    def test_summary_json(self):
        summary = json.loads((self.OUT / "outputs" / "projection_summary.json").read_text(encoding="utf-8"))
        self.assertTrue(summary["converged"])
        self.assertIsInstance(summary["npv_rent"], str)
        self.assertGreater(float(summary["total_revenue"]), 0)

    def test_m0_calendar(self):
        cal = pd.read_parquet(self.OUT / "m0" / "m0_calendar.parquet")
        self.assertEqual(cal["Year"].tolist(), list(range(2028, 2053)))
        self.assertIn("m0_params.json", self.m0_written)
        report = (self.OUT / "m0" / "m0_smoke_report.md").read_text(encoding="utf-8")
        self.assertIn("- DYNAMIC: Dynamic years", report)
        self.assertNotIn("HISTORICAL", report)


if __name__ == "__main__":
    unittest.main()
