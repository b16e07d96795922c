import unittest, pandas as pd
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[2]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from school_projection.modules.m0_setup.engine import create_calendar
from school_projection.modules.m7_projection.engine import PROJECTION_COLUMNS

REQ = [
    "Year","Period","Revenue","Staff_Cost","Rent","Opex","EBITDA","EBITDA_Margin_Pct",
    "Capex","Depreciation","Interest_Expense","Interest_Income","Zakat","Net_Result",
    "CFO","CFI","CFF","Net_Cash_Flow","Fixed_Assets_Closing","Cash_Closing","Rent_Load_Pct",
    "Assets_Total","Liabilities_Total","Equity_Total",
]

class TestProjectionContract(unittest.TestCase):
    def test_columns(self):
        self.assertTrue(set(REQ).issubset(PROJECTION_COLUMNS.values()))
        self.assertEqual(len(set(PROJECTION_COLUMNS.values())), len(PROJECTION_COLUMNS))

    def test_calendar(self):
        cal = create_calendar()
        self.assertEqual(list(cal.columns), ["Year", "Year_Index", "Period"])
        self.assertEqual(len(cal), 30)
        self.assertTrue(pd.api.types.is_integer_dtype(cal["Year"]))
        self.assertTrue(cal["Year"].is_monotonic_increasing)
        self.assertEqual(cal["Period"].value_counts().to_dict(), {"DYNAMIC": 25, "TRANSITION": 3, "HISTORICAL": 2})

if __name__ == "__main__":
    unittest.main()
