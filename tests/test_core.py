import unittest
from datetime import datetime
from unittest.mock import patch

from tms_api.core import numbering
from tms_api.core.licensing import check_license_compliance
from tms_api.core.pricing import fuel_efficiency, fuel_summary, price_breakdown, quote_line, quote_totals
from tms_api.core.status import SHIPMENT_TIMELINE, execution_status_label, order_item_status_for, timeline


class TestPriceBreakdown(unittest.TestCase):
    def test_margin_and_vat(self):
        result = price_breakdown(1000, 10, True, 0.1)
        self.assertAlmostEqual(result["priceWithProfit"], 1100)
        self.assertAlmostEqual(result["vatAmount"], 110)
        self.assertAlmostEqual(result["finalPrice"], 1210)
        self.assertAlmostEqual(result["profitAmount"], 100)

    def test_without_vat(self):
        result = price_breakdown(500, 20, False)
        self.assertEqual(result["vatAmount"], 0)
        self.assertAlmostEqual(result["finalPrice"], 600)

    def test_missing_margin_counts_as_zero(self):
        result = price_breakdown(800, None, False)
        self.assertEqual(result["finalPrice"], 800)
        self.assertEqual(result["profitAmount"], 0)


class TestQuoteLine(unittest.TestCase):
    def test_splits_vat_and_frequency(self):
        line = quote_line(1210, 2, True, 0.1)
        self.assertAlmostEqual(line["unitPrice"], 605)
        self.assertAlmostEqual(line["priceBeforeVat"], 1100)
        self.assertAlmostEqual(line["vatAmount"], 110)
        self.assertEqual(line["frequency"], 2)

    def test_missing_frequency_and_price(self):
        line = quote_line(None, None, False)
        self.assertEqual(line["unitPrice"], 0)
        self.assertEqual(line["frequency"], 1)
        self.assertEqual(line["vatAmount"], 0)

    def test_totals(self):
        totals = quote_totals([quote_line(1100, 1, True), quote_line(500, 1, False)])
        self.assertAlmostEqual(totals["finalPrice"], 1600)
        self.assertAlmostEqual(totals["priceBeforeVat"], 1500)
        self.assertAlmostEqual(totals["vatAmount"], 100)


class TestFuel(unittest.TestCase):
    def test_efficiency_between_full_tanks(self):
        self.assertAlmostEqual(fuel_efficiency(10500, 35, 10000), 7.0)

    def test_efficiency_needs_previous_full_tank(self):
        self.assertIsNone(fuel_efficiency(10500, 35, None))

    def test_efficiency_needs_positive_distance(self):
        self.assertIsNone(fuel_efficiency(10000, 35, 10000))

    def test_summary_per_vehicle(self):
        logs = [
            {"vehicleId": "v1", "liters": 50, "totalCost": 150000, "efficiency": None},
            {"vehicleId": "v1", "liters": 40, "totalCost": 120000, "efficiency": 8.0},
            {"vehicleId": "v2", "liters": 30, "totalCost": 90000, "efficiency": 10.0},
        ]
        summary = fuel_summary(logs)
        self.assertEqual(summary["totalLiters"], 120)
        self.assertEqual(summary["totalCost"], 360000)
        self.assertAlmostEqual(summary["averageEfficiency"], 9.0)
        v1 = next(v for v in summary["byVehicle"] if v["vehicleId"] == "v1")
        self.assertEqual(v1["fillUps"], 2)
        self.assertEqual(v1["totalLiters"], 90)

    def test_summary_empty(self):
        self.assertEqual(fuel_summary([])["byVehicle"], [])
        self.assertIsNone(fuel_summary([])["averageEfficiency"])


class TestStatus(unittest.TestCase):
    def test_timeline_marks_progress(self):
        steps = timeline("Loading")
        self.assertEqual([s["status"] for s in steps], SHIPMENT_TIMELINE)
        self.assertTrue(steps[1]["completed"])
        self.assertTrue(steps[2]["current"])
        self.assertTrue(steps[2]["reached"])
        self.assertFalse(steps[2]["completed"])
        self.assertFalse(steps[3]["reached"])

    def test_cancelled_is_off_timeline(self):
        self.assertFalse(any(s["reached"] for s in timeline("Cancelled")))

    def test_order_item_mirroring(self):
        self.assertEqual(order_item_status_for("In Transit"), "In Transit")
        self.assertEqual(order_item_status_for("Delivered"), "Delivered")
        self.assertEqual(order_item_status_for("Cancelled"), "Cancelled")
        self.assertIsNone(order_item_status_for("Loading"))

    def test_execution_labels(self):
        self.assertEqual(execution_status_label("Delivered"), "Хүргэгдсэн")
        self.assertEqual(execution_status_label("Unknown"), "Unknown")


class TestNumbering(unittest.TestCase):
    def test_order_and_shipment_numbers(self):
        when = datetime(2024, 3, 7)
        self.assertEqual(numbering.order_number(when, 12), "ORD-20240307-0012")
        self.assertEqual(numbering.shipment_number(when, 3), "SHP-202403-0003")

    @patch("tms_api.core.numbering.random.randint", return_value=4821)
    def test_quote_number(self, _):
        self.assertEqual(numbering.quote_number(), "Q4821")


class TestLicensing(unittest.TestCase):
    def test_no_classes(self):
        valid, reason = check_license_compliance([], "Truck", False)
        self.assertFalse(valid)
        self.assertIsNotNone(reason)

    def test_trailer_needs_e(self):
        self.assertFalse(check_license_compliance(["B", "C"], "Van", True)[0])
        self.assertTrue(check_license_compliance(["ce"], "Van", True)[0])

    def test_heavy_vehicle_needs_c_or_d(self):
        self.assertFalse(check_license_compliance(["B"], "Heavy truck", False)[0])
        self.assertTrue(check_license_compliance(["B", "D"], "Heavy truck", False)[0])
        self.assertEqual(check_license_compliance(["B"], "Sedan", False), (True, None))
