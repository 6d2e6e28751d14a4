import json
import os
import shutil
import tempfile
import unittest
from datetime import datetime
from io import BytesIO
from unittest.mock import MagicMock, patch

import requests
from fastapi.testclient import TestClient
from openpyxl import load_workbook

from api_case import ApiTestCase, utc
from tms_api.config import Settings, settings
from tms_api.data import store
from tms_api.main import app
from tms_api.services import documents, maps_client, openai_client, sheets_client


def completion(payload):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = json.dumps(payload) if not isinstance(payload, str) else payload
    return response


class TestAiEndpoints(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.openai = MagicMock()
        patcher = patch("tms_api.services.openai_client.client", self.openai)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_optimize_route(self):
        self.openai.chat.completions.create.return_value = completion({
            "optimizedRoute": "[A, C, B]", "estimatedTimeSavings": "1 hours and 10 minutes",
            "reasoning": "Step 1: avoid downtown",
        })
        response = self.client.post("/api/v1/ai/optimize-route", json={
            "currentRoute": "A, B, C", "deliveryDeadlines": "C by noon", "trafficConditions": "Heavy on B",
        })
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["optimizedRoute"], "[A, C, B]")

    def test_license_requires_an_image(self):
        response = self.client.post("/api/v1/ai/analyze-driver-license", json={})
        self.assertEqual(response.status_code, 400)
        self.openai.chat.completions.create.assert_not_called()

    def test_license_wraps_raw_base64(self):
        self.openai.chat.completions.create.return_value = completion({
            "displayName": "Бат Дорж", "licenseClasses": ["B", "C"], "confidence": 92,
        })
        response = self.client.post("/api/v1/ai/analyze-driver-license", json={"frontImageBase64": "QUJD"})
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["licenseClasses"], ["B", "C"])

        messages = self.openai.chat.completions.create.call_args.kwargs["messages"]
        image_part = messages[0]["content"][0]
        self.assertEqual(image_part["image_url"]["url"], "data:image/jpeg;base64,QUJD")

    def test_national_id(self):
        self.openai.chat.completions.create.return_value = completion({"firstName": "Дорж", "registerNumber": "УБ12345678"})
        response = self.client.post("/api/v1/ai/analyze-national-id",
                                    json={"backImageBase64": "data:image/png;base64,QUJD"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["registerNumber"], "УБ12345678")

    def test_malformed_output_is_500(self):
        self.openai.chat.completions.create.return_value = completion("not json")
        response = self.client.post("/api/v1/ai/loading-checklist",
                                    json={"cargoInfo": "Cement", "vehicleInfo": "Truck"})
        self.assertEqual(response.status_code, 500)

    def test_empty_checklist_is_500(self):
        self.openai.chat.completions.create.return_value = completion({"checklistItems": []})
        response = self.client.post("/api/v1/ai/unloading-checklist",
                                    json={"cargoInfo": "Cement", "vehicleInfo": "Truck"})
        self.assertEqual(response.status_code, 500)

    def test_not_configured_is_503(self):
        with patch("tms_api.services.openai_client.client", None):
            response = self.client.post("/api/v1/ai/loading-checklist",
                                        json={"cargoInfo": "Cement", "vehicleInfo": "Truck"})
        self.assertEqual(response.status_code, 503)


class TestSheetRows(unittest.TestCase):
    def setUp(self):
        self.lookups = {
            "warehouses": {"w1": "Central WH"},
            "vehicle_types": {"vt": "Heavy truck"},
            "trailer_types": {},
        }
        self.now = datetime(2024, 5, 3, 14, 30, 0)

    def test_quote_row_has_fourteen_columns(self):
        order = {"orderNumber": "ORD-20240503-0001", "customerName": "Tavan Bogd"}
        item = {"startWarehouseId": "w1", "endWarehouseId": "w2", "vehicleTypeId": "vt", "trailerTypeId": "tt",
                "profitMargin": 10, "withVAT": True,
                "cargoItems": [{"name": "Cement", "quantity": 20.0, "unit": "t"}, {"name": "Sand", "quantity": 5, "unit": "t"}]}
        quote = {"driverName": "Bold", "driverPhone": "88112233", "price": 1000}

        row = sheets_client.quote_sheet_row(order, item, quote, self.lookups, self.now)
        self.assertEqual(len(row), 14)
        self.assertEqual(row[0], "2024-05-03 14:30:00")
        self.assertEqual(row[3], "Central WH")
        # Unknown names fall back to the id
        self.assertEqual(row[4], "w2")
        self.assertEqual(row[5], "20t Cement, 5t Sand")
        self.assertEqual(row[6], "Heavy truck, tt")
        self.assertAlmostEqual(row[10], 110)
        self.assertAlmostEqual(row[11], 100)
        self.assertAlmostEqual(row[12], 1210)

    def test_sent_time_is_local(self):
        row = sheets_client.quote_sheet_row({}, {}, {"price": 0}, self.lookups, utc(2024, 5, 3, 20, 5))
        self.assertEqual(row[0], "2024-05-04 04:05:00")

    def test_execution_row_has_sixteen_columns(self):
        contract = {"contractNumber": "CT-7", "customerName": "Tavan Bogd", "route": {"totalDistance": 560}}
        execution = {
            "date": utc(2024, 5, 1), "driverName": "Bold", "selectedCargo": ["Coal"], "status": "Delivered",
            "totalLoadedWeight": 40, "totalUnloadedWeight": 39.5,
            "statusHistory": [{"status": "Loaded", "date": utc(2024, 5, 1, 9, 15)},
                              {"status": "Delivered", "date": utc(2024, 5, 2, 18, 0)}],
        }
        related = {"startRegionName": "UB", "startWarehouseName": "Central WH",
                   "endRegionName": "Darkhan", "endWarehouseName": "North WH"}

        row = sheets_client.contracted_execution_row(contract, execution, related, self.now)
        self.assertEqual(len(row), 16)
        self.assertEqual(row[2], "2024-05-01")
        self.assertEqual(row[5], "N/A")
        self.assertEqual(row[6], "UB, Central WH")
        # Stored in UTC, written in Ulaanbaatar time (UTC+8)
        self.assertEqual(row[9], "2024-05-01 17:15")
        self.assertEqual(row[10], "2024-05-03 02:00")
        self.assertAlmostEqual(row[13], 0.5)
        self.assertEqual(row[15], "Хүргэгдсэн")

    def test_execution_row_placeholders(self):
        row = sheets_client.contracted_execution_row({}, {"status": "Pending"}, {}, self.now)
        self.assertEqual(len(row), 16)
        self.assertEqual((row[2], row[4], row[9], row[10]), ("N/A", "N/A", "-", "-"))


class TestSheetsExport(ApiTestCase):
    def setUp(self):
        super().setUp()
        order_id = store.create_document(self.db, store.ORDERS, {"orderNumber": "ORD-1", "customerName": "C"})
        item_id = store.create_document(self.db, store.ORDER_ITEMS, {"orderId": order_id, "profitMargin": 0})
        self.quote_id = store.create_document(self.db, store.DRIVER_QUOTES,
                                              {"orderItemId": item_id, "driverName": "Bold", "price": 500})

    def test_not_configured_is_503(self):
        with patch.object(settings, "GOOGLE_SHEET_ID", None):
            response = self.client.post(f"/api/v1/quotes/{self.quote_id}/send-to-sheet")
        self.assertEqual(response.status_code, 503)

    @patch("tms_api.services.sheets_client._session")
    def test_appends_row(self, mock_session):
        mock_session.return_value.post.return_value.json.return_value = {"updates": {"updatedRows": 1}}
        with patch.object(settings, "GOOGLE_SHEET_ID", "sheet-1"), patch.object(settings, "GOOGLE_SHEET_NAME", "Quotes"):
            response = self.client.post(f"/api/v1/quotes/{self.quote_id}/send-to-sheet")
        self.assertEqual(response.status_code, 200, response.text)

        args, kwargs = mock_session.return_value.post.call_args
        self.assertIn("/spreadsheets/sheet-1/values/Quotes:append", args[0])
        self.assertEqual(kwargs["params"], {"valueInputOption": "USER_ENTERED"})
        self.assertEqual(len(kwargs["json"]["values"][0]), 14)
        mock_session.return_value.close.assert_called_once()

    @patch("tms_api.services.sheets_client._session")
    def test_api_failure_is_500(self, mock_session):
        mock_session.return_value.post.return_value.raise_for_status.side_effect = requests.HTTPError("403")
        with patch.object(settings, "GOOGLE_SHEET_ID", "sheet-1"), patch.object(settings, "GOOGLE_SHEET_NAME", "Quotes"):
            response = self.client.post(f"/api/v1/quotes/{self.quote_id}/send-to-sheet")
        self.assertEqual(response.status_code, 500)
        mock_session.return_value.close.assert_called_once()

    @patch("tms_api.services.sheets_client._session")
    def test_unreadable_reply_is_500(self, mock_session):
        mock_session.return_value.post.return_value.json.side_effect = ValueError("Expecting value")
        with patch.object(settings, "GOOGLE_SHEET_ID", "sheet-1"), patch.object(settings, "GOOGLE_SHEET_NAME", "Quotes"):
            response = self.client.post(f"/api/v1/quotes/{self.quote_id}/send-to-sheet")
        self.assertEqual(response.status_code, 500)


class TestQuoteDocuments(unittest.TestCase):
    def setUp(self):
        self.order = {"customerName": "Tavan Bogd LLC", "employeeName": "Bat Dorj",
                      "employeeEmail": "dorj@example.com", "employeePhone": "99112233"}
        self.items = [{
            "serviceTypeId": "s1", "startWarehouseId": "w1", "endWarehouseId": "w2", "totalDistance": 220,
            "finalPrice": 1210, "frequency": 2, "withVAT": True,
            "cargoItems": [{"name": "Cement", "quantity": 20, "unit": "t"}],
        }]
        self.lookups = {"service_types": {"s1": "FTL"}, "warehouses": {"w1": "Central WH", "w2": "North WH"}}
        self.now = datetime(2024, 5, 3)

    def test_workbook_layout(self):
        content = documents.build_quote_workbook(self.order, self.items, self.lookups, "Q1234", self.now)
        ws = load_workbook(BytesIO(content)).active
        self.assertEqual(ws["M10"].value, "Q1234")
        self.assertEqual(ws["M11"].value, "5/3/2024")
        self.assertEqual(ws["A10"].value, "Tavan Bogd LLC")
        self.assertEqual(len([c for c in ws[15] if c.value]), 13)
        self.assertEqual(ws["B16"].value, "FTL")
        self.assertAlmostEqual(ws["I16"].value, 605)
        self.assertAlmostEqual(ws["K16"].value, 1100)
        self.assertAlmostEqual(ws["M16"].value, 1210)

    def test_pdf_is_rendered(self):
        content = documents.build_quote_pdf(self.order, self.items, self.lookups, "Q1234", self.now)
        self.assertTrue(content.startswith(b"%PDF"))

    def test_empty_items_rejected(self):
        with self.assertRaises(ValueError):
            documents.build_quote_workbook(self.order, [], self.lookups, "Q1", self.now)
        with self.assertRaises(ValueError):
            documents.build_quote_pdf(self.order, [], self.lookups, "Q1", self.now)


class TestPdfEndpoint(ApiTestCase):
    def test_missing_content_is_400(self):
        response = self.client.post("/api/v1/pdf/generate", json={"htmlContent": "<p>Hi</p>"})
        self.assertEqual(response.status_code, 400)

    def test_html_rendered(self):
        response = self.client.post("/api/v1/pdf/generate",
                                    json={"htmlContent": "<h1>Report</h1><p>Body</p>", "cssContent": "h1 { color: red; }"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["content-type"], "application/pdf")
        self.assertTrue(response.content.startswith(b"%PDF"))

    def test_quote_export_without_items_is_400(self):
        order_id = store.create_document(self.db, store.ORDERS, {"orderNumber": "ORD-1"})
        response = self.client.post("/api/v1/quotes/excel", json={"orderId": order_id})
        self.assertEqual(response.status_code, 400)


class TestMapsClient(unittest.TestCase):
    @patch.object(settings, "GOOGLE_MAPS_API_KEY", "key")
    @patch("tms_api.services.maps_client.requests.get")
    def test_geocode(self, mock_get):
        mock_get.return_value.status_code = 200
        mock_get.return_value.json.return_value = {
            "status": "OK",
            "results": [{"formatted_address": "Darkhan, Mongolia", "geometry": {"location": {"lat": 49.4, "lng": 105.9}}}],
        }
        result = maps_client.geocode("Darkhan")
        self.assertTrue(result["status"])
        self.assertEqual(result["latitude"], 49.4)

    @patch.object(settings, "GOOGLE_MAPS_API_KEY", "key")
    @patch("tms_api.services.maps_client.requests.get")
    def test_route_distance(self, mock_get):
        mock_get.return_value.json.return_value = {
            "status": "OK", "rows": [{"elements": [{"status": "OK", "distance": {"value": 220400}}]}],
        }
        self.assertEqual(maps_client.route_distance_km("Ulaanbaatar", "Darkhan"), 220.4)

    @patch.object(settings, "GOOGLE_MAPS_API_KEY", None)
    def test_not_configured(self):
        self.assertFalse(maps_client.geocode("Darkhan")["status"])
        self.assertIsNone(maps_client.route_distance_km("A", "B"))


class TestOpenAiHelpers(unittest.TestCase):
    def test_data_url(self):
        self.assertEqual(openai_client.to_data_url("data:image/png;base64,AA"), "data:image/png;base64,AA")
        self.assertEqual(openai_client.to_data_url("AA"), "data:image/jpeg;base64,AA")


class TestStartup(unittest.TestCase):
    def test_upload_dir_created_on_startup(self):
        root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, root)
        upload_dir = os.path.join(root, "uploads")
        with patch.object(settings, "UPLOAD_DIR", upload_dir):
            self.assertFalse(os.path.isdir(upload_dir))
            with TestClient(app) as client:
                self.assertEqual(client.get("/").status_code, 200)
            self.assertTrue(os.path.isdir(upload_dir))

    def test_settings_read_env_file(self):
        root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, root)
        env_path = os.path.join(root, ".env")
        with open(env_path, "w", encoding="utf-8") as f:
            f.write("SHEETS_TIMEZONE=Asia/Hovd\nUNRELATED_KEY=1\n")
        self.assertEqual(Settings(_env_file=env_path).SHEETS_TIMEZONE, "Asia/Hovd")
