import json
from unittest.mock import MagicMock, patch

from api_case import ApiTestCase
from tms_api.data import store


def completion(payload):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = json.dumps(payload, ensure_ascii=False)
    return response


class TestShipments(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.item_id = store.create_document(self.db, store.ORDER_ITEMS, {"orderId": "o1", "status": "Shipped"})
        store.create_document(self.db, store.ORDER_ITEM_CARGOES, {"orderItemId": self.item_id, "name": "Coal"})
        self.shipment_id = store.create_document(self.db, store.SHIPMENTS, {
            "shipmentNumber": "SHP-202405-0001", "orderItemId": self.item_id, "status": "Preparing",
            "checklist": {"loading": [], "unloading": []},
        })

    def test_get_with_cargoes(self):
        shipment = self.client.get(f"/api/v1/shipments/{self.shipment_id}").json()
        self.assertEqual(shipment["cargoItems"][0]["name"], "Coal")

    def test_unknown_id_is_404(self):
        self.assertEqual(self.client.get("/api/v1/shipments/not-an-id").status_code, 404)

    def test_status_mirrors_to_order_item(self):
        response = self.client.patch(f"/api/v1/shipments/{self.shipment_id}/status", json={"status": "In Transit"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "In Transit")
        self.assertEqual(store.get_document(self.db, store.ORDER_ITEMS, self.item_id)["status"], "In Transit")

    def test_any_status_may_be_set(self):
        self.client.patch(f"/api/v1/shipments/{self.shipment_id}/status", json={"status": "Delivered"})
        response = self.client.patch(f"/api/v1/shipments/{self.shipment_id}/status", json={"status": "Loading"})
        self.assertEqual(response.status_code, 200)
        # Loading is not mirrored, the item keeps the last mirrored status
        self.assertEqual(store.get_document(self.db, store.ORDER_ITEMS, self.item_id)["status"], "Delivered")

    def test_invalid_status(self):
        response = self.client.patch(f"/api/v1/shipments/{self.shipment_id}/status", json={"status": "Lost"})
        self.assertEqual(response.status_code, 422)

    def test_timeline(self):
        body = self.client.get(f"/api/v1/shipments/{self.shipment_id}/timeline").json()
        self.assertEqual(len(body["steps"]), 6)
        self.assertTrue(body["steps"][0]["current"])

    def test_generated_checklist_is_stored(self):
        mock_client = MagicMock()
        mock_client.chat.completions.create.return_value = completion(
            {"checklistItems": ["Дугуй шалгах", "Ачаа бэхлэх", "Гэрэл шалгах", "Бичиг баримт"]}
        )
        with patch("tms_api.services.openai_client.client", mock_client):
            response = self.client.post(f"/api/v1/shipments/{self.shipment_id}/checklist/loading",
                                        json={"cargoInfo": "20t coal", "vehicleInfo": "Truck"})
        self.assertEqual(response.status_code, 200, response.text)
        loading = response.json()["checklist"]["loading"]
        self.assertEqual(len(loading), 4)
        self.assertEqual(loading[0], {"text": "Дугуй шалгах", "checked": False})


class TestContracts(ApiTestCase):
    def setUp(self):
        super().setUp()
        quote_id = store.create_document(self.db, store.DRIVER_QUOTES, {"price": 750000, "driverName": "Bold"})
        self.shipment_id = store.create_document(self.db, store.SHIPMENTS, {
            "shipmentNumber": "SHP-202405-0002", "customerName": "Tavan Bogd LLC", "status": "Preparing",
            "driverInfo": {"name": "Bold", "phone": "88112233", "quoteId": quote_id},
        })

    def test_contract_sign_once(self):
        contract = self.client.post("/api/v1/contracts/", json={"shipmentId": self.shipment_id, "terms": "x"}).json()
        self.assertEqual(contract["status"], "pending")
        self.assertEqual(contract["price"], 750000)
        self.assertEqual(contract["driverName"], "Bold")

        signature = {"signatureDataUrl": "data:image/png;base64,iVBORw0KGgo="}
        signed = self.client.post(f"/api/v1/contracts/{contract['id']}/sign", json=signature)
        self.assertEqual(signed.status_code, 200)
        self.assertEqual(signed.json()["status"], "signed")
        self.assertIsNotNone(signed.json()["signedAt"])

        again = self.client.post(f"/api/v1/contracts/{contract['id']}/sign", json=signature)
        self.assertEqual(again.status_code, 400)

    def test_signature_must_be_image_data_url(self):
        contract = self.client.post("/api/v1/contracts/", json={"shipmentId": self.shipment_id}).json()
        response = self.client.post(f"/api/v1/contracts/{contract['id']}/sign",
                                    json={"signatureDataUrl": "https://example.com/sig.png"})
        self.assertEqual(response.status_code, 422)

    def test_safety_briefing_sign_records_user_agent(self):
        briefing = self.client.post("/api/v1/contracts/safety-briefings",
                                    json={"shipmentId": self.shipment_id}).json()
        self.assertTrue(briefing["items"])
        response = self.client.post(f"/api/v1/contracts/safety-briefings/{briefing['id']}/sign",
                                    json={"signatureDataUrl": "data:image/png;base64,AAAA", "userAgent": "Mobile"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["userAgent"], "Mobile")
        self.assertEqual(response.json()["status"], "signed")
