from io import BytesIO

from openpyxl import Workbook

from api_case import ApiTestCase
from tms_api.data import store
from tms_api.services import assignments


class TestAssignments(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.driver_id = self.make_driver()
        self.vehicle_a = self.make_vehicle("1111УБА")
        self.vehicle_b = self.make_vehicle("2222УБА")

    def driver(self):
        return store.get_document(self.db, store.DRIVERS, self.driver_id)

    def vehicle(self, vehicle_id):
        return store.get_document(self.db, store.VEHICLES, vehicle_id)

    def assign(self, vehicle_id, keep_existing=False):
        response = self.client.post(f"/api/v1/drivers/{self.driver_id}/assign-vehicle", json={
            "vehicleId": vehicle_id, "assignedBy": "admin", "keepExisting": keep_existing,
        })
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()["assignmentId"]

    def test_assign_sets_driver_and_vehicle(self):
        self.assign(self.vehicle_a)
        self.assertEqual(self.driver()["assignedVehicleId"], self.vehicle_a)
        self.assertEqual(self.driver()["status"], "Active")
        vehicle = self.vehicle(self.vehicle_a)
        self.assertEqual(vehicle["status"], "In Use")
        self.assertEqual(vehicle["driverName"], "Ganbold")

        primary = self.client.get(f"/api/v1/vehicles/{self.vehicle_a}/primary-assignment").json()["assignment"]
        self.assertEqual(primary["driverId"], self.driver_id)
        self.assertEqual(primary["startOdometer"], 1000)

    def test_reassign_ends_previous_assignment(self):
        self.assign(self.vehicle_a)
        self.assign(self.vehicle_b)
        self.assertEqual(self.vehicle(self.vehicle_a)["status"], "Available")
        self.assertIsNone(self.vehicle(self.vehicle_a)["driverId"])
        history = self.client.get(f"/api/v1/drivers/{self.driver_id}/assignments").json()
        self.assertEqual(sorted(a["status"] for a in history), ["Active", "Ended"])

    def test_keep_existing_parks_previous_vehicle(self):
        self.assign(self.vehicle_a)
        self.assign(self.vehicle_b, keep_existing=True)
        self.assertEqual(self.vehicle(self.vehicle_a)["status"], "Ready")
        active = list(self.db[store.ASSIGNMENT_HISTORY].find({"driverId": self.driver_id, "status": "Active"}))
        self.assertEqual(len(active), 2)
        self.assertEqual(sum(1 for a in active if a["isPrimary"]), 1)

    def test_set_primary_switches_between_kept_vehicles(self):
        self.assign(self.vehicle_a)
        self.assign(self.vehicle_b, keep_existing=True)
        response = self.client.post(f"/api/v1/drivers/{self.driver_id}/primary-vehicle",
                                    json={"vehicleId": self.vehicle_a, "updatedBy": "admin"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["assignedVehicleId"], self.vehicle_a)
        self.assertEqual(self.vehicle(self.vehicle_a)["status"], "In Use")
        self.assertEqual(self.vehicle(self.vehicle_b)["status"], "Ready")

    def test_force_primary_takes_vehicle_from_other_driver(self):
        other_id = self.make_driver("Tuvshin")
        assignments.assign_vehicle(self.db, store.get_document(self.db, store.DRIVERS, other_id),
                                   self.vehicle(self.vehicle_a), "admin")
        self.assign(self.vehicle_b)
        # Keep a second, non-primary assignment on vehicle A for this driver
        self.db[store.ASSIGNMENT_HISTORY].insert_one({
            "vehicleId": self.vehicle_a, "driverId": self.driver_id, "status": "Active", "isPrimary": False,
        })

        assignments.set_primary_vehicle(self.db, self.driver_id, self.vehicle_a, "admin", force=True)
        self.assertIsNone(store.get_document(self.db, store.DRIVERS, other_id)["assignedVehicleId"])
        primary = assignments.get_vehicle_primary_assignment(self.db, self.vehicle_a)
        self.assertEqual(primary["driverId"], self.driver_id)

    def test_unassign_frees_vehicle(self):
        self.assign(self.vehicle_a)
        response = self.client.post(f"/api/v1/drivers/{self.driver_id}/unassign-vehicle",
                                    json={"vehicleId": self.vehicle_a, "unassignedBy": "admin", "endOdometer": 1500})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.vehicle(self.vehicle_a)["status"], "Available")
        self.assertIsNone(self.driver()["assignedVehicleId"])
        ended = self.db[store.ASSIGNMENT_HISTORY].find_one({"vehicleId": self.vehicle_a})
        self.assertEqual(ended["status"], "Ended")
        self.assertEqual(ended["endOdometer"], 1500)

    def test_license_check(self):
        truck_type = self.make_reference("vehicle_types", "Heavy truck")
        truck = self.make_vehicle("3333УБА", vehicle_type_id=truck_type)
        b_driver = self.make_driver("Saraa", classes=("B",))

        ok = self.client.post(f"/api/v1/drivers/{self.driver_id}/license-check", json={"vehicleId": truck}).json()
        self.assertTrue(ok["isValid"])
        bad = self.client.post(f"/api/v1/drivers/{b_driver}/license-check", json={"vehicleId": truck}).json()
        self.assertFalse(bad["isValid"])
        trailer = self.client.post(f"/api/v1/drivers/{self.driver_id}/license-check",
                                   json={"vehicleId": truck, "trailerAttached": True}).json()
        self.assertFalse(trailer["isValid"])


class TestVehiclesAndDrivers(ApiTestCase):
    def test_vehicle_crud_and_status_filter(self):
        payload = {"makeId": "m", "modelId": "md", "year": 2019, "licensePlate": "5555УНА", "vin": "VIN5",
                   "vehicleTypeId": "t", "capacity": "25t"}
        created = self.client.post("/api/v1/vehicles/", json=payload)
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["status"], "Available")

        duplicate = self.client.post("/api/v1/vehicles/", json=payload)
        self.assertEqual(duplicate.status_code, 400)

        self.assertEqual(len(self.client.get("/api/v1/vehicles/?status=Available").json()), 1)
        self.assertEqual(self.client.get("/api/v1/vehicles/?status=Maintenance").json(), [])

        vehicle_id = created.json()["id"]
        self.assertEqual(self.client.delete(f"/api/v1/vehicles/{vehicle_id}").status_code, 200)
        self.assertEqual(self.client.get(f"/api/v1/vehicles/{vehicle_id}").status_code, 404)

    def test_driver_license_classes_normalized(self):
        response = self.client.post("/api/v1/drivers/", json={
            "display_name": "Bat", "phone_number": "99119911", "registerNumber": "УБ99887766",
            "licenseNumber": "L-9", "licenseClasses": ["b", " ce"],
        })
        self.assertEqual(response.status_code, 201, response.text)
        self.assertEqual(response.json()["licenseClasses"], ["B", "CE"])
        self.assertIsNone(response.json()["assignedVehicleId"])


class TestCustomers(ApiTestCase):
    def test_list_search_and_paging(self):
        for name in ("Alpha Trade", "Altai Cargo", "Bayan Group"):
            self.client.post("/api/v1/customers/", json={"name": name, "registerNumber": name[:3]})

        body = self.client.get("/api/v1/customers/?search=al").json()
        self.assertEqual(body["total"], 2)
        paged = self.client.get("/api/v1/customers/?page=2&limit=2").json()
        self.assertEqual(len(paged["items"]), 1)
        self.assertEqual(paged["total"], 3)

    def test_employees(self):
        customer_id = self.make_customer()
        created = self.client.post(f"/api/v1/customers/{customer_id}/employees", json={
            "lastName": "Bat", "firstName": "Dorj", "phone": "99112233",
        })
        self.assertEqual(created.status_code, 201)
        employees = self.client.get(f"/api/v1/customers/{customer_id}/employees").json()
        self.assertEqual(len(employees), 1)

        other_customer = self.make_customer("Other")
        response = self.client.delete(f"/api/v1/customers/{other_customer}/employees/{created.json()['id']}")
        self.assertEqual(response.status_code, 404)

    def test_excel_import_reports_row_errors(self):
        wb = Workbook()
        ws = wb.active
        ws.append(["name", "registerNumber", "email", "address"])
        ws.append(["Gobi Mining", "6011223", "info@gobi.mn", "Dalanzadgad"])
        ws.append(["No Register", None, None, None])
        ws.append(["Bad Mail", "6011224", "not-an-email", None])
        buffer = BytesIO()
        wb.save(buffer)

        response = self.client.post(
            "/api/v1/customers/import-excel",
            files={"file": ("customers.xlsx", buffer.getvalue(),
                            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")},
        )
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertEqual(len(body["createdIds"]), 1)
        self.assertEqual([e["row"] for e in body["errors"]], [3, 4])
        self.assertEqual(self.db[store.CUSTOMERS].count_documents({}), 1)

    def test_excel_import_rejects_other_files(self):
        response = self.client.post("/api/v1/customers/import-excel",
                                    files={"file": ("customers.csv", b"name\nA", "text/csv")})
        self.assertEqual(response.status_code, 400)
