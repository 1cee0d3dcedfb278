import unittest

from support import LoanDbTestCase

from models.loan_models import Item


class InventoryRouteTests(LoanDbTestCase):
    def test_healthchecks(self):
        self.assertEqual(self.client.get("/healthz").json(), {"status": "ok"})
        self.assertEqual(self.client.get("/api/healthz").json(), {"status": "ok"})

    def test_create_initialises_counters_from_total(self):
        response = self.client.post("/api/inventory", json={"item_name": "Camera", "total_qty": 6, "brand": "Canon"})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["item_name"], "Camera")
        self.assertEqual(body["qty_available"], 6)
        self.assertEqual(body["qty_reserved"], 0)
        self.assertEqual(body["qty_borrowed"], 0)
        self.assertTrue(body["is_loanable"])

        listing = self.client.get("/api/inventory").json()
        self.assertEqual([row["item_id"] for row in listing], [body["item_id"]])

    def test_create_requires_name_and_total(self):
        response = self.client.post("/api/inventory", json={"item_name": "Camera"})
        self.assertEqual(response.status_code, 400)

    def test_get_unknown_item_is_404(self):
        response = self.client.get("/api/inventory/404")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["detail"], "Item not found")

    def test_update_total_keeps_counters_balanced(self):
        self.add_item(42, available=2, borrowed=3)
        response = self.client.put("/api/inventory/42", json={"item_name": "Renamed", "total_qty": 8})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["item_name"], "Renamed")
        self.assertEqual(self.item_counters(42), {"available": 5, "reserved": 0, "borrowed": 3, "total": 8})

    def test_update_total_below_committed_stock_is_refused(self):
        self.add_item(42, available=2, borrowed=3)
        response = self.client.put("/api/inventory/42", json={"item_name": "Renamed", "total_qty": 1})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.item_counters(42), {"available": 2, "reserved": 0, "borrowed": 3, "total": 5})
        self.assertEqual(self.client.get("/api/inventory/42").json()["item_name"], "Item 42")

        response = self.client.put("/api/inventory/42", json={"total_qty": 3})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.item_counters(42), {"available": 0, "reserved": 0, "borrowed": 3, "total": 3})

    def test_update_total_when_stored_total_is_unknown(self):
        self.add_item(43, available=4, borrowed=1, reserved=1, total=None)
        with self.session_factory() as db:
            item = db.get(Item, 43)
            item.total_qty = None
            db.commit()

        response = self.client.put("/api/inventory/43", json={"total_qty": 9})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.item_counters(43), {"available": 7, "reserved": 1, "borrowed": 1, "total": 9})

    def test_update_unknown_item_is_404(self):
        response = self.client.put("/api/inventory/404", json={"item_name": "Ghost", "total_qty": 1})
        self.assertEqual(response.status_code, 404)

    def test_delete_item(self):
        self.add_item(42, available=1)
        response = self.client.delete("/api/inventory/42")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": "Item deleted successfully"})
        self.assertIsNone(self.item_counters(42))
        self.assertEqual(self.client.delete("/api/inventory/42").status_code, 404)


if __name__ == "__main__":
    unittest.main()
