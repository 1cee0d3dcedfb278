import unittest
from unittest import mock

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from support import LoanDbTestCase

from models.loan_models import Item
from services.errors import MissingFieldsError, PersistenceError
from services.import_service import (
    RECONCILED_FIELDS,
    normalize_flag,
    normalize_quantity,
    normalize_record,
    reconcile_record,
    reconcile_records,
)


DRONE = {
    "item_id": 7,
    "item_name": "Drone",
    "brand": "DJI",
    "model": "Mini 3",
    "size": "",
    "category": "Aerial",
    "total_qty": "4",
    "qty_available": "4",
    "qty_reserved": "0",
    "qty_borrowed": "0",
    "is_loanable": "Yes",
    "requires_approval": "No",
}


def _reconciled(row):
    return {field: row[field] for field in RECONCILED_FIELDS}


class NormalisationTests(unittest.TestCase):
    def test_empty_numbers_become_null_not_zero(self):
        self.assertIsNone(normalize_quantity(""))
        self.assertIsNone(normalize_quantity("   "))
        self.assertIsNone(normalize_quantity(None))
        self.assertEqual(normalize_quantity("0"), 0)
        self.assertEqual(normalize_quantity("12"), 12)
        self.assertEqual(normalize_quantity(3.0), 3)

    def test_yes_means_true_everything_else_false(self):
        self.assertTrue(normalize_flag("Yes"))
        self.assertTrue(normalize_flag(" yes "))
        self.assertFalse(normalize_flag("No"))
        self.assertFalse(normalize_flag("Y"))
        self.assertFalse(normalize_flag(""))
        self.assertFalse(normalize_flag(None))

    def test_spreadsheet_headers_are_accepted(self):
        record = normalize_record({"Item ID": "9", "Item Name": " Tripod ", "Total Qty": "", "Loanable": "Yes"})
        self.assertEqual(record["item_id"], 9)
        self.assertEqual(record["item_name"], "Tripod")
        self.assertIsNone(record["total_qty"])
        self.assertTrue(record["is_loanable"])
        self.assertFalse(record["requires_approval"])

    def test_missing_or_bad_key_is_rejected(self):
        with self.assertRaises(MissingFieldsError):
            normalize_record({"item_name": "No key"})
        with self.assertRaises(MissingFieldsError):
            normalize_record({"item_id": 3, "total_qty": "many"})

    def test_fractional_values_are_rejected_not_truncated(self):
        self.assertEqual(normalize_quantity("4.0"), 4)
        for value in ("2.9", 2.9, "nan", "inf"):
            with self.assertRaises(MissingFieldsError, msg=value):
                normalize_quantity(value)
        with self.assertRaises(MissingFieldsError):
            normalize_record({"item_id": "7.5", "item_name": "Tripod"})
        with self.assertRaises(MissingFieldsError):
            normalize_record({"item_id": 7, "total_qty": "2.9"})


class ReconcileTests(LoanDbTestCase):
    def _stored(self, item_id):
        with self.session_factory() as db:
            row = db.execute(select(Item.__table__).where(Item.item_id == item_id)).mappings().first()
            return dict(row) if row else None

    def test_empty_total_is_stored_as_null(self):
        response = self.client.post("/api/import", json={"id": 7, "name": "Drone", "total": ""})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["message"], "Data imported successfully")
        self.assertIsNone(body["result"]["total_qty"])
        self.assertIsNone(self._stored(7)["total_qty"])

    def test_reconcile_is_idempotent(self):
        reconcile_record(self.db, DRONE)
        once = _reconciled(self._stored(7))
        reconcile_record(self.db, DRONE)
        twice = _reconciled(self._stored(7))
        self.assertEqual(once, twice)
        with self.session_factory() as db:
            self.assertEqual(len(db.execute(select(Item)).scalars().all()), 1)

    def test_reconcile_overwrites_every_field(self):
        reconcile_record(self.db, DRONE)
        replacement = {"item_id": 7, "item_name": "Drone v2", "total_qty": "", "is_loanable": "No"}
        result = reconcile_record(self.db, replacement)

        stored = _reconciled(self._stored(7))
        self.assertEqual(stored, _reconciled(result))
        self.assertEqual(stored["item_name"], "Drone v2")
        self.assertIsNone(stored["brand"])
        self.assertIsNone(stored["model"])
        self.assertIsNone(stored["category"])
        self.assertIsNone(stored["total_qty"])
        self.assertIsNone(stored["qty_available"])
        self.assertFalse(stored["is_loanable"])

    def test_reconcile_replaces_item_created_through_crud(self):
        created = self.client.post("/api/inventory", json={"item_name": "Old name", "total_qty": 2})
        item_id = created.json()["item_id"]
        reconcile_record(self.db, {**DRONE, "item_id": item_id})
        stored = self._stored(item_id)
        self.assertEqual(stored["item_name"], "Drone")
        self.assertEqual(stored["total_qty"], 4)

    def test_bulk_import_applies_all_records(self):
        response = self.client.post(
            "/api/import/bulk",
            json={"records": [DRONE, {"Item ID": 8, "Item Name": "Tripod", "Total Qty": "3", "Qty Available": "3"}]},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["count"], 2)
        self.assertEqual(self._stored(8)["qty_available"], 3)

    def test_bulk_import_with_bad_record_changes_nothing(self):
        with self.assertRaises(MissingFieldsError):
            reconcile_records(self.db, [DRONE, {"item_name": "No key"}])
        self.assertIsNone(self._stored(7))

    def test_bulk_import_requires_records(self):
        response = self.client.post("/api/import/bulk", json={"records": []})
        self.assertEqual(response.status_code, 400)

    def test_import_missing_key_is_400(self):
        response = self.client.post("/api/import", json={"item_name": "Drone"})
        self.assertEqual(response.status_code, 400)

    def test_fractional_key_does_not_touch_existing_item(self):
        reconcile_record(self.db, DRONE)
        before = _reconciled(self._stored(7))

        response = self.client.post("/api/import", json={"item_id": "7.5", "item_name": "Tripod", "total_qty": "2.9"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(_reconciled(self._stored(7)), before)

        response = self.client.post("/api/import", json={"item_id": 7, "item_name": "Tripod", "total_qty": "2.9"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(_reconciled(self._stored(7)), before)

    def test_database_failure_rolls_back_and_is_500(self):
        reconcile_record(self.db, DRONE)
        failure = IntegrityError("INSERT", {}, Exception("constraint failed"))
        with mock.patch("services.import_service._fetch_row", side_effect=failure):
            with self.assertLogs("loaning_system.imports", level="ERROR"):
                with self.assertRaises(PersistenceError):
                    reconcile_record(self.db, {**DRONE, "item_name": "Should not stick"})
        self.assertEqual(self._stored(7)["item_name"], "Drone")

        with mock.patch("services.import_service._fetch_row", side_effect=failure):
            response = self.client.post("/api/import", json={**DRONE, "item_name": "Nope"})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["detail"], "Server error")
        self.assertEqual(self._stored(7)["item_name"], "Drone")


if __name__ == "__main__":
    unittest.main()
