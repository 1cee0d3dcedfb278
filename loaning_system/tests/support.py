import os
import sys
import unittest
from pathlib import Path

from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool


os.environ.setdefault("LOANING_DB_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("CORS_ALLOW_ORIGINS", "http://localhost")

APP_DIR = Path(__file__).resolve().parents[1]
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

import LoanApp as app_module
from db.base import Base
from db.deps import get_loan_db, get_loan_session_factory
from db.factory import build_engine, build_session_factory
from models.loan_models import Item, Student


class LoanDbTestCase(unittest.TestCase):
    """Fresh in-memory database per test, wired into the app's dependencies."""

    def setUp(self):
        self.engine = build_engine(
            "sqlite+pysqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(self.engine)
        self.session_factory = build_session_factory(self.engine)
        self.db = self.session_factory()

        def override_get_db():
            db = self.session_factory()
            try:
                yield db
            finally:
                db.close()

        app_module.app.dependency_overrides[get_loan_db] = override_get_db
        app_module.app.dependency_overrides[get_loan_session_factory] = lambda: self.session_factory
        self.client = TestClient(app_module.app)

    def tearDown(self):
        app_module.app.dependency_overrides.clear()
        self.db.close()
        Base.metadata.drop_all(self.engine)
        self.engine.dispose()

    def add_item(self, item_id, available, borrowed=0, reserved=0, total=None, **fields):
        item = Item(
            item_id=item_id,
            item_name=fields.pop("item_name", f"Item {item_id}"),
            total_qty=available + reserved + borrowed if total is None else total,
            qty_available=available,
            qty_reserved=reserved,
            qty_borrowed=borrowed,
            **fields,
        )
        self.db.add(item)
        self.db.commit()
        return item

    def add_student(self, email="s1@example.edu", **fields):
        student = Student(email=email, **fields)
        self.db.add(student)
        self.db.commit()
        return student

    def item_counters(self, item_id):
        with self.session_factory() as db:
            item = db.get(Item, item_id)
            if item is None:
                return None
            return {
                "available": item.qty_available,
                "reserved": item.qty_reserved,
                "borrowed": item.qty_borrowed,
                "total": item.total_qty,
            }
