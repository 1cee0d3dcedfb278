#!/usr/bin/env python3
"""Create the loaning system tables that do not exist yet."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

APP_DIR = Path(__file__).resolve().parents[1]
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from sqlalchemy import inspect

from db.base import Base
from db.factory import build_engine
import models.loan_models  # noqa: F401


def main() -> int:
    parser = argparse.ArgumentParser(description="Create loaning system tables")
    parser.add_argument("--db-url", default=os.environ.get("LOANING_DB_URL", ""))
    args = parser.parse_args()

    db_url = (args.db_url or "").strip()
    if not db_url:
        print("LOANING_DB_URL is not set. Provide --db-url or export env first.")
        return 2

    engine = build_engine(db_url)
    before = set(inspect(engine).get_table_names())
    Base.metadata.create_all(engine)
    after = set(inspect(engine).get_table_names())

    for table in sorted(Base.metadata.tables):
        state = "created" if table in after - before else "present"
        print(f"  - {table}: {state}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
