#!/usr/bin/env python3
"""Upsert inventory rows from a spreadsheet CSV export into hub_inv."""

from __future__ import annotations

import argparse
import csv
import os
import sys
from pathlib import Path

APP_DIR = Path(__file__).resolve().parents[1]
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from db.factory import build_engine, build_session_factory
from services.errors import LoanServiceError
from services.import_service import reconcile_records


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Insert or overwrite hub_inv rows from a CSV export, keyed by item ID.",
    )
    parser.add_argument("csv_path", help="CSV file with a header row (Item ID, Item Name, Total Qty, ...)")
    parser.add_argument(
        "--db-url",
        default=os.environ.get("LOANING_DB_URL", "").strip(),
        help="SQLAlchemy DB URL; defaults to LOANING_DB_URL env var.",
    )
    parser.add_argument("--encoding", default="utf-8-sig")
    return parser


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    if not args.db_url:
        parser.error("Missing DB URL. Set LOANING_DB_URL or pass --db-url.")
    csv_path = Path(args.csv_path)
    if not csv_path.is_file():
        parser.error(f"CSV file not found: {csv_path}")

    with csv_path.open(newline="", encoding=args.encoding) as handle:
        rows = [row for row in csv.DictReader(handle) if any((value or "").strip() for value in row.values())]
    if not rows:
        print("No rows to import.")
        return 0

    session_factory = build_session_factory(build_engine(args.db_url))
    db = session_factory()
    try:
        stored = reconcile_records(db, rows)
    except LoanServiceError as exc:
        print(f"Import failed: {exc.message}")
        return 1
    finally:
        db.close()

    print(f"OK imported={len(stored)} source={csv_path.name}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
