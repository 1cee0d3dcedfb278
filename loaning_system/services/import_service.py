from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.upsert import dialect_insert
from models.loan_models import Item
from services.errors import MissingFieldsError, PersistenceError


IMPORT_LOGGER = logging.getLogger("loaning_system.imports")

NUMERIC_FIELDS = ("total_qty", "qty_available", "qty_reserved", "qty_borrowed")
FLAG_FIELDS = ("is_loanable", "requires_approval")
TEXT_FIELDS = ("item_name", "brand", "model", "size", "category")
RECONCILED_FIELDS = TEXT_FIELDS + NUMERIC_FIELDS + FLAG_FIELDS

# Spreadsheet headers and camelCase keys accepted for each column.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "item_id": ("item_id", "itemId", "itemID", "Item ID", "id", "ID"),
    "item_name": ("item_name", "itemName", "Item Name", "name", "Name"),
    "brand": ("brand", "Brand"),
    "model": ("model", "Model"),
    "size": ("size", "Size"),
    "category": ("category", "Category"),
    "total_qty": ("total_qty", "totalQty", "Total Qty", "Total Quantity", "total"),
    "qty_available": ("qty_available", "qtyAvailable", "Qty Available", "Available"),
    "qty_reserved": ("qty_reserved", "qtyReserved", "Qty Reserved", "Reserved"),
    "qty_borrowed": ("qty_borrowed", "qtyBorrowed", "Qty Borrowed", "Borrowed"),
    "is_loanable": ("is_loanable", "isLoanable", "Loanable", "Is Loanable"),
    "requires_approval": ("requires_approval", "requiresApproval", "Requires Approval", "Approval Required"),
}


def _whole_number(value: Any) -> int:
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(value) from None
    # Spreadsheets export whole numbers as "4.0".
    if not number.is_integer():
        raise ValueError(value)
    return int(number)


def normalize_quantity(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    text_value = value if isinstance(value, (int, float)) else str(value).strip()
    if text_value == "":
        return None
    try:
        return _whole_number(text_value)
    except ValueError:
        raise MissingFieldsError(f"Invalid quantity value: {text_value}") from None


def normalize_item_id(value: Any) -> int:
    item_id = normalize_quantity(value)
    if item_id is None:
        raise MissingFieldsError("Missing item identifier")
    return item_id


def normalize_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() == "yes"


def _normalize_text(value: Any) -> str | None:
    if value is None:
        return None
    text_value = str(value).strip()
    return text_value or None


def _pick(raw: dict[str, Any], field: str) -> Any:
    for key in FIELD_ALIASES[field]:
        if key in raw:
            return raw[key]
    return None


def normalize_record(raw: dict[str, Any]) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise MissingFieldsError("Import record must be an object")
    item_id = normalize_item_id(_pick(raw, "item_id"))

    record: dict[str, Any] = {"item_id": item_id}
    for field in TEXT_FIELDS:
        record[field] = _normalize_text(_pick(raw, field))
    for field in NUMERIC_FIELDS:
        record[field] = normalize_quantity(_pick(raw, field))
    for field in FLAG_FIELDS:
        record[field] = normalize_flag(_pick(raw, field))
    return record


def _upsert_statement(db: Session, record: dict[str, Any]):
    now = datetime.now()
    stmt = dialect_insert(db, Item.__table__).values(**record, created_at=now, updated_at=now)
    return stmt.on_conflict_do_update(
        index_elements=["item_id"],
        set_={**{field: stmt.excluded[field] for field in RECONCILED_FIELDS}, "updated_at": now},
    )


def _fetch_row(db: Session, item_id: int) -> dict[str, Any] | None:
    row = db.execute(select(Item.__table__).where(Item.item_id == item_id)).mappings().first()
    return dict(row) if row else None


def reconcile_record(db: Session, raw: dict[str, Any]) -> dict[str, Any]:
    """Insert the record, or overwrite every reconciled column of the existing row.

    Applying the same record twice leaves the same stored row.
    """
    record = normalize_record(raw)
    try:
        db.execute(_upsert_statement(db, record))
        stored = _fetch_row(db, record["item_id"])
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        IMPORT_LOGGER.exception("Import failed item_id=%s", record["item_id"])
        raise PersistenceError() from exc
    IMPORT_LOGGER.info("Import reconciled item_id=%s", record["item_id"])
    return stored


def reconcile_records(db: Session, raw_records: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    records = [normalize_record(raw) for raw in raw_records]
    stored: list[dict[str, Any]] = []
    try:
        for record in records:
            db.execute(_upsert_statement(db, record))
            stored.append(_fetch_row(db, record["item_id"]))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        IMPORT_LOGGER.exception("Bulk import failed records=%s", len(records))
        raise PersistenceError() from exc
    IMPORT_LOGGER.info("Bulk import reconciled records=%s", len(stored))
    return stored
