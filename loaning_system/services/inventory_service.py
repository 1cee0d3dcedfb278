from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from models.loan_models import Item
from services.errors import BusinessRuleViolation


def build_item(fields: dict[str, Any]) -> Item:
    total = fields.get("total_qty")
    item = Item(**{key: value for key, value in fields.items() if value is not None})
    item.qty_available = total
    item.qty_reserved = 0
    item.qty_borrowed = 0
    item.created_at = datetime.now()
    item.updated_at = datetime.now()
    return item


def apply_item_update(item: Item, fields: dict[str, Any]) -> None:
    """Copy descriptive fields onto ``item``.

    A change of ``total_qty`` moves ``qty_available`` by the same delta so the
    counters keep summing to the total. When the stored total is unknown the
    available count is recomputed from the new total instead. A total below
    what is reserved plus borrowed is refused before anything is changed.
    """
    new_total = fields.get("total_qty")
    if new_total is not None:
        committed = int(item.qty_reserved or 0) + int(item.qty_borrowed or 0)
        if new_total < committed:
            raise BusinessRuleViolation("Total quantity cannot be lower than reserved plus borrowed")
        if item.total_qty is not None and item.qty_available is not None:
            available = item.qty_available + (new_total - item.total_qty)
        else:
            available = new_total - committed
        if available < 0:
            raise BusinessRuleViolation("Total quantity cannot be lower than reserved plus borrowed")

    for field, value in fields.items():
        if field == "total_qty":
            continue
        setattr(item, field, value)

    if new_total is not None:
        item.qty_available = available
        item.total_qty = new_total
    item.updated_at = datetime.now()


def item_exists(db: Session, item_id: int) -> bool:
    return db.execute(select(Item.item_id).where(Item.item_id == item_id)).first() is not None


def serialize_item(item: Item) -> dict:
    return {
        "item_id": item.item_id,
        "item_name": item.item_name,
        "brand": item.brand,
        "model": item.model,
        "size": item.size,
        "category": item.category,
        "total_qty": item.total_qty,
        "qty_available": item.qty_available,
        "qty_reserved": item.qty_reserved,
        "qty_borrowed": item.qty_borrowed,
        "is_loanable": bool(item.is_loanable),
        "requires_approval": bool(item.requires_approval),
        "created_at": item.created_at,
        "updated_at": item.updated_at,
    }
