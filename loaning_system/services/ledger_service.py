from __future__ import annotations

import logging
import os
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.loan_models import BorrowedItem, BorrowRequest, Item, Student
from services.errors import (
    BusinessRuleViolation,
    InsufficientStockError,
    InventoryInvariantError,
    LoanServiceError,
    MissingFieldsError,
    NotFoundError,
    PersistenceError,
)


LEDGER_LOGGER = logging.getLogger("loaning_system.ledger")

PENDING_STATUS = "Pending"


def strict_returns_enabled() -> bool:
    raw = os.environ.get("LOANING_STRICT_RETURNS", "true")
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


def _require_whole_number(value) -> int:
    if value in (None, "") or isinstance(value, bool):
        raise MissingFieldsError()
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise MissingFieldsError() from None
    # int() truncates 2.5 to 2.
    if not isinstance(value, str) and number != value:
        raise MissingFieldsError()
    return number


def _require_reference(value) -> int:
    return _require_whole_number(value)


def _require_positive_quantity(value) -> int:
    quantity = _require_whole_number(value)
    if quantity <= 0:
        raise MissingFieldsError("Quantity must be a positive integer")
    return quantity


def _assert_counters_balanced(db: Session, item_id: int) -> None:
    row = db.execute(
        select(Item.total_qty, Item.qty_available, Item.qty_reserved, Item.qty_borrowed).where(Item.item_id == item_id)
    ).first()
    if row is None or any(value is None for value in row):
        return
    total, available, reserved, borrowed = row
    if available + reserved + borrowed != total:
        LEDGER_LOGGER.warning(
            "Counter drift item_id=%s total=%s available=%s reserved=%s borrowed=%s",
            item_id,
            total,
            available,
            reserved,
            borrowed,
        )
        raise InventoryInvariantError()


def _missing_item_or(db: Session, item_id: int, error: LoanServiceError) -> LoanServiceError:
    if db.get(Item, item_id) is None:
        return NotFoundError("Item not found")
    return error


def borrow_item(db: Session, item_id, student_id, quantity, purpose: str | None = None) -> BorrowRequest:
    """Move ``quantity`` units from available to borrowed and record a Pending request.

    The availability check and the decrement are one conditional UPDATE, so
    concurrent borrowers serialise on the item row and can never overdraw it.
    Nothing persists unless every step succeeds.
    """
    item_id = _require_reference(item_id)
    student_id = _require_reference(student_id)
    quantity = _require_positive_quantity(quantity)

    try:
        if db.get(Student, student_id) is None:
            raise NotFoundError("Student not found")

        now = datetime.now()
        result = db.execute(
            update(Item)
            .where(Item.item_id == item_id)
            .where(Item.qty_available >= quantity)
            .values(
                qty_available=Item.qty_available - quantity,
                qty_borrowed=func.coalesce(Item.qty_borrowed, 0) + quantity,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise _missing_item_or(db, item_id, InsufficientStockError())

        request = BorrowRequest(
            student_id=student_id,
            item_id=item_id,
            quantity=quantity,
            status=PENDING_STATUS,
            purpose=purpose,
            created_at=now,
        )
        request.BorrowedItems.append(
            BorrowedItem(
                student_id=student_id,
                item_id=item_id,
                quantity_borrowed=quantity,
                quantity_returned=0,
                created_at=now,
                updated_at=now,
            )
        )
        db.add(request)
        db.flush()
        _assert_counters_balanced(db, item_id)
        db.commit()
    except LoanServiceError as exc:
        db.rollback()
        LEDGER_LOGGER.warning(
            "Borrow rejected item_id=%s student_id=%s quantity=%s reason=%s",
            item_id,
            student_id,
            quantity,
            exc.message,
        )
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        LEDGER_LOGGER.exception("Borrow failed item_id=%s student_id=%s quantity=%s", item_id, student_id, quantity)
        raise PersistenceError() from exc

    LEDGER_LOGGER.info(
        "Borrow committed item_id=%s student_id=%s quantity=%s request_id=%s",
        item_id,
        student_id,
        quantity,
        request.request_id,
    )
    return request


def return_item(db: Session, item_id, student_id, quantity) -> dict:
    """Move ``quantity`` units back to available and credit the oldest open ledger entry.

    With strict returns the item-level update refuses to take ``qty_borrowed``
    below zero. The ledger entry is only credited when it has enough
    outstanding quantity; otherwise that part is a no-op.
    """
    item_id = _require_reference(item_id)
    student_id = _require_reference(student_id)
    quantity = _require_positive_quantity(quantity)
    strict = strict_returns_enabled()

    try:
        now = datetime.now()
        stmt = (
            update(Item)
            .where(Item.item_id == item_id)
            .values(
                qty_available=func.coalesce(Item.qty_available, 0) + quantity,
                qty_borrowed=func.coalesce(Item.qty_borrowed, 0) - quantity,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if strict:
            stmt = stmt.where(Item.qty_borrowed >= quantity)
        result = db.execute(stmt)
        if result.rowcount == 0:
            raise _missing_item_or(db, item_id, BusinessRuleViolation("Return quantity exceeds borrowed quantity"))

        entry_id = db.execute(
            select(BorrowedItem.borrowed_item_id)
            .where(BorrowedItem.student_id == student_id)
            .where(BorrowedItem.item_id == item_id)
            .where(BorrowedItem.quantity_returned + quantity <= BorrowedItem.quantity_borrowed)
            .order_by(BorrowedItem.borrowed_item_id)
            .limit(1)
        ).scalar()
        ledger_matched = False
        if entry_id is not None:
            ledger = db.execute(
                update(BorrowedItem)
                .where(BorrowedItem.borrowed_item_id == entry_id)
                .where(BorrowedItem.quantity_returned + quantity <= BorrowedItem.quantity_borrowed)
                .values(quantity_returned=BorrowedItem.quantity_returned + quantity, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            ledger_matched = ledger.rowcount > 0

        _assert_counters_balanced(db, item_id)
        db.commit()
    except LoanServiceError as exc:
        db.rollback()
        LEDGER_LOGGER.warning(
            "Return rejected item_id=%s student_id=%s quantity=%s reason=%s",
            item_id,
            student_id,
            quantity,
            exc.message,
        )
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        LEDGER_LOGGER.exception("Return failed item_id=%s student_id=%s quantity=%s", item_id, student_id, quantity)
        raise PersistenceError() from exc

    if not ledger_matched:
        LEDGER_LOGGER.warning(
            "Return did not match a ledger entry item_id=%s student_id=%s quantity=%s",
            item_id,
            student_id,
            quantity,
        )
    LEDGER_LOGGER.info("Return committed item_id=%s student_id=%s quantity=%s", item_id, student_id, quantity)
    return {"itemID": item_id, "studentID": student_id, "quantity": quantity, "ledgerEntryID": entry_id if ledger_matched else None}


def serialize_borrowed_item(entry: BorrowedItem) -> dict:
    return {
        "borrowedItemID": entry.borrowed_item_id,
        "requestID": entry.request_id,
        "studentID": entry.student_id,
        "itemID": entry.item_id,
        "quantityBorrowed": entry.quantity_borrowed,
        "quantityReturned": entry.quantity_returned,
        "quantityOutstanding": int(entry.quantity_borrowed or 0) - int(entry.quantity_returned or 0),
        "createdAt": entry.created_at,
        "updatedAt": entry.updated_at,
    }


def serialize_borrow_request(request: BorrowRequest, include_ledger: bool = False) -> dict:
    payload = {
        "requestID": request.request_id,
        "studentID": request.student_id,
        "supervisorID": request.supervisor_id,
        "itemID": request.item_id,
        "quantity": request.quantity,
        "status": request.status,
        "purpose": request.purpose,
        "createdAt": request.created_at,
    }
    if include_ledger:
        payload["ledger"] = [serialize_borrowed_item(entry) for entry in request.BorrowedItems]
    return payload
