from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.loan_models import BorrowRequest
from services.errors import LoanServiceError, MissingFieldsError, NotFoundError, PersistenceError
from services.inventory_service import item_exists
from services.ledger_service import PENDING_STATUS
from services.people_service import resolve_student, resolve_supervisor


FORMS_LOGGER = logging.getLogger("loaning_system.forms")


def submit_borrow_form(
    db: Session,
    student: dict[str, Any],
    lines: list[dict[str, Any]],
    supervisor: dict[str, Any] | None = None,
    purpose: str | None = None,
) -> list[BorrowRequest]:
    """Record one Pending borrow request per form line.

    Student and supervisor are resolved by email. Inventory counters are left
    alone; stock only moves when an item is actually borrowed.
    """
    if not lines:
        raise MissingFieldsError()

    try:
        student_id = resolve_student(
            db,
            student.get("email"),
            matric_no=student.get("matricNo"),
            full_name=student.get("fullName"),
            phone=student.get("phone"),
        )
        supervisor_id = None
        if supervisor:
            supervisor_id = resolve_supervisor(
                db,
                supervisor.get("email"),
                staff_no=supervisor.get("staffNo"),
                full_name=supervisor.get("fullName"),
                department=supervisor.get("department"),
            )

        requests: list[BorrowRequest] = []
        for line in lines:
            item_id = int(line["itemId"])
            if not item_exists(db, item_id):
                raise NotFoundError("Item not found")
            request = BorrowRequest(
                student_id=student_id,
                supervisor_id=supervisor_id,
                item_id=item_id,
                quantity=int(line.get("quantity") or 1),
                status=PENDING_STATUS,
                purpose=purpose,
                created_at=datetime.now(),
            )
            db.add(request)
            requests.append(request)
        db.commit()
    except LoanServiceError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        FORMS_LOGGER.exception("Borrow form failed email=%s lines=%s", student.get("email"), len(lines))
        raise PersistenceError() from exc

    FORMS_LOGGER.info(
        "Borrow form recorded student_id=%s supervisor_id=%s requests=%s",
        student_id,
        supervisor_id,
        len(requests),
    )
    return requests
