from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.upsert import dialect_insert
from models.loan_models import Student, Supervisor
from services.errors import MissingFieldsError


def _normalize_email(raw: str | None) -> str:
    email = (raw or "").strip().lower()
    if not email:
        raise MissingFieldsError("Missing contact email")
    return email


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    as_text = str(value).strip()
    return as_text or None


def _resolve_by_email(db: Session, model, key_column, values: dict[str, Any]) -> int:
    db.execute(
        dialect_insert(db, model.__table__)
        .values(**values, created_at=datetime.now())
        .on_conflict_do_nothing(index_elements=["email"])
    )
    return db.execute(select(key_column).where(model.email == values["email"])).scalar_one()


def resolve_student(
    db: Session,
    email: str | None,
    matric_no: str | None = None,
    full_name: str | None = None,
    phone: str | None = None,
) -> int:
    """Return the student id for ``email``, creating the record on first sight.

    Existing contact details are never overwritten. Runs inside the caller's
    transaction; the caller commits.
    """
    return _resolve_by_email(
        db,
        Student,
        Student.student_id,
        {
            "email": _normalize_email(email),
            "matric_no": _clean(matric_no),
            "full_name": _clean(full_name),
            "phone": _clean(phone),
        },
    )


def resolve_supervisor(
    db: Session,
    email: str | None,
    staff_no: str | None = None,
    full_name: str | None = None,
    department: str | None = None,
) -> int:
    return _resolve_by_email(
        db,
        Supervisor,
        Supervisor.supervisor_id,
        {
            "email": _normalize_email(email),
            "staff_no": _clean(staff_no),
            "full_name": _clean(full_name),
            "department": _clean(department),
        },
    )


def serialize_student(student: Student) -> dict:
    return {
        "studentID": student.student_id,
        "email": student.email,
        "matricNo": student.matric_no,
        "fullName": student.full_name,
        "phone": student.phone,
        "createdAt": student.created_at,
    }


def serialize_supervisor(supervisor: Supervisor) -> dict:
    return {
        "supervisorID": supervisor.supervisor_id,
        "email": supervisor.email,
        "staffNo": supervisor.staff_no,
        "fullName": supervisor.full_name,
        "department": supervisor.department,
        "createdAt": supervisor.created_at,
    }
