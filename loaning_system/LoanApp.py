import logging
import os

from dotenv import load_dotenv
from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Query, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

load_dotenv()

from db.deps import get_loan_db, get_loan_session_factory
from models.loan_models import BorrowRequest, FormSubmission, Item, Student, Supervisor
from schemas.forms import BorrowFormSubmission
from schemas.inventory import InventoryItemCreate, InventoryItemUpdate
from schemas.loans import BorrowRequestDto, ReturnRequestDto
from services.errors import LoanServiceError
from services.form_service import submit_borrow_form
from services.import_service import reconcile_record, reconcile_records
from services.inventory_service import apply_item_update, build_item, serialize_item
from services.ledger_service import borrow_item, return_item, serialize_borrow_request
from services.people_service import serialize_student, serialize_supervisor
from services.workflow_service import forward_submission, record_submission, serialize_submission

app = FastAPI()

APP_LOGGER = logging.getLogger("loaning_system")
APP_LOGGER.setLevel((os.environ.get("LOG_LEVEL") or "INFO").strip().upper())


def _parse_csv_env(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in str(raw).split(",") if item.strip()]


_CORS_ALLOW_ORIGINS = _parse_csv_env(
    "CORS_ALLOW_ORIGINS",
    "http://127.0.0.1,http://localhost,http://127.0.0.1:3000,http://localhost:3000",
)
_CORS_ALLOW_CREDENTIALS = str(os.environ.get("CORS_ALLOW_CREDENTIALS", "true")).strip().lower() in {"1", "true", "yes", "on"}
if "*" in _CORS_ALLOW_ORIGINS:
    # Browsers reject wildcard origins with credentials.
    _CORS_ALLOW_CREDENTIALS = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=_CORS_ALLOW_ORIGINS,
    allow_credentials=_CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"]
)


@app.exception_handler(SQLAlchemyError)
def handle_database_error(request: Request, exc: SQLAlchemyError):
    APP_LOGGER.error("Database error path=%s error=%s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Server error"})


@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError):
    # Absent or non-object JSON bodies are reported like any other missing field.
    if any(tuple(error.get("loc", ()))[:1] == ("body",) for error in exc.errors()):
        return JSONResponse(status_code=400, content={"detail": "Missing required fields"})
    return await request_validation_exception_handler(request, exc)


def _http_error(exc: LoanServiceError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def _missing_fields_error() -> HTTPException:
    return HTTPException(status_code=400, detail="Missing required fields")


@app.get("/healthz")
def healthcheck():
    return {"status": "ok"}


@app.get("/api/healthz")
def healthcheck_api(db: Session = Depends(get_loan_db)):
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ok"}
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=503, detail="db_unavailable") from exc


@app.get("/api/inventory")
def get_inventory(db: Session = Depends(get_loan_db)):
    items = db.execute(select(Item).order_by(Item.item_id)).scalars().all()
    return [serialize_item(item) for item in items]


@app.get("/api/inventory/{item_id}")
def get_inventory_item(item_id: int, db: Session = Depends(get_loan_db)):
    item = db.get(Item, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return serialize_item(item)


@app.post("/api/inventory")
def create_inventory_item(payload: dict, db: Session = Depends(get_loan_db)):
    try:
        parsed = InventoryItemCreate.model_validate(payload)
    except ValidationError:
        raise _missing_fields_error()

    item = build_item(parsed.model_dump())
    db.add(item)
    db.commit()
    db.refresh(item)
    return serialize_item(item)


@app.put("/api/inventory/{item_id}")
def update_inventory_item(item_id: int, payload: dict, db: Session = Depends(get_loan_db)):
    try:
        parsed = InventoryItemUpdate.model_validate(payload)
    except ValidationError:
        raise _missing_fields_error()

    item = db.get(Item, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")

    try:
        apply_item_update(item, parsed.model_dump(exclude_unset=True))
    except LoanServiceError as exc:
        raise _http_error(exc) from exc
    db.commit()
    db.refresh(item)
    return serialize_item(item)


@app.delete("/api/inventory/{item_id}")
def delete_inventory_item(item_id: int, db: Session = Depends(get_loan_db)):
    item = db.get(Item, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")

    db.delete(item)
    db.commit()
    return {"message": "Item deleted successfully"}


@app.post("/api/borrow")
def borrow(payload: dict, db: Session = Depends(get_loan_db)):
    try:
        parsed = BorrowRequestDto.model_validate(payload)
    except ValidationError:
        raise _missing_fields_error()

    try:
        request = borrow_item(db, parsed.itemId, parsed.studentId, parsed.quantity, purpose=parsed.purpose)
    except LoanServiceError as exc:
        raise _http_error(exc) from exc
    return {"message": "Item borrowed successfully", "requestID": request.request_id}


@app.post("/api/return")
def return_borrowed(payload: dict, db: Session = Depends(get_loan_db)):
    try:
        parsed = ReturnRequestDto.model_validate(payload)
    except ValidationError:
        raise _missing_fields_error()

    try:
        return_item(db, parsed.itemId, parsed.studentId, parsed.quantity)
    except LoanServiceError as exc:
        raise _http_error(exc) from exc
    return {"message": "Item returned successfully"}


@app.get("/api/borrow-requests")
def get_borrow_requests(
    status: str | None = Query(None),
    student_id: int | None = Query(None, alias="studentId"),
    db: Session = Depends(get_loan_db),
):
    stmt = select(BorrowRequest).order_by(BorrowRequest.request_id.desc())
    if status:
        stmt = stmt.where(BorrowRequest.status == status)
    if student_id is not None:
        stmt = stmt.where(BorrowRequest.student_id == student_id)
    requests = db.execute(stmt).scalars().all()
    return [serialize_borrow_request(request) for request in requests]


@app.get("/api/borrow-requests/{request_id}")
def get_borrow_request(request_id: int, db: Session = Depends(get_loan_db)):
    stmt = (
        select(BorrowRequest)
        .options(selectinload(BorrowRequest.BorrowedItems))
        .where(BorrowRequest.request_id == request_id)
    )
    request = db.execute(stmt).scalars().first()
    if not request:
        raise HTTPException(status_code=404, detail="Borrow request not found")
    return serialize_borrow_request(request, include_ledger=True)


@app.get("/api/students")
def get_students(db: Session = Depends(get_loan_db)):
    students = db.execute(select(Student).order_by(Student.student_id)).scalars().all()
    return [serialize_student(student) for student in students]


@app.get("/api/supervisors")
def get_supervisors(db: Session = Depends(get_loan_db)):
    supervisors = db.execute(select(Supervisor).order_by(Supervisor.supervisor_id)).scalars().all()
    return [serialize_supervisor(supervisor) for supervisor in supervisors]


@app.post("/api/import")
def import_record(payload: dict, db: Session = Depends(get_loan_db)):
    try:
        result = reconcile_record(db, payload)
    except LoanServiceError as exc:
        raise _http_error(exc) from exc
    return {"message": "Data imported successfully", "result": result}


@app.post("/api/import/bulk")
def import_records(payload: dict, db: Session = Depends(get_loan_db)):
    records = payload.get("records")
    if not isinstance(records, list) or not records:
        raise _missing_fields_error()

    try:
        result = reconcile_records(db, records)
    except LoanServiceError as exc:
        raise _http_error(exc) from exc
    return {"message": "Data imported successfully", "count": len(result), "result": result}


@app.post("/api/forms/borrow")
def submit_borrow_form_route(payload: dict, db: Session = Depends(get_loan_db)):
    try:
        parsed = BorrowFormSubmission.model_validate(payload)
    except ValidationError:
        raise _missing_fields_error()

    try:
        requests = submit_borrow_form(
            db,
            parsed.student.model_dump(),
            [line.model_dump() for line in parsed.items],
            supervisor=parsed.supervisor.model_dump() if parsed.supervisor else None,
            purpose=parsed.purpose,
        )
    except LoanServiceError as exc:
        raise _http_error(exc) from exc
    return {
        "message": "Form submitted successfully",
        "requests": [serialize_borrow_request(request) for request in requests],
    }


@app.post("/api/webhooks/workflow")
def receive_workflow_submission(
    payload: dict,
    background_tasks: BackgroundTasks,
    source: str | None = Query(None),
    db: Session = Depends(get_loan_db),
    session_factory=Depends(get_loan_session_factory),
):
    try:
        submission = record_submission(db, payload, source=source)
    except LoanServiceError as exc:
        raise _http_error(exc) from exc
    background_tasks.add_task(forward_submission, session_factory, submission.submission_id, payload)
    return {"message": "Submission received", "submissionID": submission.submission_id}


@app.get("/api/form-submissions")
def get_form_submissions(
    forwarded: bool | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_loan_db),
):
    stmt = select(FormSubmission).order_by(FormSubmission.submission_id.desc()).limit(limit)
    if forwarded is not None:
        stmt = stmt.where(FormSubmission.forwarded == forwarded)
    submissions = db.execute(stmt).scalars().all()
    return [serialize_submission(submission) for submission in submissions]
