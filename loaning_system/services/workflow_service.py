from __future__ import annotations

import json
import logging
import os
import urllib.error
import urllib.request
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.loan_models import FormSubmission
from services.errors import PersistenceError


WORKFLOW_LOGGER = logging.getLogger("loaning_system.workflow")


class WorkflowForwardError(RuntimeError):
    pass


def _webhook_url() -> str:
    return (os.environ.get("WORKFLOW_WEBHOOK_URL") or "").strip()


def _webhook_timeout() -> float:
    raw = (os.environ.get("WORKFLOW_WEBHOOK_TIMEOUT_SECONDS") or "").strip()
    return float(raw) if raw else 10.0


def record_submission(db: Session, payload: Any, source: str | None = None) -> FormSubmission:
    submission = FormSubmission(
        source=(source or "workflow").strip() or "workflow",
        payload=json.dumps(payload, ensure_ascii=True, default=str),
        forwarded=False,
        created_at=datetime.now(),
    )
    try:
        db.add(submission)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        WORKFLOW_LOGGER.exception("Could not store form submission source=%s", source)
        raise PersistenceError() from exc
    return submission


def send_to_workflow(url: str, payload: Any, timeout: float) -> int:
    body = json.dumps(payload, ensure_ascii=True, default=str).encode("utf-8")
    request = urllib.request.Request(
        url,
        data=body,
        method="POST",
        headers={"Content-Type": "application/json", "Accept": "application/json"},
    )
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            return int(response.status)
    except urllib.error.HTTPError as exc:
        raise WorkflowForwardError(f"HTTP {exc.code} from workflow webhook") from exc
    except (urllib.error.URLError, TimeoutError) as exc:
        raise WorkflowForwardError(f"workflow webhook unreachable: {exc}") from exc


def forward_submission(session_factory: Callable[[], Session], submission_id: int, payload: Any) -> bool:
    """Forward one stored submission to the workflow webhook, once.

    Failures are logged and leave the submission marked as not forwarded.
    """
    url = _webhook_url()
    if not url:
        WORKFLOW_LOGGER.info("Workflow webhook not configured; submission_id=%s kept local", submission_id)
        return False
    try:
        status = send_to_workflow(url, payload, _webhook_timeout())
    except WorkflowForwardError as exc:
        WORKFLOW_LOGGER.warning("Workflow forward failed submission_id=%s error=%s", submission_id, exc)
        return False

    db = session_factory()
    try:
        submission = db.get(FormSubmission, submission_id)
        if submission:
            submission.forwarded = True
            db.commit()
    except SQLAlchemyError:
        db.rollback()
        WORKFLOW_LOGGER.exception("Could not flag submission_id=%s as forwarded", submission_id)
    finally:
        db.close()
    WORKFLOW_LOGGER.info("Workflow forward done submission_id=%s status=%s", submission_id, status)
    return True


def serialize_submission(submission: FormSubmission) -> dict:
    try:
        payload = json.loads(submission.payload) if submission.payload else None
    except ValueError:
        payload = submission.payload
    return {
        "submissionID": submission.submission_id,
        "source": submission.source,
        "payload": payload,
        "forwarded": bool(submission.forwarded),
        "createdAt": submission.created_at,
    }
