"""
api/endpoints/validate_routes.py — Inbound endpoint for the form capture client.

POST /v1/validate — Score a form submission, record the lead, and schedule
                    webhook delivery in the background
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from leadvalidator.config import ProjectConfig
from leadvalidator.db.session import get_db
from leadvalidator.ingestion.normalizer import ClientMetadata
from leadvalidator.services.lead_service import MissingEmailError, deliver_lead, qualify_submission
from api.deps import get_project
from api.schemas import SubmissionRequest, ValidationResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/validate", response_model=ValidationResponse, summary="Validate a form submission")
def validate_submission(
    submission: SubmissionRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    project: ProjectConfig = Depends(get_project),
    db: Session = Depends(get_db),
):
    """
    Qualify a submission and return the result synchronously.

    Webhook delivery (with retries) runs after the response is sent, so the
    submitting site never waits on the project's endpoint.
    """
    metadata = ClientMetadata(
        ip_address=submission.ip_address or (request.client.host if request.client else None),
        user_agent=submission.user_agent or request.headers.get("user-agent"),
        referrer=submission.referrer,
        submitted_at=submission.timestamp or datetime.now(timezone.utc),
    )

    try:
        outcome = qualify_submission(db, project, submission.fields, metadata)
    except MissingEmailError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    # the background task reads the lead in its own session
    db.commit()
    if outcome.payload is not None:
        background_tasks.add_task(deliver_lead, project, outcome.payload)

    result = outcome.result
    return ValidationResponse(
        lead_id=outcome.lead_id,
        score=result.score,
        email_valid=result.email_valid,
        phone_valid=result.phone_valid,
        is_spam=result.is_spam,
        reasons=list(result.reasons),
        qualified=outcome.qualified,
    )
