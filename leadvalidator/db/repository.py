"""
leadvalidator/db/repository.py — All database read/write operations.

Business logic should never write raw SQL or ORM queries directly —
everything goes through this module. This keeps DB logic centralized
and easy to test/mock.
"""

import logging
from typing import Any, Mapping, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from leadvalidator.db.models import DeliveryStatus, Lead, Project
from leadvalidator.ingestion.normalizer import SubmissionRecord, canonical_field_map
from leadvalidator.qualification.engine import QualificationResult
from leadvalidator.services.api_keys import generate_api_key

logger = logging.getLogger(__name__)

MAX_KEY_GENERATION_TRIES = 5


# ── Project ───────────────────────────────────────────────────────────────────

def api_key_exists(db: Session, api_key: str) -> bool:
    return db.query(Project).filter(Project.api_key == api_key).first() is not None


def create_project(
    db: Session,
    name: str,
    webhook_url: Optional[str] = None,
    min_score: Optional[int] = None,
    deliver_all: bool = False,
    field_map: Optional[Mapping[str, str]] = None,
    email_notifications: bool = False,
    notification_email: Optional[str] = None,
    description: Optional[str] = None,
) -> Project:
    """
    Create a project and issue it an API key not used by any other project.

    Field-map keys may be snake_case or camelCase; they are stored snake_case.

    Raises:
        ValueError: the field map names an unknown field.
    """
    field_map = canonical_field_map(field_map) if field_map else None

    for _ in range(MAX_KEY_GENERATION_TRIES):
        api_key = generate_api_key()
        if not api_key_exists(db, api_key):
            break
    else:
        raise RuntimeError("Could not generate a unique API key.")

    project = Project(
        name=name,
        description=description,
        api_key=api_key,
        webhook_url=webhook_url,
        min_score=min_score,
        deliver_all=deliver_all,
        field_map=field_map,
        email_notifications=email_notifications,
        notification_email=notification_email,
    )
    db.add(project)
    db.flush()
    logger.info("Created project %s (%s).", project.name, project.id)
    return project


def get_project_by_api_key(db: Session, api_key: str) -> Optional[Project]:
    if not api_key:
        return None
    return db.query(Project).filter(Project.api_key == api_key).first()


# ── Lead ─────────────────────────────────────────────────────────────────────

def record_lead(
    db: Session,
    lead_id: str,
    project_id: str,
    record: SubmissionRecord,
    result: QualificationResult,
    qualified: bool,
    form_data: Optional[Mapping[str, Any]] = None,
    webhook_status: DeliveryStatus = DeliveryStatus.SKIPPED,
) -> Lead:
    """
    Persist a scored lead. Idempotent: recording the same lead_id again
    updates the existing row and leaves its delivery counters untouched.
    """
    values = dict(
        project_id=project_id,
        email=record.email,
        phone=record.phone,
        first_name=record.first_name,
        last_name=record.last_name,
        company=record.company,
        message=record.message,
        form_data=dict(form_data) if form_data is not None else None,
        validation_score=result.score,
        email_valid=result.email_valid,
        phone_valid=result.phone_valid,
        is_spam=result.is_spam,
        is_qualified=qualified,
        reasons=list(result.reasons),
        ip_address=record.ip_address,
        user_agent=record.user_agent,
        referrer=record.referrer,
        submitted_at=record.submitted_at,
    )

    lead = db.get(Lead, lead_id)
    if lead is None:
        lead = Lead(id=lead_id, webhook_status=webhook_status, webhook_sent=False, webhook_attempts=0, **values)
        db.add(lead)
        logger.info(
            "Lead recorded: %s for project %s (score=%d, qualified=%s).",
            lead_id, project_id, result.score, qualified,
        )
    else:
        for key, value in values.items():
            setattr(lead, key, value)
        logger.debug("Lead %s already recorded — updated in place.", lead_id)
    db.flush()
    return lead


def get_lead(db: Session, lead_id: str) -> Optional[Lead]:
    return db.get(Lead, lead_id)


def get_leads_for_project(
    db: Session,
    project_id: str,
    qualified: Optional[bool] = None,
    spam: Optional[bool] = None,
    limit: int = 50,
) -> list[Lead]:
    """Fetch a project's leads, newest first, optionally filtered."""
    query = db.query(Lead).filter(Lead.project_id == project_id)
    if qualified is not None:
        query = query.filter(Lead.is_qualified == qualified)
    if spam is not None:
        query = query.filter(Lead.is_spam == spam)
    return query.order_by(Lead.created_at.desc()).limit(limit).all()


# ── Webhook bookkeeping ──────────────────────────────────────────────────────

def claim_lead_for_delivery(db: Session, lead_id: str) -> bool:
    """
    Move a lead from PENDING to SENDING in one conditional UPDATE.

    Returns True only for the caller whose update changed the row, so at
    most one delivery run ever proceeds for a lead.
    """
    result = db.execute(
        update(Lead)
        .where(Lead.id == lead_id, Lead.webhook_status == DeliveryStatus.PENDING)
        .values(webhook_status=DeliveryStatus.SENDING)
    )
    return result.rowcount == 1


def increment_webhook_attempts(db: Session, lead_id: str) -> None:
    """Count one more delivery attempt for a lead (atomic in the database)."""
    db.execute(
        update(Lead)
        .where(Lead.id == lead_id)
        .values(webhook_attempts=Lead.webhook_attempts + 1)
    )


def mark_webhook_result(db: Session, lead_id: str, sent: bool) -> None:
    """Record the final outcome of a lead's bounded delivery loop."""
    status = DeliveryStatus.SENT if sent else DeliveryStatus.FAILED
    db.query(Lead).filter(Lead.id == lead_id).update(
        {"webhook_sent": sent, "webhook_status": status}
    )
    logger.debug("Lead %s webhook → %s", lead_id, status)
