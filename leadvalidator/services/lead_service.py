"""
leadvalidator/services/lead_service.py — Business logic orchestrating the full
normalize → score → decide → deliver → record pipeline.

This is the "glue" layer that coordinates:
  - Resolving the caller's API key to a ProjectConfig
  - Normalizing raw form fields and scoring the submission
  - Persisting the lead before any network I/O, so it is never lost
  - Delivering the webhook (usually from a background task) and keeping
    the lead's delivery bookkeeping current after every attempt
"""

import enum
import logging
import uuid
from dataclasses import dataclass, field
from typing import Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leadvalidator.config import ProjectConfig
from leadvalidator.db import repository
from leadvalidator.db.models import DeliveryStatus
from leadvalidator.db.session import get_session
from leadvalidator.delivery.payload import WebhookPayload, build_payload
from leadvalidator.delivery.webhook import DeliveryAttempt, DeliveryResult, WebhookClient
from leadvalidator.ingestion.normalizer import ClientMetadata, SubmissionRecord, build_submission
from leadvalidator.notifications.mailer import OwnerMailer
from leadvalidator.notifications.templates import render_delivery_failure
from leadvalidator.qualification.engine import QualificationResult, score_submission
from leadvalidator.services.scoring import is_lead_qualified

logger = logging.getLogger(__name__)


class PipelineState(str, enum.Enum):
    RECEIVED = "received"
    NORMALIZED = "normalized"
    SCORED = "scored"
    DECIDED = "decided"
    DELIVERED = "delivered"
    DELIVERY_SKIPPED = "delivery_skipped"
    DELIVERY_FAILED = "delivery_failed"
    RECORDED = "recorded"


class InvalidApiKeyError(Exception):
    """The API key is missing or does not belong to any project."""


class MissingEmailError(ValueError):
    """The submission has no email address; it is rejected before scoring."""


@dataclass
class SubmissionOutcome:
    lead_id: str
    project: ProjectConfig
    record: SubmissionRecord
    result: QualificationResult
    qualified: bool
    payload: Optional[WebhookPayload] = None    # None when delivery is skipped
    delivery: Optional[DeliveryResult] = None
    states: list[PipelineState] = field(default_factory=list)

    @property
    def state(self) -> PipelineState:
        return self.states[-1]


def resolve_project(db: Session, api_key: Optional[str]) -> ProjectConfig:
    """Map an API key to its project's configuration or raise InvalidApiKeyError."""
    project = repository.get_project_by_api_key(db, api_key or "")
    if project is None:
        raise InvalidApiKeyError("Invalid or missing API key.")
    return ProjectConfig.from_project(project)


def qualify_submission(
    db: Session,
    project: ProjectConfig,
    raw_fields: Mapping[str, object],
    metadata: Optional[ClientMetadata] = None,
) -> SubmissionOutcome:
    """
    Normalize, score, decide and record one submission.

    The lead is persisted before returning. When it is eligible for webhook
    delivery the outcome carries the payload and the lead is stored with
    status PENDING; call deliver_lead() (typically in the background) next.

    Raises:
        MissingEmailError: no email could be extracted from the fields.
    """
    states = [PipelineState.RECEIVED]

    record = build_submission(raw_fields, metadata, project.field_map)
    states.append(PipelineState.NORMALIZED)
    if not record.email:
        raise MissingEmailError("Email address is required.")

    result = score_submission(record, project.disposable_domains, project.phone_region)
    states.append(PipelineState.SCORED)

    qualified = is_lead_qualified(result, project.min_score)
    states.append(PipelineState.DECIDED)

    lead_id = str(uuid.uuid4())
    payload = None
    if project.webhook_url and (qualified or project.deliver_all):
        payload = build_payload(lead_id, project.project_id, record, result, qualified)

    repository.record_lead(
        db,
        lead_id=lead_id,
        project_id=project.project_id,
        record=record,
        result=result,
        qualified=qualified,
        form_data={str(k): v for k, v in raw_fields.items()},
        webhook_status=DeliveryStatus.PENDING if payload else DeliveryStatus.SKIPPED,
    )
    if payload is None:
        states.extend([PipelineState.DELIVERY_SKIPPED, PipelineState.RECORDED])

    logger.info(
        "Submission scored for project %s: lead=%s score=%d spam=%s qualified=%s",
        project.project_id, lead_id, result.score, result.is_spam, qualified,
    )
    return SubmissionOutcome(
        lead_id=lead_id,
        project=project,
        record=record,
        result=result,
        qualified=qualified,
        payload=payload,
        states=states,
    )


def _count_attempt(lead_id: str, attempt: DeliveryAttempt) -> None:
    try:
        with get_session() as db:
            repository.increment_webhook_attempts(db, lead_id)
    except SQLAlchemyError as exc:
        logger.error("Could not record attempt %d for lead %s: %s", attempt.attempt_number, lead_id, exc)


def _notify_owner(project: ProjectConfig, payload: WebhookPayload, delivery: DeliveryResult, mailer: OwnerMailer) -> None:
    last = delivery.attempts[-1] if delivery.attempts else None
    if last is None:
        last_error = "no attempt was made"
    elif last.error:
        last_error = last.error
    else:
        last_error = f"HTTP {last.status_code}"
    email = render_delivery_failure(
        project_name=project.name or project.project_id,
        lead_id=payload.lead_id,
        lead_email=payload.data.email,
        webhook_url=project.webhook_url or "",
        attempts=delivery.attempt_count,
        last_error=last_error,
    )
    mailer.send(project.notification_email, email)


def deliver_lead(
    project: ProjectConfig,
    payload: WebhookPayload,
    client: Optional[WebhookClient] = None,
    mailer: Optional[OwnerMailer] = None,
) -> Optional[DeliveryResult]:
    """
    Run the bounded delivery loop for a recorded lead and store the outcome.

    Uses its own DB sessions so it can run after the request that recorded
    the lead has finished. Every attempt is counted as soon as it completes.
    The lead is claimed (PENDING → SENDING) atomically before the first
    attempt, so a lead is delivered by at most one run.

    Returns:
        The DeliveryResult, or None if delivery was not attempted.
    """
    lead_id = payload.lead_id
    if not project.webhook_url:
        logger.debug("Project %s has no webhook — nothing to deliver.", project.project_id)
        return None

    with get_session() as db:
        claimed = repository.claim_lead_for_delivery(db, lead_id)
    if not claimed:
        logger.warning("Lead %s is not awaiting delivery — skipping.", lead_id)
        return None

    client = client or WebhookClient()
    delivery = None
    try:
        delivery = client.deliver(
            project.webhook_url,
            payload,
            on_attempt=lambda attempt: _count_attempt(lead_id, attempt),
        )
    finally:
        # runs on interruption too, so the lead never stays half-delivered
        with get_session() as db:
            repository.mark_webhook_result(db, lead_id, sent=bool(delivery and delivery.success))

    if not delivery.success and project.email_notifications and project.notification_email:
        _notify_owner(project, payload, delivery, mailer or OwnerMailer())
    return delivery


def process_submission(
    db: Session,
    api_key: Optional[str],
    raw_fields: Mapping[str, object],
    metadata: Optional[ClientMetadata] = None,
    client: Optional[WebhookClient] = None,
    mailer: Optional[OwnerMailer] = None,
) -> SubmissionOutcome:
    """
    Run the whole pipeline synchronously, delivery included.

    Used by scripts and tests; the HTTP API splits the same steps into
    qualify_submission() plus a background deliver_lead().
    """
    project = resolve_project(db, api_key)
    outcome = qualify_submission(db, project, raw_fields, metadata)
    if outcome.payload is None:
        return outcome

    db.commit()  # delivery bookkeeping runs in separate sessions
    outcome.delivery = deliver_lead(project, outcome.payload, client=client, mailer=mailer)
    if outcome.delivery is not None and outcome.delivery.success:
        outcome.states.append(PipelineState.DELIVERED)
    else:
        outcome.states.append(PipelineState.DELIVERY_FAILED)
    outcome.states.append(PipelineState.RECORDED)
    return outcome
