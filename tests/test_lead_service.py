"""
tests/test_lead_service.py — Tests for the submission pipeline orchestrator.

Runs against the in-memory SQLite database; webhook HTTP calls are patched
and backoff waits are recorded instead of slept.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from leadvalidator.config import ProjectConfig
from leadvalidator.db.models import DeliveryStatus, Lead
from leadvalidator.db.repository import claim_lead_for_delivery, create_project, get_lead
from leadvalidator.delivery.webhook import WebhookClient
from leadvalidator.ingestion.normalizer import ClientMetadata
from leadvalidator.services.lead_service import (
    InvalidApiKeyError,
    MissingEmailError,
    PipelineState,
    deliver_lead,
    process_submission,
    qualify_submission,
    resolve_project,
)

GOOD_FORM = {"email": "jane@company.com", "first_name": "Jane", "last_name": "Roe"}
SPAM_FORM = {
    "email": "john@example.com",
    "first_name": "John",
    "last_name": "Doe",
    "message": "buy now guaranteed winner!!",
}
POST = "leadvalidator.delivery.webhook.requests.post"


def response(status_code: int) -> MagicMock:
    return MagicMock(status_code=status_code)


@pytest.fixture
def waits():
    return []


@pytest.fixture
def client(waits):
    return WebhookClient(max_attempts=3, backoff_seconds=1, sleep=waits.append)


def reload_lead(db, lead_id: str) -> Lead:
    db.expire_all()
    return get_lead(db, lead_id)


# ── resolve_project ───────────────────────────────────────────────────────────

class TestResolveProject:
    def test_known_key(self, db, project):
        config = resolve_project(db, project.api_key)
        assert isinstance(config, ProjectConfig)
        assert config.project_id == project.id
        assert config.webhook_url == "https://hooks.acme.test/leads"
        assert config.min_score == 70

    def test_unknown_key(self, db, project):
        with pytest.raises(InvalidApiKeyError):
            resolve_project(db, "lv_live_unknown")

    def test_missing_key(self, db):
        with pytest.raises(InvalidApiKeyError):
            resolve_project(db, None)

    def test_min_score_defaults_from_settings(self, db):
        project = create_project(db, name="No threshold")
        assert resolve_project(db, project.api_key).min_score == 70

    def test_config_is_frozen(self, db, project):
        config = resolve_project(db, project.api_key)
        with pytest.raises(Exception):
            config.min_score = 0


# ── qualify_submission ────────────────────────────────────────────────────────

class TestQualifySubmission:
    def test_qualified_lead_is_recorded_pending(self, db, project):
        config = resolve_project(db, project.api_key)
        outcome = qualify_submission(db, config, GOOD_FORM, ClientMetadata(ip_address="203.0.113.9"))

        assert outcome.qualified is True
        assert outcome.result.score == 100
        assert outcome.payload is not None
        assert outcome.payload.lead_id == outcome.lead_id
        assert outcome.states == [
            PipelineState.RECEIVED,
            PipelineState.NORMALIZED,
            PipelineState.SCORED,
            PipelineState.DECIDED,
        ]
        lead = get_lead(db, outcome.lead_id)
        assert lead.webhook_status == DeliveryStatus.PENDING
        assert lead.ip_address == "203.0.113.9"
        assert lead.form_data == GOOD_FORM

    def test_unqualified_lead_skips_delivery(self, db, project):
        config = resolve_project(db, project.api_key)
        outcome = qualify_submission(db, config, SPAM_FORM)

        assert outcome.qualified is False
        assert outcome.result.is_spam is True
        assert outcome.payload is None
        assert outcome.state is PipelineState.RECORDED
        assert PipelineState.DELIVERY_SKIPPED in outcome.states
        lead = get_lead(db, outcome.lead_id)
        assert lead.webhook_status == DeliveryStatus.SKIPPED
        assert lead.is_spam is True

    def test_deliver_all_sends_unqualified_leads(self, db):
        project = create_project(db, name="Firehose", webhook_url="https://hooks.test/all", deliver_all=True)
        config = resolve_project(db, project.api_key)
        outcome = qualify_submission(db, config, SPAM_FORM)
        assert outcome.payload is not None
        assert outcome.payload.qualified is False

    def test_no_webhook_skips_delivery(self, db):
        project = create_project(db, name="No hook")
        config = resolve_project(db, project.api_key)
        outcome = qualify_submission(db, config, GOOD_FORM)
        assert outcome.qualified is True
        assert outcome.payload is None
        assert outcome.state is PipelineState.RECORDED

    def test_missing_email_rejected_before_scoring(self, db, project):
        config = resolve_project(db, project.api_key)
        with patch("leadvalidator.services.lead_service.score_submission") as scorer:
            with pytest.raises(MissingEmailError):
                qualify_submission(db, config, {"first_name": "Jane", "email": "  "})
            scorer.assert_not_called()
        assert db.query(Lead).count() == 0

    def test_project_field_map_used(self, db):
        project = create_project(db, name="Spanish form", field_map={"email": "correo"})
        config = resolve_project(db, project.api_key)
        outcome = qualify_submission(db, config, {"correo": "ana@empresa.com"})
        assert outcome.record.email == "ana@empresa.com"

    def test_camel_case_field_map_keys(self, db):
        project = create_project(db, name="Custom form", field_map={"firstName": "fname", "lastName": "sname"})
        config = resolve_project(db, project.api_key)
        outcome = qualify_submission(
            db, config, {"email": "jane@company.com", "fname": "Jane", "sname": "Roe"},
        )
        assert outcome.record.first_name == "Jane"
        assert outcome.record.last_name == "Roe"
        assert outcome.result.score == 100

    def test_project_threshold_used(self, db):
        project = create_project(db, name="Strict", min_score=90)
        config = resolve_project(db, project.api_key)
        outcome = qualify_submission(db, config, {"email": "jane@company.com", "first_name": "Jane"})
        assert outcome.result.score == 90
        assert outcome.qualified is True
        outcome = qualify_submission(db, config, {"email": "jane@company.com"})
        assert outcome.qualified is False


# ── deliver_lead / process_submission ─────────────────────────────────────────

class TestDelivery:
    def test_successful_delivery(self, db, project, client, waits):
        with patch(POST, return_value=response(200)):
            outcome = process_submission(db, project.api_key, GOOD_FORM, client=client)

        assert outcome.delivery.success is True
        assert outcome.states[-2:] == [PipelineState.DELIVERED, PipelineState.RECORDED]
        lead = reload_lead(db, outcome.lead_id)
        assert lead.webhook_sent is True
        assert lead.webhook_attempts == 1
        assert lead.webhook_status == DeliveryStatus.SENT
        assert waits == []

    def test_succeeds_after_two_failures(self, db, project, client, waits):
        side_effect = [response(500), requests.ConnectionError("refused"), response(200)]
        with patch(POST, side_effect=side_effect):
            outcome = process_submission(db, project.api_key, GOOD_FORM, client=client)

        assert outcome.delivery.success is True
        lead = reload_lead(db, outcome.lead_id)
        assert lead.webhook_attempts == 3
        assert lead.webhook_sent is True
        assert waits == [2, 4]

    def test_exhausted_delivery_keeps_lead(self, db, project, client):
        with patch(POST, return_value=response(500)):
            outcome = process_submission(db, project.api_key, GOOD_FORM, client=client)

        assert outcome.delivery.success is False
        assert outcome.states[-2:] == [PipelineState.DELIVERY_FAILED, PipelineState.RECORDED]
        lead = reload_lead(db, outcome.lead_id)
        assert lead is not None
        assert lead.webhook_sent is False
        assert lead.webhook_attempts == 3
        assert lead.webhook_status == DeliveryStatus.FAILED

    def test_lead_never_redelivered(self, db, project, client):
        with patch(POST, return_value=response(200)) as post:
            outcome = process_submission(db, project.api_key, GOOD_FORM, client=client)
            again = deliver_lead(outcome.project, outcome.payload, client=client)
        assert again is None
        assert post.call_count == 1
        assert reload_lead(db, outcome.lead_id).webhook_attempts == 1

    def test_lead_claimed_by_another_run_is_skipped(self, db, project, client):
        config = resolve_project(db, project.api_key)
        outcome = qualify_submission(db, config, GOOD_FORM)
        db.commit()
        assert claim_lead_for_delivery(db, outcome.lead_id) is True
        db.commit()

        with patch(POST, return_value=response(200)) as post:
            assert deliver_lead(config, outcome.payload, client=client) is None
        post.assert_not_called()
        lead = reload_lead(db, outcome.lead_id)
        assert lead.webhook_status == DeliveryStatus.SENDING
        assert lead.webhook_attempts == 0

    def test_interrupted_delivery_keeps_attempt_count(self, db, project):
        def interrupt(seconds):
            raise KeyboardInterrupt

        client = WebhookClient(max_attempts=3, backoff_seconds=1, sleep=interrupt)
        config = resolve_project(db, project.api_key)
        outcome = qualify_submission(db, config, GOOD_FORM)
        db.commit()

        with patch(POST, return_value=response(500)):
            with pytest.raises(KeyboardInterrupt):
                deliver_lead(config, outcome.payload, client=client)

        lead = reload_lead(db, outcome.lead_id)
        assert lead.webhook_attempts == 1
        assert lead.webhook_sent is False
        assert lead.webhook_status == DeliveryStatus.FAILED

    def test_invalid_key_raises_before_scoring(self, db, project):
        with patch("leadvalidator.services.lead_service.score_submission") as scorer:
            with pytest.raises(InvalidApiKeyError):
                process_submission(db, "lv_live_wrong", GOOD_FORM)
            scorer.assert_not_called()


# ── Owner notification ────────────────────────────────────────────────────────

class TestOwnerNotification:
    def test_owner_notified_on_exhaustion(self, db, client):
        project = create_project(
            db,
            name="Notify me",
            webhook_url="https://hooks.test/x",
            email_notifications=True,
            notification_email="owner@acme.test",
        )
        mailer = MagicMock()
        with patch(POST, side_effect=requests.Timeout("timed out")):
            outcome = process_submission(db, project.api_key, GOOD_FORM, client=client, mailer=mailer)

        mailer.send.assert_called_once()
        to_address, email = mailer.send.call_args.args
        assert to_address == "owner@acme.test"
        assert outcome.lead_id in email.subject
        assert "timed out" in email.plain_body
        assert "3 attempt(s)" in email.plain_body

    def test_owner_not_notified_on_success(self, db, client):
        project = create_project(
            db,
            name="Notify me",
            webhook_url="https://hooks.test/x",
            email_notifications=True,
            notification_email="owner@acme.test",
        )
        mailer = MagicMock()
        with patch(POST, return_value=response(204)):
            process_submission(db, project.api_key, GOOD_FORM, client=client, mailer=mailer)
        mailer.send.assert_not_called()

    def test_notifications_disabled(self, db, project, client):
        mailer = MagicMock()
        with patch(POST, return_value=response(500)):
            process_submission(db, project.api_key, GOOD_FORM, client=client, mailer=mailer)
        mailer.send.assert_not_called()
