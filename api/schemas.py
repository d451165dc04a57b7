"""
api/schemas.py — Pydantic request/response models for all API endpoints.

These are the API contract — separate from DB ORM models so we can
control exactly what data is exposed over HTTP. Wire names are camelCase
to match the browser capture client.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from leadvalidator.db.models import DeliveryStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Validation ───────────────────────────────────────────────────────────────

class SubmissionRequest(CamelModel):
    fields: dict[str, str] = Field(..., description="Raw form field name → value")
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    timestamp: Optional[datetime] = None


class ValidationResponse(CamelModel):
    lead_id: str
    score: int
    email_valid: bool
    phone_valid: Optional[bool] = None
    is_spam: bool
    reasons: list[str]
    qualified: bool


# ── Lead ─────────────────────────────────────────────────────────────────────

class LeadOut(CamelModel):
    id: str
    project_id: str
    email: str
    phone: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company: Optional[str] = None
    message: Optional[str] = None
    validation_score: int
    email_valid: bool
    phone_valid: Optional[bool] = None
    is_spam: bool
    is_qualified: bool
    reasons: Optional[list[str]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    submitted_at: Optional[datetime] = None
    webhook_status: DeliveryStatus
    webhook_sent: bool
    webhook_attempts: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)
