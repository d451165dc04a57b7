"""
leadvalidator/delivery/payload.py — The JSON document pushed to a project's webhook.

A WebhookPayload is a snapshot: it owns deep copies of the submission and
its result taken when the payload is built, and it is frozen, so every
retry sends exactly the same body.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel

from leadvalidator.ingestion.normalizer import SubmissionRecord
from leadvalidator.qualification.engine import QualificationResult


class WebhookPayload(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    lead_id: str
    project_id: str
    timestamp: datetime
    data: SubmissionRecord
    validation: QualificationResult
    qualified: bool

    @field_serializer("data")
    def _serialize_data(self, data: SubmissionRecord) -> dict[str, Any]:
        # optional contact fields are omitted rather than sent as null
        return data.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


def build_payload(
    lead_id: str,
    project_id: str,
    record: SubmissionRecord,
    result: QualificationResult,
    qualified: bool,
    timestamp: Optional[datetime] = None,
) -> WebhookPayload:
    """Snapshot a decided submission into a webhook payload."""
    return WebhookPayload(
        lead_id=lead_id,
        project_id=project_id,
        timestamp=timestamp or datetime.now(timezone.utc),
        data=record.model_copy(deep=True),
        validation=result.model_copy(deep=True),
        qualified=qualified,
    )
