"""
leadvalidator/ingestion/normalizer.py — Maps arbitrary form field names onto
the canonical lead schema.

Takes the raw name → value mapping captured from a third-party form and
returns a clean, typed SubmissionRecord ready for scoring. Pure: the output
depends only on the raw fields, the field map and the client metadata.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel, to_snake

from leadvalidator.config import DEFAULT_FIELD_MAP

logger = logging.getLogger(__name__)

CANONICAL_FIELDS = ("email", "first_name", "last_name", "phone", "company", "message")


# ── Output schema ────────────────────────────────────────────────────────────

class SubmissionRecord(BaseModel):
    """One form post in canonical form. Serializes with camelCase keys."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    email: str = ""
    phone: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company: Optional[str] = None
    message: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    submitted_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        alias="timestamp",
    )


@dataclass(frozen=True)
class ClientMetadata:
    """What the capture client knows about the browser that posted the form."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ── Helpers ──────────────────────────────────────────────────────────────────

def _builtin_field(name: str) -> Optional[str]:
    """Fallback name patterns, tested in fixed precedence."""
    if "email" in name:
        return "email"
    if "first" in name and "name" in name:
        return "first_name"
    if "last" in name and "name" in name:
        return "last_name"
    if "phone" in name or "tel" in name:
        return "phone"
    if "company" in name or "organization" in name:
        return "company"
    if "message" in name or "comment" in name:
        return "message"
    return None


def canonical_field(key: str) -> Optional[str]:
    """Canonical name for a field-map key given as `first_name` or `firstName`."""
    snake = to_snake(key.strip())
    return snake if snake in CANONICAL_FIELDS else None


def canonical_field_map(field_map: Mapping[str, str]) -> dict[str, str]:
    """
    Re-key a project field map by canonical snake_case names.

    Raises:
        ValueError: a key names no canonical field.
    """
    resolved: dict[str, str] = {}
    for key, alias in field_map.items():
        canonical = canonical_field(str(key))
        if canonical is None:
            raise ValueError(
                f"Unknown field {key!r} in field map; expected one of: {', '.join(CANONICAL_FIELDS)}."
            )
        resolved[canonical] = alias
    return resolved


def map_field_name(field_name: str, field_map: Mapping[str, str] | None = None) -> Optional[str]:
    """
    Resolve a raw form field name to a canonical field, or None to drop it.

    The configured map is consulted first: a name matches an entry when it
    contains either the configured alias or the canonical key itself
    (with or without underscores). Built-in patterns are the fallback.
    """
    lower_name = field_name.lower()
    for key, alias in (field_map or DEFAULT_FIELD_MAP).items():
        canonical = canonical_field(key)
        if canonical is None:
            continue
        candidates = {canonical.lower(), canonical.replace("_", "").lower()}
        if alias:
            candidates.add(alias.lower())
        if any(candidate in lower_name for candidate in candidates):
            return canonical
    return _builtin_field(lower_name)


def _clean(value) -> str:
    return str(value).strip() if value is not None else ""


# ── Main functions ───────────────────────────────────────────────────────────

def normalize_fields(
    raw_fields: Mapping[str, object],
    field_map: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """
    Map raw form fields to canonical names.

    The first raw field (in iteration order) that resolves to a canonical name
    wins; later fields resolving to the same name are ignored. Blank values
    never claim a canonical slot. Unmatched fields are dropped.
    """
    resolved: dict[str, str] = {}
    for raw_name, raw_value in raw_fields.items():
        value = _clean(raw_value)
        if not value:
            continue
        canonical = map_field_name(str(raw_name), field_map)
        if canonical is None:
            logger.debug("Dropping unmapped form field %r.", raw_name)
            continue
        if canonical in resolved:
            logger.debug("Ignoring %r — %s already set by an earlier field.", raw_name, canonical)
            continue
        resolved[canonical] = value
    return resolved


def build_submission(
    raw_fields: Mapping[str, object],
    metadata: ClientMetadata | None = None,
    field_map: Mapping[str, str] | None = None,
) -> SubmissionRecord:
    """Normalize raw fields and attach client metadata into a SubmissionRecord."""
    metadata = metadata or ClientMetadata()
    canonical = normalize_fields(raw_fields, field_map)
    return SubmissionRecord(
        email=canonical.get("email", ""),
        phone=canonical.get("phone"),
        first_name=canonical.get("first_name"),
        last_name=canonical.get("last_name"),
        company=canonical.get("company"),
        message=canonical.get("message"),
        ip_address=metadata.ip_address or None,
        user_agent=metadata.user_agent or None,
        referrer=metadata.referrer or None,
        submitted_at=metadata.submitted_at,
    )
