"""
leadvalidator/db/models.py — SQLAlchemy ORM models for the lead validator.

Tables:
  - Project → a website/form integration with its API key and webhook settings
  - Lead    → one scored form submission plus its webhook delivery bookkeeping
"""

import enum
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, relationship


def _new_id() -> str:
    return str(uuid.uuid4())


# ── Base ─────────────────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    pass


# ── Enums ────────────────────────────────────────────────────────────────────

class DeliveryStatus(str, enum.Enum):
    PENDING = "pending"     # delivery scheduled, not started
    SENDING = "sending"     # claimed by a delivery run
    SENT = "sent"
    FAILED = "failed"       # retries exhausted
    SKIPPED = "skipped"     # no webhook configured, or lead not eligible


# ── Models ───────────────────────────────────────────────────────────────────

class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    api_key = Column(String(64), nullable=False, unique=True, index=True)
    webhook_url = Column(String(1024), nullable=True)
    min_score = Column(Integer, nullable=True)            # falls back to settings
    deliver_all = Column(Boolean, default=False, nullable=False)
    field_map = Column(JSON, nullable=True)               # canonical → alias
    email_notifications = Column(Boolean, default=False, nullable=False)
    notification_email = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    # Relationships
    leads = relationship("Lead", back_populates="project", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Project id={self.id} name={self.name!r}>"


class Lead(Base):
    __tablename__ = "leads"

    id = Column(String(36), primary_key=True, default=_new_id)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)

    email = Column(String(320), nullable=False)
    phone = Column(String(64), nullable=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    company = Column(String(255), nullable=True)
    message = Column(Text, nullable=True)
    form_data = Column(JSON, nullable=True)               # raw submitted fields

    validation_score = Column(Integer, nullable=False)    # 0 – 100
    email_valid = Column(Boolean, nullable=False)
    phone_valid = Column(Boolean, nullable=True)          # NULL when no phone given
    is_spam = Column(Boolean, default=False, nullable=False)
    is_qualified = Column(Boolean, default=False, nullable=False)
    reasons = Column(JSON, nullable=True)                 # ordered list of strings

    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    referrer = Column(Text, nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)

    webhook_status = Column(Enum(DeliveryStatus), default=DeliveryStatus.SKIPPED, nullable=False)
    webhook_sent = Column(Boolean, default=False, nullable=False)
    webhook_attempts = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    project = relationship("Project", back_populates="leads")

    def __repr__(self) -> str:
        return f"<Lead id={self.id} score={self.validation_score} webhook={self.webhook_status}>"
