"""
leadvalidator/qualification/engine.py — Deterministic lead quality scoring.

score_submission(record) runs an ordered list of heuristics over a
SubmissionRecord. Every lead starts at 100; each heuristic that fires
deducts points and appends a reason, so `reasons` always follows the order
in which the checks ran. No I/O, no randomness: the same record always
yields the same QualificationResult.
"""

import logging
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from leadvalidator.config import DEFAULT_DISPOSABLE_DOMAINS
from leadvalidator.ingestion.normalizer import SubmissionRecord
from leadvalidator.qualification import rules

logger = logging.getLogger(__name__)

MAX_SCORE = 100
SPAM_SCORE_CEILING = 30     # anything below this is spam, whatever caused it

# ── Deductions ────────────────────────────────────────────────────────────────
MISSING_EMAIL_PENALTY = 50
INVALID_EMAIL_PENALTY = 30
DISPOSABLE_DOMAIN_PENALTY = 40
TEST_DOMAIN_PENALTY = 25
INVALID_PHONE_PENALTY = 10
FIRST_NAME_PENALTY = 15
LAST_NAME_PENALTY = 10
SPAM_KEYWORD_PENALTY = 15   # per keyword
CAPITALIZATION_PENALTY = 20
PUNCTUATION_PENALTY = 15
BOT_AGENT_PENALTY = 30

MIN_NAME_LENGTH = 2
SPAM_KEYWORD_THRESHOLD = 2
MAX_CAPITAL_RATIO = 0.5


# ── Output schema ────────────────────────────────────────────────────────────

class QualificationResult(BaseModel):
    """Outcome of scoring one submission. Immutable once produced."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    score: int = Field(ge=0, le=MAX_SCORE)
    email_valid: bool
    phone_valid: Optional[bool] = None     # None: no phone supplied
    is_spam: bool
    reasons: tuple[str, ...] = ()


class _Scorecard:
    """Mutable accumulator used while a single submission is being scored."""

    def __init__(self) -> None:
        self.score = MAX_SCORE
        self.reasons: list[str] = []
        self.is_spam = False

    def deduct(self, points: int, reason: str, spam: bool = False) -> None:
        self.score -= points
        self.reasons.append(reason)
        if spam:
            self.is_spam = True
        logger.debug("-%d: %s", points, reason)


# ── Heuristics (order matters for `reasons`) ─────────────────────────────────

def _check_email(card: _Scorecard, email: str, disposable_domains: frozenset[str]) -> bool:
    if not email:
        card.deduct(MISSING_EMAIL_PENALTY, "Missing email address")
        return False

    if not rules.is_valid_email(email):
        card.deduct(INVALID_EMAIL_PENALTY, "Invalid email format")
        return False

    domain = rules.email_domain(email)
    if domain in disposable_domains:
        card.deduct(DISPOSABLE_DOMAIN_PENALTY, "Disposable email domain", spam=True)
    elif rules.is_test_domain(domain):
        card.deduct(TEST_DOMAIN_PENALTY, "Test email domain")
    return True


def _check_phone(card: _Scorecard, phone: Optional[str], region: Optional[str]) -> Optional[bool]:
    if not phone:
        return None
    parsed, valid = rules.check_phone(phone, region)
    if not parsed:
        card.deduct(INVALID_PHONE_PENALTY, "Invalid phone number format")
    elif not valid:
        card.deduct(INVALID_PHONE_PENALTY, "Invalid phone number")
    return valid


def _check_names(card: _Scorecard, first_name: Optional[str], last_name: Optional[str]) -> None:
    if not first_name or len(first_name) < MIN_NAME_LENGTH:
        card.deduct(FIRST_NAME_PENALTY, "Missing or invalid first name")
    if not last_name or len(last_name) < MIN_NAME_LENGTH:
        card.deduct(LAST_NAME_PENALTY, "Missing or invalid last name")


def _check_message(card: _Scorecard, message: Optional[str]) -> None:
    if not message:
        return

    keyword_count = rules.count_spam_keywords(message)
    if keyword_count:
        card.deduct(
            SPAM_KEYWORD_PENALTY * keyword_count,
            f"Message contains {keyword_count} spam keyword(s)",
            spam=keyword_count >= SPAM_KEYWORD_THRESHOLD,
        )

    if rules.capital_ratio(message) > MAX_CAPITAL_RATIO:
        card.deduct(CAPITALIZATION_PENALTY, "Excessive capitalization in message", spam=True)

    if rules.has_punctuation_runs(message):
        card.deduct(PUNCTUATION_PENALTY, "Excessive punctuation in message")


def _check_user_agent(card: _Scorecard, user_agent: Optional[str]) -> None:
    if user_agent and rules.looks_like_bot(user_agent):
        card.deduct(BOT_AGENT_PENALTY, "Bot-like user agent detected", spam=True)


# ── Main function ────────────────────────────────────────────────────────────

def score_submission(
    record: SubmissionRecord,
    disposable_domains: Iterable[str] = DEFAULT_DISPOSABLE_DOMAINS,
    phone_region: Optional[str] = None,
) -> QualificationResult:
    """
    Score a submission and classify it.

    Args:
        record:             Canonical submission to score.
        disposable_domains: Email domains treated as throwaway (case-insensitive).
        phone_region:       Region for phone numbers written without '+'.

    Returns:
        QualificationResult with score in 0..100. A score below 30 is always
        spam, whichever checks caused it.
    """
    domains = frozenset(d.lower() for d in disposable_domains)
    card = _Scorecard()

    email_valid = _check_email(card, record.email, domains)
    phone_valid = _check_phone(card, record.phone, phone_region)
    _check_names(card, record.first_name, record.last_name)
    _check_message(card, record.message)
    _check_user_agent(card, record.user_agent)

    # Deductions only ever lower the score, so clamping and the spam
    # override can safely run last.
    score = max(0, card.score)
    is_spam = card.is_spam or score < SPAM_SCORE_CEILING

    return QualificationResult(
        score=score,
        email_valid=email_valid,
        phone_valid=phone_valid,
        is_spam=is_spam,
        reasons=tuple(card.reasons),
    )
