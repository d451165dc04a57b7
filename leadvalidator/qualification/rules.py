"""
leadvalidator/qualification/rules.py — Lookup tables and single-signal checks
used by the scoring engine.

Provides:
  - is_valid_email()        : strict RFC-like address grammar
  - check_phone()           : international number validation via phonenumbers
  - count_spam_keywords()   : distinct spam phrases present in a message
  - capital_ratio()         : share of upper-case letters in a message
  - has_punctuation_runs()  : "!!" / "?!?" style runs
  - looks_like_bot()        : user-agent signature match
"""

import logging
import re
from typing import Iterable, Optional

import phonenumbers
from phonenumbers import NumberParseException

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(
    r"[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*"
)

TEST_DOMAIN_MARKERS = ("test", "example")

SPAM_KEYWORDS = (
    "buy now",
    "click here",
    "free money",
    "guaranteed",
    "make money",
    "no cost",
    "risk free",
    "special promotion",
    "urgent",
    "winner",
)

BOT_SIGNATURES = re.compile(r"bot|crawler|spider|curl|wget|python|perl|php", re.IGNORECASE)

PUNCTUATION_RUN = re.compile(r"[!?]{2,}")
CAPITAL_LETTER = re.compile(r"[A-Z]")


def is_valid_email(email: str) -> bool:
    return bool(email) and EMAIL_PATTERN.fullmatch(email) is not None


def email_domain(email: str) -> str:
    """Lower-cased part after the last '@' ('' when there is none)."""
    return email.rpartition("@")[2].lower()


def is_test_domain(domain: str) -> bool:
    return any(marker in domain for marker in TEST_DOMAIN_MARKERS)


def check_phone(phone: str, region: Optional[str] = None) -> tuple[bool, bool]:
    """
    Validate a phone number against international numbering rules.

    Returns (parsed, valid). Parse failures are reported, never raised.
    """
    try:
        number = phonenumbers.parse(phone, region)
    except NumberParseException as exc:
        logger.debug("Phone %r could not be parsed: %s", phone, exc)
        return False, False
    return True, phonenumbers.is_valid_number(number)


def count_spam_keywords(message: str, keywords: Iterable[str] = SPAM_KEYWORDS) -> int:
    message_lower = message.lower()
    return sum(1 for keyword in keywords if keyword in message_lower)


def capital_ratio(message: str) -> float:
    if not message:
        return 0.0
    return len(CAPITAL_LETTER.findall(message)) / len(message)


def has_punctuation_runs(message: str) -> bool:
    return PUNCTUATION_RUN.search(message) is not None


def looks_like_bot(user_agent: str) -> bool:
    return BOT_SIGNATURES.search(user_agent) is not None
