"""
leadvalidator/services/api_keys.py — Project API key issuance.

Keys are a fixed prefix followed by 32 characters drawn uniformly from
[A-Za-z0-9]. Uniqueness is enforced by the store, not here.
"""

import secrets
import string

from leadvalidator.config import settings

API_KEY_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
API_KEY_LENGTH = 32


def generate_api_key(prefix: str | None = None) -> str:
    """Return a fresh API key such as 'lv_live_3fQ…'."""
    if prefix is None:
        prefix = settings.api_key_prefix
    body = "".join(secrets.choice(API_KEY_ALPHABET) for _ in range(API_KEY_LENGTH))
    return prefix + body
