"""
leadvalidator/delivery/webhook.py — Reliable webhook delivery with bounded retries.

WebhookClient.deliver() POSTs a WebhookPayload to a project's endpoint.
Only a 2xx response counts as delivered. Non-2xx responses and transport
failures (timeouts, refused connections, DNS) are logged and retried with
exponential backoff — 2, 4, 8 … time units between attempts, no jitter —
until `max_attempts` is reached. deliver() never raises for delivery
problems; it reports them in the returned DeliveryResult.
"""

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import requests
from tenacity import RetryCallState, Retrying, retry_if_result, stop_after_attempt, wait_exponential

from leadvalidator.config import settings
from leadvalidator.delivery.payload import WebhookPayload

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/json"


# ── Output dataclasses ────────────────────────────────────────────────────────

class AttemptOutcome(str, enum.Enum):
    SUCCESS = "success"
    HTTP_ERROR = "http_error"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class DeliveryAttempt:
    attempt_number: int                 # 1-based
    outcome: AttemptOutcome
    status_code: Optional[int] = None   # set for SUCCESS / HTTP_ERROR
    error: Optional[str] = None         # set for TRANSPORT_ERROR

    @property
    def succeeded(self) -> bool:
        return self.outcome is AttemptOutcome.SUCCESS


@dataclass
class DeliveryResult:
    success: bool
    attempts: list[DeliveryAttempt] = field(default_factory=list)

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)


# ── Client ────────────────────────────────────────────────────────────────────

def _check_attempts(max_attempts: int) -> int:
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
    return max_attempts


class WebhookClient:
    """
    Delivers webhook payloads over HTTP.

    `sleep` is the function used to wait between attempts; tests pass a
    recorder instead of time.sleep.
    """

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.max_attempts = _check_attempts(
            max_attempts if max_attempts is not None else settings.webhook_max_attempts
        )
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.webhook_backoff_seconds
        )
        self.timeout = timeout if timeout is not None else settings.webhook_timeout_seconds
        if self.backoff_seconds < 0:
            raise ValueError(f"backoff_seconds must be >= 0, got {self.backoff_seconds}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")
        self.user_agent = user_agent or settings.webhook_user_agent
        self._sleep = sleep

    # ── Public API ────────────────────────────────────────────────────────────

    def deliver(
        self,
        url: str,
        payload: WebhookPayload,
        max_attempts: Optional[int] = None,
        on_attempt: Optional[Callable[[DeliveryAttempt], None]] = None,
    ) -> DeliveryResult:
        """
        POST `payload` to `url`, retrying failed attempts with backoff.

        Args:
            url:          The project's webhook endpoint.
            payload:      Frozen payload; serialized once and resent as-is.
            max_attempts: Overrides the client's attempt cap for this call.
            on_attempt:   Called after every attempt, successful or not.

        Returns:
            DeliveryResult with success flag and every attempt made.
        """
        max_attempts = self.max_attempts if max_attempts is None else _check_attempts(max_attempts)
        body = payload.to_json()
        attempts: list[DeliveryAttempt] = []

        def _attempt() -> DeliveryAttempt:
            attempt = self._post(url, body, attempt_number=len(attempts) + 1)
            attempts.append(attempt)
            if on_attempt is not None:
                on_attempt(attempt)
            return attempt

        retryer = Retrying(
            retry=retry_if_result(lambda attempt: not attempt.succeeded),
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=2 * self.backoff_seconds, exp_base=2),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            retry_error_callback=lambda state: state.outcome.result(),
        )
        retryer(_attempt)

        success = bool(attempts) and attempts[-1].succeeded
        if success:
            logger.info(
                "Webhook for lead %s delivered to %s after %d attempt(s).",
                payload.lead_id, url, len(attempts),
            )
        else:
            logger.error(
                "Webhook for lead %s to %s failed after %d attempt(s).",
                payload.lead_id, url, len(attempts),
            )
        return DeliveryResult(success=success, attempts=attempts)

    # ── Private helpers ───────────────────────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": CONTENT_TYPE, "User-Agent": self.user_agent}

    def _post(self, url: str, body: str, attempt_number: int) -> DeliveryAttempt:
        """Make one HTTP attempt and classify its outcome."""
        try:
            response = requests.post(
                url,
                data=body.encode("utf-8"),
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Webhook attempt %d failed: %s", attempt_number, exc)
            return DeliveryAttempt(
                attempt_number=attempt_number,
                outcome=AttemptOutcome.TRANSPORT_ERROR,
                error=str(exc),
            )

        if 200 <= response.status_code < 300:
            return DeliveryAttempt(
                attempt_number=attempt_number,
                outcome=AttemptOutcome.SUCCESS,
                status_code=response.status_code,
            )

        logger.warning(
            "Webhook attempt %d failed with status: %d", attempt_number, response.status_code,
        )
        return DeliveryAttempt(
            attempt_number=attempt_number,
            outcome=AttemptOutcome.HTTP_ERROR,
            status_code=response.status_code,
        )

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        logger.warning(
            "Webhook attempt %d failed; retrying in %.1fs.",
            retry_state.attempt_number, retry_state.next_action.sleep,
        )
