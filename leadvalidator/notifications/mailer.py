"""
leadvalidator/notifications/mailer.py — SMTP mailer for project owner notices.

OwnerMailer sends (or simulates sending) notification emails. Sending is
best-effort: a failure is logged and reported as False, never raised, so
notifications can't interfere with lead bookkeeping.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from leadvalidator.config import settings
from leadvalidator.notifications.templates import RenderedEmail

logger = logging.getLogger(__name__)


class OwnerMailer:
    """
    Sends owner notifications over SMTP over SSL.

    In dry-run mode (NOTIFIER_DRY_RUN=true) emails are printed to stdout
    and never actually transmitted.
    """

    def __init__(self, dry_run: Optional[bool] = None):
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_user = settings.smtp_user
        self.smtp_password = settings.smtp_password
        self.dry_run = dry_run if dry_run is not None else settings.notifier_dry_run

    # ── Public API ────────────────────────────────────────────────────────────

    def send(self, to_address: str, email: RenderedEmail) -> bool:
        """
        Send (or simulate) a single notification.

        Returns:
            True on success (real send or dry-run), False on send failure.
        """
        if self.dry_run:
            self._print_dry_run(to_address, email)
            logger.info("DRY RUN: notification to %s printed (not sent).", to_address)
            return True

        if not self.smtp_user:
            logger.error("SMTP_USER is not configured; cannot notify %s.", to_address)
            return False

        try:
            self._send_via_smtp(to_address, email)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send notification to %s: %s", to_address, exc)
            return False

        logger.info("Notification sent to %s.", to_address)
        return True

    # ── Private helpers ───────────────────────────────────────────────────────

    def _send_via_smtp(self, to_address: str, email: RenderedEmail) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = email.subject
        msg["From"] = self.smtp_user
        msg["To"] = to_address

        # plain first, HTML last — clients prefer the last part
        msg.attach(MIMEText(email.plain_body, "plain", "utf-8"))
        msg.attach(MIMEText(email.html_body, "html", "utf-8"))

        with smtplib.SMTP_SSL(self.smtp_host, self.smtp_port) as server:
            server.login(self.smtp_user, self.smtp_password or "")
            server.sendmail(self.smtp_user, to_address, msg.as_string())

    @staticmethod
    def _print_dry_run(to_address: str, email: RenderedEmail) -> None:
        separator = "─" * 60
        print(f"\n{separator}")
        print("  DRY RUN — Notification not sent")
        print(separator)
        print(f"  To      : {to_address}")
        print(f"  Subject : {email.subject}")
        print(separator)
        print(email.plain_body)
        print(f"{separator}\n")
