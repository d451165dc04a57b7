"""
leadvalidator/notifications/templates.py — Owner notification rendering.

Builds the notice a project owner receives when a lead's webhook could not
be delivered, as an HTML document with a plain-text fallback.
"""

from dataclasses import dataclass
from html import escape


@dataclass
class RenderedEmail:
    """Final email ready to be sent — subject, HTML body, plain-text body."""
    subject: str
    html_body: str
    plain_body: str


def render_email(subject: str, plain_body: str, sender_name: str = "Lead Validator") -> RenderedEmail:
    """Wrap a plain-text body in a minimal HTML document."""
    paragraphs = [
        f"<p>{escape(line)}</p>" if line.strip() else "<br>"
        for line in plain_body.strip().splitlines()
    ]
    html_content = "\n".join(paragraphs)

    html_body = f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <title>{escape(subject)}</title>
  <style>
    body {{
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
      font-size: 15px;
      line-height: 1.6;
      color: #1a1a1a;
    }}
    .container {{ max-width: 600px; margin: 40px auto; padding: 0 24px; }}
    .signature {{ margin-top: 32px; color: #555; font-size: 14px; }}
  </style>
</head>
<body>
  <div class="container">
    {html_content}
    <div class="signature">{escape(sender_name)}</div>
  </div>
</body>
</html>"""

    return RenderedEmail(subject=subject, html_body=html_body, plain_body=plain_body)


def render_delivery_failure(
    project_name: str,
    lead_id: str,
    lead_email: str,
    webhook_url: str,
    attempts: int,
    last_error: str,
) -> RenderedEmail:
    """
    Notice sent when a lead's webhook delivery exhausted its retries.

    The lead itself is stored; the owner can look it up by id.
    """
    subject = f"[{project_name}] Webhook delivery failed for lead {lead_id}"
    body = (
        f"We could not deliver a lead to your webhook after {attempts} attempt(s).\n"
        f"\n"
        f"Project: {project_name}\n"
        f"Lead ID: {lead_id}\n"
        f"Lead email: {lead_email}\n"
        f"Webhook URL: {webhook_url}\n"
        f"Last error: {last_error}\n"
        f"\n"
        f"The lead has been saved and is available in your lead list."
    )
    return render_email(subject, body)
