"""
Transactional email via the Resend API.
Templates are rendered with Jinja2 from the templates/ directory.
"""

import logging
import os
from typing import Any, Dict

import resend
from jinja2 import Environment, FileSystemLoader, select_autoescape

from errors import DeliveryError

logger = logging.getLogger(__name__)

TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")

_env = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=select_autoescape(["html", "xml"])
)


def render_template(template_name: str, context: Dict[str, Any]) -> str:
    return _env.get_template(template_name).render(**context)


class EmailNotifier:
    """Sends HTML email through Resend. Any failure raises DeliveryError."""

    def __init__(self, api_key: str, from_email: str):
        resend.api_key = api_key
        self._resend = resend
        self.from_email = from_email

    def send(self, to_email: str, subject: str, html: str) -> str:
        if not self._resend.api_key:
            raise DeliveryError("Email delivery is not configured")
        try:
            result = self._resend.Emails.send({
                "from": self.from_email,
                "to": [to_email],
                "subject": subject,
                "html": html,
            })
        except Exception as e:
            raise DeliveryError(f"Failed to send email to {to_email}: {e}") from e

        message_id = result.get("id") if isinstance(result, dict) else getattr(result, "id", None)
        logger.info("Email sent to %s (id: %s)", to_email, message_id)
        return message_id


def send_password_reset_email(notifier, to_email: str, username: str, reset_url: str, expire_minutes: int) -> None:
    html = render_template("password_reset.html", {
        "username": username or "there",
        "reset_url": reset_url,
        "expire_minutes": expire_minutes,
    })
    notifier.send(to_email, "Reset your QuizMania password", html)
