# marketplace/core/notifier.py
import logging

from marketplace.core.email_client import send_email

logger = logging.getLogger(__name__)


class EmailNotifier:
    """
    Fire-and-forget notifier backed by SMTP.

    Services schedule `send` as a FastAPI background task; delivery
    failures are logged and never reach the caller.
    """

    def send(self, recipient: str, subject: str, message: str) -> None:
        try:
            send_email(to_email=recipient, subject=subject, text_body=message)
        except Exception:
            logger.exception("Failed to send %r to %s", subject, recipient)
            return
        logger.info("Sent %r to %s", subject, recipient)
