import logging
from typing import Dict, Any

logger = logging.getLogger(__name__)


def send_notification(recipient: str, subject: str, body: str, channel: str = "sms") -> Dict[str, Any]:
    """Lightweight notification sender used by the prescription service.

    Logging adapter; swap in a provider integration (SMTP, Twilio, push)
    by passing another callable with the same signature to the service.
    """
    logger.info(f"Sending {channel} notification to {recipient}: {subject}")
    return {"status": "sent", "recipient": recipient, "channel": channel, "body": body}
