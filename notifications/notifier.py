"""
Delivery of summary emails through Amazon SES.
"""

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from notifications.renderer import build_subject, render_html, render_text
from summary.aggregator import LocationSummary

logger = logging.getLogger(__name__)

CHARSET = "UTF-8"

_ses_client: Optional[Any] = None
_ses_client_lock = threading.Lock()


def get_ses_client(region_name: Optional[str] = None) -> Any:
    """Process-wide SES client, created on first use."""
    global _ses_client
    if _ses_client is None:
        with _ses_client_lock:
            if _ses_client is None:
                _ses_client = boto3.client("ses", region_name=region_name)
    return _ses_client


def reset_ses_client() -> None:
    global _ses_client
    with _ses_client_lock:
        _ses_client = None


class SummaryNotifier:
    """Sends one rendered summary from the configured sender to one recipient."""

    def __init__(
        self,
        sender: str,
        recipient: str,
        ses_client_factory: Callable[[], Any] = get_ses_client,
    ):
        self.sender = sender
        self.recipient = recipient
        self._ses_client_factory = ses_client_factory

    def send(self, summary: LocationSummary, now: datetime) -> str:
        """
        Render and send the summary email.

        Returns:
            The SES message id

        Raises:
            ClientError: SES rejected the message
            BotoCoreError: SES could not be reached
        """
        subject = build_subject(summary, now)
        try:
            response = self._ses_client_factory().send_email(
                Source=self.sender,
                Destination={"ToAddresses": [self.recipient]},
                Message={
                    "Subject": {"Data": subject, "Charset": CHARSET},
                    "Body": {
                        "Html": {"Data": render_html(summary), "Charset": CHARSET},
                        "Text": {"Data": render_text(summary), "Charset": CHARSET},
                    },
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to send summary email: {e}", extra={
                "extra_data": {"recipient": self.recipient, "variant": summary.variant}
            })
            raise

        message_id = response.get("MessageId", "")
        logger.info(f"Summary email sent to {self.recipient}", extra={
            "extra_data": {
                "recipient": self.recipient,
                "variant": summary.variant,
                "message_id": message_id,
            }
        })
        return message_id
