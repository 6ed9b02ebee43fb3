"""
Summary email rendering and delivery.
"""

from notifications.notifier import SummaryNotifier, get_ses_client, reset_ses_client
from notifications.renderer import build_subject, render_html, render_text

__all__ = [
    "SummaryNotifier",
    "build_subject",
    "get_ses_client",
    "render_html",
    "render_text",
    "reset_ses_client",
]
