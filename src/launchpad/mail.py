"""Server side of the mail boundary."""
from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel

from .config import Settings

logger = logging.getLogger(__name__)


class MailRequest(BaseModel):
    to: str
    subject: str
    message: str


class MailResponse(BaseModel):
    success: bool
    message: Optional[str] = None


def resolve_recipient(to: str, settings: Settings) -> str:
    """Apply the test-mode redirect to a requested recipient."""

    if settings.mail_test_mode:
        logger.debug("Test mode: redirecting mail for %s to %s", to, settings.mail_test_address)
        return settings.mail_test_address
    return to


def deliver(request: MailRequest, settings: Settings) -> MailResponse:
    """Accept a message for delivery.

    No mail provider is wired in; delivery is simulated and logged.
    """

    if not request.to.strip():
        return MailResponse(success=False, message="Recipient is required")

    recipient = resolve_recipient(request.to, settings)
    logger.info('Simulating email send to %s with subject "%s"', recipient, request.subject)
    return MailResponse(success=True, message="Email sent successfully")
