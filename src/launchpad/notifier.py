"""Outbound overdue notifications."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Protocol, Tuple

import httpx

from .errors import NotificationError
from .messages import EMAIL_BODY, EMAIL_SUBJECT, get_product_name
from .schemas import Alert

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    message: str

    def to_payload(self) -> Dict[str, str]:
        return {"to": self.to, "subject": self.subject, "message": self.message}


class MailTransport(Protocol):
    async def send(self, email: EmailMessage) -> None:
        ...


class HttpMailTransport:
    """Posts messages as JSON to the mail boundary endpoint."""

    def __init__(
        self,
        endpoint: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._endpoint = endpoint
        self._timeout = timeout
        self._transport = transport

    async def send(self, email: EmailMessage) -> None:
        """Deliver ``email``.

        Raises:
            NotificationError: On a network failure, a non-2xx status or a
                response whose ``success`` flag is not true.
        """

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await client.post(self._endpoint, json=email.to_payload())
            except httpx.HTTPError as exc:
                raise NotificationError("Mail request failed.", details={"reason": str(exc)}) from exc

        try:
            result = response.json()
        except ValueError:
            result = {}
        if not isinstance(result, dict):
            result = {}

        if response.is_error or not result.get("success"):
            raise NotificationError(
                result.get("message") or "Unknown error",
                details={"status": str(response.status_code)},
            )


def _task_key(alert: Alert) -> Tuple[str, str]:
    return alert.project_id, alert.task_id


class DeliveryState(str, Enum):
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"


class NotificationDispatcher:
    """Turns alerts into emails for the assignee.

    Delivery state is tracked per overdue task for display only, so it
    survives alert recomputes; calling :meth:`notify` twice sends twice.
    """

    def __init__(self, transport: MailTransport) -> None:
        self._transport = transport
        self._deliveries: Dict[Tuple[str, str], DeliveryState] = {}

    def compose(self, alert: Alert) -> EmailMessage:
        return EmailMessage(
            to=alert.recipient_email,
            subject=EMAIL_SUBJECT.format(task_name=alert.task_name),
            message=EMAIL_BODY.format(
                product=get_product_name(),
                task_name=alert.task_name,
                department=alert.department.value,
            ),
        )

    def delivery_state(self, alert: Alert) -> Optional[DeliveryState]:
        return self._deliveries.get(_task_key(alert))

    def prune(self, active_alerts: Iterable[Alert]) -> None:
        """Forget delivery state for tasks that are no longer overdue."""

        keep = {_task_key(alert) for alert in active_alerts}
        for key in list(self._deliveries):
            if key not in keep:
                del self._deliveries[key]

    async def notify(self, alert: Alert) -> None:
        email = self.compose(alert)
        key = _task_key(alert)
        self._deliveries[key] = DeliveryState.SENDING
        logger.info("Sending overdue notice for %s to %s", alert.task_name, email.to)
        try:
            await self._transport.send(email)
        except NotificationError:
            self._deliveries[key] = DeliveryState.FAILED
            logger.warning("Overdue notice for %s was rejected", alert.task_name)
            raise
        except Exception as exc:  # pragma: no cover - transport implementations vary
            self._deliveries[key] = DeliveryState.FAILED
            logger.error("Overdue notice for %s failed", alert.task_name, exc_info=exc)
            raise NotificationError("Failed to send notification.", details={"reason": str(exc)}) from exc
        self._deliveries[key] = DeliveryState.SENT
        logger.info("Overdue notice for %s sent", alert.task_name)
