"""
Notifier - fire-and-forget outbound email.

The lifecycle code only enqueues. A dispatcher task drains the queue and
delivers through SendGrid. Delivery is at-most-once: failures are logged and
dropped, and never reach the status transition that produced the message.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from slotwise.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    to_email: str
    subject: str
    text: str
    html: str
    kind: str = "generic"
    appointment_id: Optional[str] = None


def _mask_email(email: str) -> str:
    return (email or "")[:3] + "***"


async def send_email(notification: Notification) -> dict:
    """
    Send one email via SendGrid.

    Returns: {"message_id": str|None, "status": "sent"|"skipped"|"error", "error": str|None}
    """
    settings = get_settings()
    if not settings.sendgrid_api_key:
        logger.info(
            "SendGrid not configured, skipping %s email to %s",
            notification.kind, _mask_email(notification.to_email),
        )
        return {"message_id": None, "status": "skipped", "error": None}

    try:
        from sendgrid import SendGridAPIClient
        from sendgrid.helpers.mail import Mail, Email, To, Content

        message = Mail(
            from_email=Email(settings.notification_from_email, settings.notification_from_name),
            to_emails=To(notification.to_email),
            subject=notification.subject,
        )
        message.content = [
            Content("text/plain", notification.text),
            Content("text/html", notification.html),
        ]

        sg = SendGridAPIClient(api_key=settings.sendgrid_api_key)
        # Offload synchronous SendGrid SDK call to thread pool
        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(None, lambda: sg.send(message))
        message_id = response.headers.get("X-Message-Id", "")

        logger.info(
            "Email sent: kind=%s to=%s",
            notification.kind, _mask_email(notification.to_email),
            extra={"appointment_id": notification.appointment_id},
        )
        return {"message_id": message_id, "status": "sent", "error": None}

    except Exception as e:
        logger.error(
            "Email failed: kind=%s to=%s error=%s",
            notification.kind, _mask_email(notification.to_email), str(e),
            extra={"appointment_id": notification.appointment_id},
        )
        return {"message_id": None, "status": "error", "error": str(e)}


Sender = Callable[[Notification], Awaitable[dict]]


class Notifier:
    """Bounded in-process queue producer with a single dispatcher."""

    def __init__(self, maxsize: int = 1000, sender: Optional[Sender] = None):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._sender = sender or send_email
        self._alert_tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def enqueue(self, notification: Notification) -> bool:
        """Queue a message without blocking. Returns False if it was dropped."""
        try:
            self._queue.put_nowait(notification)
            return True
        except asyncio.QueueFull:
            logger.warning(
                "Notification queue full, dropping %s email to %s",
                notification.kind, _mask_email(notification.to_email),
                extra={"appointment_id": notification.appointment_id},
            )
            self._alert_queue_full()
            return False

    def _alert_queue_full(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        from slotwise.utils.alerting import send_alert, AlertType
        task = loop.create_task(send_alert(
            AlertType.NOTIFICATION_QUEUE_FULL,
            f"Notification queue full ({self._queue.maxsize}), dropping messages",
            severity="warning",
        ))
        self._alert_tasks.add(task)
        task.add_done_callback(self._alert_tasks.discard)

    async def _deliver(self, notification: Notification) -> None:
        try:
            result = await self._sender(notification)
            if result.get("status") == "error":
                from slotwise.utils.alerting import send_alert, AlertType
                await send_alert(
                    AlertType.NOTIFICATION_FAILED,
                    f"Failed to deliver {notification.kind} email: {result.get('error')}",
                    severity="warning",
                )
        except Exception as e:
            logger.error("Notification delivery error: %s", str(e), exc_info=True)

    async def drain(self) -> int:
        """Deliver everything currently queued. Returns the number processed."""
        processed = 0
        while True:
            try:
                notification = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return processed
            try:
                await self._deliver(notification)
            finally:
                self._queue.task_done()
            processed += 1

    async def run_dispatcher(self) -> None:
        """Main loop - deliver queued notifications as they arrive."""
        logger.info("Notification dispatcher started")
        while True:
            notification = await self._queue.get()
            try:
                await self._deliver(notification)
            finally:
                self._queue.task_done()


_notifier: Optional[Notifier] = None


def get_notifier() -> Notifier:
    """Process-wide notifier (lazily created)."""
    global _notifier
    if _notifier is None:
        _notifier = Notifier(maxsize=get_settings().notification_queue_size)
    return _notifier
