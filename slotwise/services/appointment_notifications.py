"""
Appointment notifications - customer and business messages for lifecycle events.

Every event notifies the customer and, unless the business is a demo
account, the business. Messages go through the Notifier queue; nothing here
blocks or raises into the caller.
"""
import html as html_lib
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from slotwise.models.appointment import Appointment
from slotwise.models.service import Service
from slotwise.models.user import User
from slotwise.services.notifier import Notification, get_notifier

logger = logging.getLogger(__name__)

# kind -> (subject, customer line, business line)
_TEMPLATES: dict[str, tuple[str, str, str]] = {
    "booked": (
        "Appointment Confirmation",
        "Your appointment has been scheduled for {when}.",
        "A new appointment has been scheduled for {when}.",
    ),
    "updated": (
        "Appointment Update",
        "Your appointment has been updated to {when}. Status: {status}.",
        "An appointment has been updated to {when}. Status: {status}.",
    ),
    "status_changed": (
        "Appointment Status Update",
        "Your appointment for {when} has been marked as {status}.",
        "The appointment for {when} has been marked as {status}.",
    ),
    "cancelled": (
        "Appointment Cancelled",
        "Your appointment for {when} has been cancelled.",
        "An appointment for {when} has been cancelled.",
    ),
    "expired": (
        "Appointment Missed",
        "Your appointment for {when} has passed and was marked as missed.",
        "The appointment for {when} has passed and was marked as missed.",
    ),
    "missed": (
        "Appointment Missed",
        "You missed your appointment for {when}. Please book a new time if you still need this service.",
        "The customer did not show up for the appointment at {when}. It has been marked as missed.",
    ),
    "restored": (
        "Appointment Restored",
        "Your appointment for {when} was marked as missed by mistake and has been restored.",
        "The appointment for {when} was marked as missed by mistake and has been restored.",
    ),
    "reminder": (
        "Appointment Starting Soon",
        "Reminder: your appointment starts in {minutes} minutes ({when}).",
        "Reminder: an appointment starts in {minutes} minutes ({when}).",
    ),
    "day_before": (
        "Appointment Reminder",
        "Reminder: you have an appointment scheduled for tomorrow, {when}.",
        "Reminder: you have an appointment scheduled for tomorrow, {when}.",
    ),
}


def format_when(appointment: Appointment) -> str:
    return f"{appointment.appointment_date.strftime('%A, %B %d, %Y')} at {appointment.start_time}"


def _render_html(subject: str, lines: list[str]) -> str:
    body = "".join(f"<p>{html_lib.escape(line)}</p>" for line in lines)
    return f"<h1>{html_lib.escape(subject)}</h1>{body}"


def build_messages(
    kind: str,
    appointment: Appointment,
    customer: Optional[User],
    business: Optional[User],
    service: Optional[Service],
    minutes: Optional[int] = None,
) -> list[Notification]:
    """Customer and (non-demo) business messages for one event."""
    subject, customer_line, business_line = _TEMPLATES[kind]
    fields = {
        "when": format_when(appointment),
        "status": appointment.status,
        "minutes": minutes if minutes is not None else "",
    }
    service_line = f"Service: {service.name}" if service else "Service: N/A"
    appointment_id = str(appointment.id)
    messages = []

    if customer and customer.email:
        lines = [customer_line.format(**fields), service_line]
        messages.append(Notification(
            to_email=customer.email,
            subject=subject,
            text="\n".join(lines),
            html=_render_html(subject, lines),
            kind=kind,
            appointment_id=appointment_id,
        ))

    if business and business.email and not business.is_demo:
        lines = [business_line.format(**fields), service_line]
        if customer:
            lines.append(f"Customer: {customer.name}")
            lines.append(f"Contact: {customer.email}")
            if customer.phone:
                lines.append(f"Phone: {customer.phone}")
        if appointment.notes:
            lines.append(f"Notes: {appointment.notes}")
        messages.append(Notification(
            to_email=business.email,
            subject=subject,
            text="\n".join(lines),
            html=_render_html(subject, lines),
            kind=kind,
            appointment_id=appointment_id,
        ))

    return messages


async def notify_parties(
    db: AsyncSession,
    appointment: Appointment,
    kind: str,
    minutes: Optional[int] = None,
) -> int:
    """
    Enqueue notifications for an appointment event. Returns how many were queued.
    Call only after the triggering status change is committed.
    """
    try:
        customer = await db.get(User, appointment.user_id)
        business = await db.get(User, appointment.business_id)
        service = await db.get(Service, appointment.service_id)
        messages = build_messages(kind, appointment, customer, business, service, minutes)
    except Exception as e:
        logger.error(
            "Failed to build %s notifications: %s", kind, str(e),
            extra={"appointment_id": str(appointment.id)},
        )
        return 0

    notifier = get_notifier()
    return sum(1 for message in messages if notifier.enqueue(message))
