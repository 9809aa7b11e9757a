"""
Seed demo businesses, services, weekly availability and a few appointments.

Idempotent: deletes existing demo rows first (matched by email), then
recreates them with appointment dates relative to today.

Usage:
    python scripts/seed_demo_business.py
"""
import asyncio
import logging
import uuid
from datetime import timedelta

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from slotwise.config import get_settings
from slotwise.models.appointment import Appointment
from slotwise.models.appointment_event import AppointmentEvent
from slotwise.models.availability import AvailabilityWindow
from slotwise.models.service import Service
from slotwise.models.user import User
from slotwise.utils.timezone import get_zoneinfo, local_today

logging.basicConfig(level=logging.INFO, format="%(levelname)s  %(message)s")
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
DEMO_CUSTOMER = ("Regular User", "user@example.com", "555-123-4567")

# business name, email, phone -> [(service name, description, minutes, price)]
DEMO_BUSINESSES = {
    ("Hair & Style Salon", "salon@example.com", "555-987-6543"): [
        ("Haircut", "Professional haircut and styling", 30, 35.00),
        ("Hair Coloring", "Full hair coloring service", 90, 85.00),
        ("Styling", "Special occasion styling", 60, 55.00),
    ],
    ("Dental Care Center", "dental@example.com", "555-456-7890"): [
        ("Teeth Cleaning", "Professional dental cleaning", 45, 120.00),
        ("Dental Checkup", "Routine dental examination", 30, 80.00),
    ],
    ("Fitness Studio", "fitness@example.com", "555-789-0123"): [
        ("Personal Training", "One-on-one training session", 60, 70.00),
        ("Group Class", "Small group fitness class", 45, 25.00),
    ],
    ("Spa & Massage Center", "spa@example.com", "555-234-5678"): [
        ("Massage", "Full body massage", 60, 90.00),
        ("Facial", "Rejuvenating facial treatment", 45, 65.00),
    ],
}

WEEKDAY_HOURS = ("09:00", "17:00")  # Monday-Friday
SATURDAY_HOURS = ("10:00", "15:00")

# (business index, service index, days from today, start, notes)
DEMO_APPOINTMENTS = [
    (0, 0, 1, "10:00", "First time customer"),
    (1, 0, 7, "14:00", "Regular checkup"),
    (2, 0, 14, "11:00", "Focus on strength training"),
    (3, 0, 3, "15:00", "Deep tissue massage"),
]


def _end_time(start: str, minutes: int) -> str:
    hours, mins = (int(p) for p in start.split(":"))
    total = hours * 60 + mins + minutes
    return f"{total // 60:02d}:{total % 60:02d}"


async def _delete_demo_data(session: AsyncSession) -> None:
    emails = [DEMO_CUSTOMER[1]] + [email for (_, email, _) in DEMO_BUSINESSES]
    result = await session.execute(select(User.id).where(User.email.in_(emails)))
    user_ids = list(result.scalars().all())
    if not user_ids:
        return

    appointment_ids = select(Appointment.id).where(
        Appointment.business_id.in_(user_ids) | Appointment.user_id.in_(user_ids)
    )
    await session.execute(delete(AppointmentEvent).where(AppointmentEvent.appointment_id.in_(appointment_ids)))
    await session.execute(
        delete(Appointment).where(
            Appointment.business_id.in_(user_ids) | Appointment.user_id.in_(user_ids)
        )
    )
    await session.execute(delete(AvailabilityWindow).where(AvailabilityWindow.business_id.in_(user_ids)))
    await session.execute(delete(Service).where(Service.business_id.in_(user_ids)))
    await session.execute(delete(User).where(User.id.in_(user_ids)))
    await session.commit()
    logger.info("Deleted %d existing demo users and their data", len(user_ids))


# ---------------------------------------------------------------------------
# Main seed routine
# ---------------------------------------------------------------------------
async def seed() -> None:
    """Seed the demo businesses."""
    settings = get_settings()
    engine = create_async_engine(settings.database_url, echo=False)
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        await _delete_demo_data(session)

    today = local_today(get_zoneinfo())

    async with async_session() as session:
        name, email, phone = DEMO_CUSTOMER
        customer = User(id=uuid.uuid4(), name=name, email=email, phone=phone, role="user")
        session.add(customer)

        businesses: list[tuple[User, list[Service]]] = []
        for (biz_name, biz_email, biz_phone), offerings in DEMO_BUSINESSES.items():
            business = User(
                id=uuid.uuid4(), name=biz_name, email=biz_email, phone=biz_phone,
                role="business", is_demo=True,
            )
            session.add(business)
            services = [
                Service(
                    id=uuid.uuid4(), business_id=business.id, name=svc_name,
                    description=description, duration=minutes, price=price, active=True,
                )
                for svc_name, description, minutes, price in offerings
            ]
            session.add_all(services)

            for day in range(1, 6):
                session.add(AvailabilityWindow(
                    business_id=business.id, day_of_week=day,
                    start_time=WEEKDAY_HOURS[0], end_time=WEEKDAY_HOURS[1], is_available=True,
                ))
            session.add(AvailabilityWindow(
                business_id=business.id, day_of_week=6,
                start_time=SATURDAY_HOURS[0], end_time=SATURDAY_HOURS[1], is_available=True,
            ))
            businesses.append((business, services))
        await session.flush()
        logger.info("Created %d demo businesses", len(businesses))

        for biz_index, svc_index, days_ahead, start, notes in DEMO_APPOINTMENTS:
            business, services = businesses[biz_index]
            service = services[svc_index]
            session.add(Appointment(
                user_id=customer.id,
                business_id=business.id,
                service_id=service.id,
                appointment_date=today + timedelta(days=days_ahead),
                start_time=start,
                end_time=_end_time(start, service.duration),
                notes=notes,
                status="scheduled",
            ))
        await session.commit()
        logger.info("Created %d demo appointments", len(DEMO_APPOINTMENTS))

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
