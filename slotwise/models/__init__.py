"""
Database models - import all models here so Alembic can discover them.
"""
from slotwise.models.user import User
from slotwise.models.service import Service
from slotwise.models.availability import AvailabilityWindow
from slotwise.models.appointment import Appointment
from slotwise.models.appointment_event import AppointmentEvent

__all__ = [
    "User",
    "Service",
    "AvailabilityWindow",
    "Appointment",
    "AppointmentEvent",
]
