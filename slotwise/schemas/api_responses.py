"""
API request/response schemas for availability, slots and appointments.
"""
import uuid
from datetime import date, datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field

from slotwise.models.appointment import Appointment
from slotwise.models.availability import AvailabilityWindow
from slotwise.services.slots import TimeSlot

AppointmentStatus = Literal["scheduled", "completed", "cancelled", "rescheduled", "missed"]


class AvailabilityUpsertRequest(BaseModel):
    business_id: uuid.UUID
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    specific_date: Optional[date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_available: Optional[bool] = None


class AvailabilityOut(BaseModel):
    id: str
    business_id: str
    day_of_week: int
    specific_date: Optional[date] = None
    start_time: str
    end_time: str
    is_available: bool


class SlotOut(BaseModel):
    start_time: str
    end_time: str


class AppointmentCreateRequest(BaseModel):
    user_id: uuid.UUID
    service_id: uuid.UUID
    appointment_date: date
    start_time: str
    end_time: str
    notes: Optional[str] = None


class AppointmentUpdateRequest(BaseModel):
    status: Optional[AppointmentStatus] = None
    appointment_date: Optional[date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    service_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None


class AppointmentOut(BaseModel):
    id: str
    user_id: str
    business_id: str
    service_id: str
    appointment_date: date
    start_time: str
    end_time: str
    status: str
    notes: Optional[str] = None
    notification_sent: bool = False
    reminder_sent: bool = False
    auto_cancelled: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MessageResponse(BaseModel):
    message: str


class RestoreResponse(BaseModel):
    message: str
    count: int


def availability_out(window: AvailabilityWindow) -> AvailabilityOut:
    return AvailabilityOut(
        id=str(window.id),
        business_id=str(window.business_id),
        day_of_week=window.day_of_week,
        specific_date=window.specific_date,
        start_time=window.start_time,
        end_time=window.end_time,
        is_available=bool(window.is_available),
    )


def slot_out(slot: TimeSlot) -> SlotOut:
    return SlotOut(start_time=slot.start_time, end_time=slot.end_time)


def appointment_out(appointment: Appointment) -> AppointmentOut:
    return AppointmentOut(
        id=str(appointment.id),
        user_id=str(appointment.user_id),
        business_id=str(appointment.business_id),
        service_id=str(appointment.service_id),
        appointment_date=appointment.appointment_date,
        start_time=appointment.start_time,
        end_time=appointment.end_time,
        status=appointment.status,
        notes=appointment.notes,
        notification_sent=bool(appointment.notification_sent),
        reminder_sent=bool(appointment.reminder_sent),
        auto_cancelled=bool(appointment.auto_cancelled),
        created_at=appointment.created_at,
        updated_at=appointment.updated_at,
    )
