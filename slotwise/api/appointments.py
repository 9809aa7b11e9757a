"""
Appointments API - booking, rescheduling, status changes and cancellation.
"""
import logging
import uuid
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from slotwise.api.errors import to_http_exception
from slotwise.database import get_db
from slotwise.schemas.api_responses import (
    AppointmentCreateRequest,
    AppointmentOut,
    AppointmentStatus,
    AppointmentUpdateRequest,
    MessageResponse,
    RestoreResponse,
    appointment_out,
)
from slotwise.services.booking import (
    cancel_appointment,
    create_appointment,
    get_appointment,
    list_appointments,
    update_appointment,
)
from slotwise.utils.errors import BookingRejectedError, NotFoundError, SlotConflictError
from slotwise.workers.recovery_sweep import restore_future_appointments

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/appointments", tags=["appointments"])

_DOMAIN_ERRORS = (NotFoundError, BookingRejectedError, SlotConflictError)


@router.post("", response_model=AppointmentOut, status_code=201)
async def book_appointment(
    payload: AppointmentCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        appointment = await create_appointment(
            db,
            user_id=payload.user_id,
            service_id=payload.service_id,
            appointment_date=payload.appointment_date,
            start_time=payload.start_time,
            end_time=payload.end_time,
            notes=payload.notes,
        )
    except _DOMAIN_ERRORS as e:
        raise to_http_exception(e)
    return appointment_out(appointment)


@router.get("", response_model=list[AppointmentOut])
async def get_appointments(
    user_id: Optional[uuid.UUID] = Query(default=None),
    business_id: Optional[uuid.UUID] = Query(default=None),
    status: Optional[AppointmentStatus] = Query(default=None),
    appointment_date: Optional[date] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    appointments = await list_appointments(
        db,
        user_id=user_id,
        business_id=business_id,
        status=status,
        appointment_date=appointment_date,
        limit=limit,
        offset=offset,
    )
    return [appointment_out(a) for a in appointments]


@router.post("/restore-future", response_model=RestoreResponse)
async def restore_future():
    """Run the recovery sweep on demand."""
    count = await restore_future_appointments()
    return RestoreResponse(message=f"Restored {count} appointments", count=count)


@router.get("/{appointment_id}", response_model=AppointmentOut)
async def get_appointment_detail(
    appointment_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    try:
        appointment = await get_appointment(db, appointment_id)
    except NotFoundError as e:
        raise to_http_exception(e)
    return appointment_out(appointment)


@router.put("/{appointment_id}", response_model=AppointmentOut)
async def modify_appointment(
    appointment_id: uuid.UUID,
    payload: AppointmentUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        appointment = await update_appointment(
            db,
            appointment_id,
            status=payload.status,
            appointment_date=payload.appointment_date,
            start_time=payload.start_time,
            end_time=payload.end_time,
            service_id=payload.service_id,
            notes=payload.notes,
        )
    except _DOMAIN_ERRORS as e:
        raise to_http_exception(e)
    return appointment_out(appointment)


@router.delete("/{appointment_id}", response_model=MessageResponse)
async def delete_appointment(
    appointment_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    try:
        await cancel_appointment(db, appointment_id)
    except NotFoundError as e:
        raise to_http_exception(e)
    return MessageResponse(message="Appointment cancelled successfully")
