"""
Availability API - business windows and the computed bookable slots.

- GET    /api/availability/{business_id}               - available windows
- GET    /api/availability/slots/{business_id}/{date}  - bookable 30-minute slots
- POST   /api/availability                             - create or update a window
- DELETE /api/availability/{window_id}                 - remove a window
"""
import logging
import uuid
from datetime import date
from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from slotwise.api.errors import to_http_exception
from slotwise.database import get_db
from slotwise.schemas.api_responses import (
    AvailabilityOut,
    AvailabilityUpsertRequest,
    MessageResponse,
    SlotOut,
    availability_out,
    slot_out,
)
from slotwise.services.availability import (
    delete_availability,
    list_business_availability,
    upsert_availability,
)
from slotwise.services.slots import generate_slots
from slotwise.utils.errors import BookingRejectedError, NotFoundError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/availability", tags=["availability"])


@router.get("/slots/{business_id}/{slot_date}", response_model=list[SlotOut])
async def get_available_slots(
    business_id: uuid.UUID,
    slot_date: date,
    db: AsyncSession = Depends(get_db),
):
    try:
        slots = await generate_slots(db, business_id, slot_date)
    except NotFoundError as e:
        raise to_http_exception(e)
    # Persist a synthesized default window, if one was created
    await db.commit()
    return [slot_out(s) for s in slots]


@router.get("/{business_id}", response_model=list[AvailabilityOut])
async def get_business_availability(
    business_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    windows = await list_business_availability(db, business_id)
    return [availability_out(w) for w in windows]


@router.post("", response_model=AvailabilityOut)
async def set_availability(
    payload: AvailabilityUpsertRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    try:
        window, created = await upsert_availability(
            db,
            payload.business_id,
            day=payload.day_of_week,
            start_time=payload.start_time,
            end_time=payload.end_time,
            is_available=payload.is_available,
            specific_date=payload.specific_date,
        )
    except (NotFoundError, BookingRejectedError) as e:
        raise to_http_exception(e)
    await db.commit()

    response.status_code = 201 if created else 200
    logger.info(
        "Availability %s: day=%d %s-%s",
        "created" if created else "updated",
        window.day_of_week, window.start_time, window.end_time,
        extra={"business_id": str(window.business_id)},
    )
    return availability_out(window)


@router.delete("/{window_id}", response_model=MessageResponse)
async def remove_availability(
    window_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    try:
        await delete_availability(db, window_id)
    except NotFoundError as e:
        raise to_http_exception(e)
    await db.commit()
    return MessageResponse(message="Availability removed")
