"""
Booking endpoints: view, create and move the caller's hotel room booking.
"""

from typing import Awaitable, Callable, Optional, TypeVar

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.core.exceptions import forbidden_error
from hotel_booking.core.logging import get_logger
from hotel_booking.core.metrics import record_admission
from hotel_booking.core.security import get_current_user_id
from hotel_booking.db.session import get_db
from hotel_booking.schemas.booking import BookingIdResponse, BookingRequest, BookingResponse
from hotel_booking.services import booking_service
from hotel_booking.services.interfaces.admission import AdmissionStrategy
from hotel_booking.services.strategy_factory import get_admission

logger = get_logger(__name__)
router = APIRouter(prefix="/booking", tags=["Booking"])

T = TypeVar("T")


def _require_room_id(booking_data: Optional[BookingRequest]) -> int:
    if booking_data is None or booking_data.room_id is None:
        raise forbidden_error("roomId must be a positive integer")
    return booking_data.room_id


async def _through_admission(
    admission: AdmissionStrategy,
    room_id: int,
    write: Callable[[], Awaitable[T]],
) -> T:
    admitted = await admission.admit(room_id)
    record_admission(admitted)
    if not admitted:
        logger.info("admission_rejected", room_id=room_id)
        raise forbidden_error("Room is full")

    try:
        return await write()
    finally:
        await admission.release(room_id)


async def _sync_free_slots(admission: AdmissionStrategy, db: AsyncSession, *room_ids: int) -> None:
    """Push the current free-slot count of every room a write touched."""
    for room_id in dict.fromkeys(room_ids):
        await admission.sync(room_id, await booking_service.free_slots(db, room_id))


@router.get("", response_model=BookingResponse)
async def get_booking_endpoint(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """The caller's booking with its room."""
    return await booking_service.get_booking(db, user_id)


@router.post("", response_model=BookingIdResponse)
async def create_booking_endpoint(
    booking_data: Optional[BookingRequest] = None,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    admission: AdmissionStrategy = Depends(get_admission),
):
    """
    Book a room.

    403 when the caller has no enrollment, no qualifying ticket, already holds
    a booking, or the room is full. 404 when the room does not exist.
    """
    room_id = _require_room_id(booking_data)
    booking = await _through_admission(
        admission, room_id,
        lambda: booking_service.create_booking(db, user_id, room_id),
    )
    await _sync_free_slots(admission, db, room_id)
    return BookingIdResponse(booking_id=booking.id)


@router.put("/{booking_id}", response_model=BookingIdResponse)
async def update_booking_endpoint(
    booking_id: int,
    booking_data: Optional[BookingRequest] = None,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    admission: AdmissionStrategy = Depends(get_admission),
):
    """
    Move the caller's booking to another room. The booking id is preserved.

    403 when the caller has no booking to move or the target room is full.
    """
    room_id = _require_room_id(booking_data)
    move = await _through_admission(
        admission, room_id,
        lambda: booking_service.update_booking(db, user_id, room_id, booking_id),
    )
    # The room left behind gained a slot too
    await _sync_free_slots(admission, db, room_id, move.from_room_id)
    return BookingIdResponse(booking_id=move.booking.id)
