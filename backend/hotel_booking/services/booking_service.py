"""
Capacity allocator: create, move and read a user's hotel room booking.

Every write goes through room_repository.reserve_room_capacity, which claims
the target room under optimistic locking before the booking row is touched.
All refusals raise BookingError before anything is written; the request's
transaction is rolled back by get_db if a later step fails.

Rules:
  - A user holds at most one booking. Creating a second one is FORBIDDEN.
  - A room is full when capacity <= occupancy, counted before the write.
    The caller's own booking counts too, so moving within a full room fails.
  - Updates keep the booking id and repoint room_id in place.
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.core.config import get_settings
from hotel_booking.core.exceptions import BookingError, forbidden_error, not_found_error
from hotel_booking.core.logging import get_logger
from hotel_booking.core.metrics import booking_latency, record_booking_attempt
from hotel_booking.models.booking import Booking
from hotel_booking.models.hotel import Room
from hotel_booking.repositories import booking_repository, room_repository
from hotel_booking.services.eligibility_service import check_eligibility, resolve_room

logger = get_logger(__name__)
settings = get_settings()


@dataclass(frozen=True)
class BookingMove:
    """A booking after update, and the room it was moved out of."""

    booking: Booking
    from_room_id: int


@contextmanager
def _instrumented(operation: str, **context):
    start = time.perf_counter()
    try:
        yield
    except BookingError as exc:
        record_booking_attempt(operation, exc.kind.value)
        logger.info(
            "booking_rejected",
            operation=operation,
            kind=exc.kind.value,
            reason=exc.message,
            **context,
        )
        raise
    else:
        record_booking_attempt(operation, "success")
    finally:
        booking_latency.labels(operation=operation).observe(time.perf_counter() - start)


async def _ensure_room_has_space(db: AsyncSession, room: Room) -> int:
    occupancy = await booking_repository.count_bookings_by_room_id(db, room.id)
    if room.capacity <= occupancy:
        raise forbidden_error("Room is full")
    return occupancy


async def _resolve_owned_booking(db: AsyncSession, user_id: int, booking_id: int) -> Booking:
    if settings.BOOKING_UPDATE_OWNERSHIP == "path":
        booking = await booking_repository.find_booking_by_id(db, booking_id)
        if booking is not None and booking.user_id != user_id:
            booking = None
    else:
        booking = await booking_repository.find_booking_by_user_id(db, user_id)

    if booking is None:
        raise forbidden_error("User has no booking to change")
    return booking


async def get_booking(db: AsyncSession, user_id: int) -> Booking:
    """The user's booking with its room loaded."""
    with _instrumented("get", user_id=user_id):
        booking = await booking_repository.find_booking_by_user_id(db, user_id)
        if booking is None:
            raise not_found_error("User has no booking")
        return booking


async def create_booking(db: AsyncSession, user_id: int, room_id: int) -> Booking:
    with _instrumented("create", user_id=user_id, room_id=room_id):
        eligibility = await check_eligibility(db, user_id, room_id)

        if await booking_repository.find_booking_by_user_id(db, user_id) is not None:
            raise forbidden_error("User already has a booking")

        room = await room_repository.reserve_room_capacity(db, eligibility.room.id)
        booking = await booking_repository.create_booking(db, user_id, room.id)

        logger.info(
            "booking_created",
            booking_id=booking.id,
            user_id=user_id,
            room_id=room.id,
            room_version=room.version,
        )
        return booking


async def update_booking(
    db: AsyncSession,
    user_id: int,
    room_id: int,
    booking_id: int,
) -> BookingMove:
    """
    Move the caller's booking to another room.

    `booking_id` comes from the request path. Under the default "user"
    ownership policy it is ignored and the caller's own booking is moved.
    """
    with _instrumented("update", user_id=user_id, room_id=room_id, booking_id=booking_id):
        if settings.BOOKING_UPDATE_REVALIDATES_ELIGIBILITY:
            room = (await check_eligibility(db, user_id, room_id)).room
        else:
            room = await resolve_room(db, room_id)

        # Checked before the ownership lookup so a full room is reported first,
        # as on create. reserve_room_capacity checks again under the lock.
        await _ensure_room_has_space(db, room)

        owned = await _resolve_owned_booking(db, user_id, booking_id)
        owned_id, previous_room_id = owned.id, owned.room_id

        # May roll back and retry on contention, which expires loaded objects
        room = await room_repository.reserve_room_capacity(db, room_id)
        booking = await booking_repository.upsert_booking(db, owned_id, user_id, room.id)

        logger.info(
            "booking_updated",
            booking_id=booking.id,
            user_id=user_id,
            from_room_id=previous_room_id,
            to_room_id=room.id,
        )
        return BookingMove(booking=booking, from_room_id=previous_room_id)


async def free_slots(db: AsyncSession, room_id: int) -> int:
    room = await resolve_room(db, room_id)
    occupancy = await booking_repository.count_bookings_by_room_id(db, room_id)
    return max(room.capacity - occupancy, 0)
