"""
Room lookups and the capacity reservation used by every booking write.

CONCURRENCY STRATEGY: Optimistic Locking on rooms.version
=========================================================

Problem:
  Occupancy is COUNT(bookings WHERE room_id = R). Two requests for the last
  free slot both count capacity - 1, both insert, and the room is oversold.

Solution:
  Before writing a booking, the writer claims the room:

  1. Read the room (fresh from the DB) and count its bookings
  2. capacity <= occupancy -> reject, the room is full
  3. UPDATE rooms SET version = version + 1
     WHERE id = :room_id AND version = :read_version
  4. rows_affected == 0 -> another writer claimed the room after our read:
     roll back and start over from step 1

  The UPDATE takes a row lock that is held until the request's transaction
  commits, so a competing writer either blocks on it and then misses the
  version, or reads after the commit and counts the new booking.
"""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.core.config import get_settings
from hotel_booking.core.exceptions import forbidden_error, not_found_error
from hotel_booking.core.logging import get_logger
from hotel_booking.core.metrics import capacity_retries
from hotel_booking.db.base import MAX_INTEGER_ID
from hotel_booking.models.hotel import Room
from hotel_booking.repositories.booking_repository import count_bookings_by_room_id

logger = get_logger(__name__)
settings = get_settings()


async def find_room_by_id(db: AsyncSession, room_id: int, fresh: bool = False) -> Optional[Room]:
    if room_id > MAX_INTEGER_ID:
        return None
    query = select(Room).where(Room.id == room_id)
    if fresh:
        query = query.execution_options(populate_existing=True)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def reserve_room_capacity(db: AsyncSession, room_id: int) -> Room:
    """
    Claim one slot in the room for a booking written in the same transaction.
    Raises NOT_FOUND if the room is gone and FORBIDDEN if it is full.
    """
    max_attempts = max(settings.BOOKING_MAX_RETRY_ATTEMPTS, 1)

    for attempt in range(1, max_attempts + 1):
        room = await find_room_by_id(db, room_id, fresh=True)
        if room is None:
            raise not_found_error("Room does not exist")

        occupancy = await count_bookings_by_room_id(db, room_id)
        if room.capacity <= occupancy:
            logger.warning(
                "room_full",
                room_id=room_id,
                capacity=room.capacity,
                occupancy=occupancy,
            )
            raise forbidden_error("Room is full")

        current_version = room.version
        claim = await db.execute(
            update(Room)
            .where(Room.id == room_id, Room.version == current_version)
            .values(version=Room.version + 1)
            .execution_options(synchronize_session=False)
        )

        if claim.rowcount == 1:
            await db.refresh(room)
            logger.debug("room_claimed", room_id=room_id, version=room.version, attempt=attempt)
            return room

        capacity_retries.inc()
        logger.info(
            "booking_retry",
            room_id=room_id,
            attempt=attempt,
            reason="version_conflict",
        )
        await db.rollback()

    raise forbidden_error("Room is busy, please try again")
