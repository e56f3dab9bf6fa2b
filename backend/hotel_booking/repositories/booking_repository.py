"""
Booking persistence.
"""

from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hotel_booking.core.exceptions import forbidden_error
from hotel_booking.db.base import MAX_INTEGER_ID
from hotel_booking.models.booking import Booking


async def find_booking_by_user_id(db: AsyncSession, user_id: int) -> Optional[Booking]:
    result = await db.execute(
        select(Booking)
        .options(selectinload(Booking.room))
        .where(Booking.user_id == user_id)
        .execution_options(populate_existing=True)
        .order_by(Booking.id.asc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def find_booking_by_id(db: AsyncSession, booking_id: int) -> Optional[Booking]:
    if booking_id > MAX_INTEGER_ID:
        return None
    result = await db.execute(select(Booking).where(Booking.id == booking_id))
    return result.scalar_one_or_none()


async def find_bookings_by_room_id(db: AsyncSession, room_id: int) -> list[Booking]:
    result = await db.execute(
        select(Booking).where(Booking.room_id == room_id).order_by(Booking.id.asc())
    )
    return list(result.scalars().all())


async def count_bookings_by_room_id(db: AsyncSession, room_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(Booking).where(Booking.room_id == room_id)
    )
    return result.scalar_one()


async def create_booking(db: AsyncSession, user_id: int, room_id: int) -> Booking:
    booking = Booking(user_id=user_id, room_id=room_id)
    db.add(booking)
    try:
        await db.flush()
    except IntegrityError as exc:
        # uq_booking_user: a concurrent request for the same user won
        raise forbidden_error("User already has a booking") from exc
    await db.refresh(booking)
    return booking


async def upsert_booking(
    db: AsyncSession,
    booking_id: int,
    user_id: int,
    room_id: int,
) -> Booking:
    """Repoint booking `booking_id` to `room_id`, or create it if the row is gone."""
    booking = await find_booking_by_id(db, booking_id)
    if booking is None:
        return await create_booking(db, user_id, room_id)

    booking.room_id = room_id
    await db.flush()
    await db.refresh(booking)
    return booking
