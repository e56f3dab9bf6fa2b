"""
Tests for the capacity allocator, including contention on the last free slot.
"""

import asyncio

import pytest
from prometheus_client import REGISTRY
from sqlalchemy import update

from hotel_booking.core.exceptions import BookingError, ErrorKind
from hotel_booking.models import Room, TicketStatus, Ticket
from hotel_booking.repositories import room_repository
from hotel_booking.repositories.booking_repository import (
    count_bookings_by_room_id,
    find_booking_by_user_id,
    find_bookings_by_room_id,
)
from hotel_booking.services import booking_service


def _retries() -> float:
    return REGISTRY.get_sample_value("hotel_booking_capacity_retries_total") or 0.0


# --- create -------------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize("capacity,occupied", [(1, 0), (3, 0), (3, 2), (5, 4)])
async def test_create_below_capacity_adds_one(db_session, make_attendee, make_room, fill_room, capacity, occupied):
    room = await make_room(capacity=capacity)
    await fill_room(room.id, occupied)
    user = await make_attendee()
    room_id, user_id = room.id, user.id

    booking = await booking_service.create_booking(db_session, user_id, room_id)

    assert booking.user_id == user_id
    assert booking.room_id == room_id
    assert await count_bookings_by_room_id(db_session, room_id) == occupied + 1


@pytest.mark.asyncio
@pytest.mark.parametrize("capacity,occupied", [(1, 1), (3, 3), (2, 3)])
async def test_create_at_or_over_capacity_is_forbidden(db_session, make_attendee, make_room, fill_room, capacity, occupied):
    # (2, 3) is a room already oversold by some other path; it must stay closed
    room = await make_room(capacity=capacity)
    await fill_room(room.id, occupied)
    user = await make_attendee()

    with pytest.raises(BookingError) as exc_info:
        await booking_service.create_booking(db_session, user.id, room.id)

    assert exc_info.value.kind is ErrorKind.FORBIDDEN
    assert exc_info.value.message == "Room is full"
    assert await count_bookings_by_room_id(db_session, room.id) == occupied


@pytest.mark.asyncio
async def test_fourth_booking_in_room_for_three(db_session, make_attendee, make_room):
    room = await make_room(capacity=3)
    room_id = room.id
    guests = [await make_attendee() for _ in range(4)]
    guest_ids = [guest.id for guest in guests]

    for guest_id in guest_ids[:3]:
        await booking_service.create_booking(db_session, guest_id, room_id)

    with pytest.raises(BookingError) as exc_info:
        await booking_service.create_booking(db_session, guest_ids[3], room_id)

    assert exc_info.value.kind is ErrorKind.FORBIDDEN
    assert len(await find_bookings_by_room_id(db_session, room_id)) == 3


@pytest.mark.asyncio
async def test_create_unknown_room_is_not_found(db_session, make_attendee):
    user = await make_attendee()

    with pytest.raises(BookingError) as exc_info:
        await booking_service.create_booking(db_session, user.id, 424242)

    assert exc_info.value.kind is ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_unknown_room_wins_over_ineligible_user(db_session, make_attendee):
    user = await make_attendee(with_enrollment=False)

    with pytest.raises(BookingError) as exc_info:
        await booking_service.create_booking(db_session, user.id, 424242)

    assert exc_info.value.kind is ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_remote_ticket_forbidden_even_with_free_room(db_session, make_attendee, make_room):
    room = await make_room(capacity=10)
    user = await make_attendee(is_remote=True)

    with pytest.raises(BookingError) as exc_info:
        await booking_service.create_booking(db_session, user.id, room.id)

    assert exc_info.value.kind is ErrorKind.FORBIDDEN


@pytest.mark.asyncio
async def test_create_twice_keeps_one_booking(db_session, make_attendee, make_room):
    room = await make_room(capacity=3)
    user = await make_attendee()
    room_id, user_id = room.id, user.id
    await booking_service.create_booking(db_session, user_id, room_id)

    with pytest.raises(BookingError) as exc_info:
        await booking_service.create_booking(db_session, user_id, room_id)

    assert exc_info.value.kind is ErrorKind.FORBIDDEN
    assert await count_bookings_by_room_id(db_session, room_id) == 1


@pytest.mark.asyncio
async def test_create_bumps_room_version(db_session, make_attendee, make_room):
    room = await make_room(capacity=2)
    user = await make_attendee()
    room_id = room.id

    await booking_service.create_booking(db_session, user.id, room_id)

    refreshed = await room_repository.find_room_by_id(db_session, room_id, fresh=True)
    assert refreshed.version == 2


# --- get ------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_booking_not_found(db_session, make_attendee):
    user = await make_attendee()

    with pytest.raises(BookingError) as exc_info:
        await booking_service.get_booking(db_session, user.id)

    assert exc_info.value.kind is ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_get_booking_loads_room(db_session, make_attendee, make_room, make_booking):
    room = await make_room(capacity=2, name="Suite")
    user = await make_attendee()
    await make_booking(user.id, room.id)

    booking = await booking_service.get_booking(db_session, user.id)

    assert booking.room.name == "Suite"


# --- update ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_preserves_booking_id(db_session, make_attendee, make_room, make_booking):
    old_room = await make_room(capacity=1, name="A")
    new_room = await make_room(capacity=1, name="B")
    user = await make_attendee()
    booking = await make_booking(user.id, old_room.id)
    booking_id, user_id, old_id, new_id = booking.id, user.id, old_room.id, new_room.id

    moved = await booking_service.update_booking(db_session, user_id, new_id, booking_id)

    assert moved.booking.id == booking_id
    assert moved.booking.room_id == new_id
    assert moved.from_room_id == old_id
    assert await count_bookings_by_room_id(db_session, old_id) == 0
    assert await count_bookings_by_room_id(db_session, new_id) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("path_booking_id", [0, 1, 999])
async def test_update_without_booking_forbidden_for_any_path_id(db_session, make_attendee, make_room, path_booking_id):
    room = await make_room(capacity=3)
    user = await make_attendee()

    with pytest.raises(BookingError) as exc_info:
        await booking_service.update_booking(db_session, user.id, room.id, path_booking_id)

    assert exc_info.value.kind is ErrorKind.FORBIDDEN
    assert exc_info.value.message == "User has no booking to change"


@pytest.mark.asyncio
async def test_update_unknown_room_not_found(db_session, make_attendee, make_room, make_booking):
    room = await make_room(capacity=3)
    user = await make_attendee()
    booking = await make_booking(user.id, room.id)

    with pytest.raises(BookingError) as exc_info:
        await booking_service.update_booking(db_session, user.id, 424242, booking.id)

    assert exc_info.value.kind is ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_update_within_full_room_forbidden(db_session, make_attendee, make_room, make_booking):
    room = await make_room(capacity=1)
    user = await make_attendee()
    booking = await make_booking(user.id, room.id)

    with pytest.raises(BookingError) as exc_info:
        await booking_service.update_booking(db_session, user.id, room.id, booking.id)

    assert exc_info.value.kind is ErrorKind.FORBIDDEN
    assert exc_info.value.message == "Room is full"


@pytest.mark.asyncio
async def test_update_full_room_reported_before_missing_booking(db_session, make_attendee, make_room, fill_room):
    room = await make_room(capacity=1)
    await fill_room(room.id, 1)
    user = await make_attendee()

    with pytest.raises(BookingError) as exc_info:
        await booking_service.update_booking(db_session, user.id, room.id, 1)

    assert exc_info.value.message == "Room is full"


@pytest.mark.asyncio
async def test_update_ignores_path_id_by_default(db_session, make_attendee, make_user, make_room, make_booking):
    room = await make_room(capacity=3, name="A")
    target = await make_room(capacity=3, name="B")
    user = await make_attendee()
    stranger = await make_user()
    own = await make_booking(user.id, room.id)
    strangers = await make_booking(stranger.id, room.id)
    own_id, strangers_id, user_id, target_id = own.id, strangers.id, user.id, target.id

    moved = await booking_service.update_booking(db_session, user_id, target_id, strangers_id)

    assert moved.booking.id == own_id
    strangers_booking = await find_booking_by_user_id(db_session, stranger.id)
    assert strangers_booking.room_id == room.id


@pytest.mark.asyncio
async def test_update_path_ownership_policy(monkeypatch, db_session, make_attendee, make_user, make_room, make_booking):
    monkeypatch.setattr(booking_service.settings, "BOOKING_UPDATE_OWNERSHIP", "path")
    room = await make_room(capacity=3, name="A")
    target = await make_room(capacity=3, name="B")
    user = await make_attendee()
    stranger = await make_user()
    own = await make_booking(user.id, room.id)
    strangers = await make_booking(stranger.id, room.id)
    own_id, strangers_id, user_id, target_id = own.id, strangers.id, user.id, target.id

    with pytest.raises(BookingError) as exc_info:
        await booking_service.update_booking(db_session, user_id, target_id, strangers_id)
    assert exc_info.value.kind is ErrorKind.FORBIDDEN

    moved = await booking_service.update_booking(db_session, user_id, target_id, own_id)
    assert moved.booking.id == own_id
    assert moved.booking.room_id == target_id


@pytest.mark.asyncio
@pytest.mark.parametrize("revalidate,expected_ok", [(True, False), (False, True)])
async def test_update_eligibility_revalidation_toggle(
    monkeypatch, db_session, make_attendee, make_room, make_booking, revalidate, expected_ok
):
    monkeypatch.setattr(booking_service.settings, "BOOKING_UPDATE_REVALIDATES_ELIGIBILITY", revalidate)
    room = await make_room(capacity=3, name="A")
    target = await make_room(capacity=3, name="B")
    user = await make_attendee()
    booking = await make_booking(user.id, room.id)
    user_id, target_id, booking_id = user.id, target.id, booking.id

    # Ticket refunded after the booking was made
    await db_session.execute(update(Ticket).values(status=TicketStatus.RESERVED))
    await db_session.commit()

    if expected_ok:
        moved = await booking_service.update_booking(db_session, user_id, target_id, booking_id)
        assert moved.booking.room_id == target_id
    else:
        with pytest.raises(BookingError) as exc_info:
            await booking_service.update_booking(db_session, user_id, target_id, booking_id)
        assert exc_info.value.kind is ErrorKind.FORBIDDEN


@pytest.mark.asyncio
async def test_free_slots(db_session, make_room, fill_room):
    room = await make_room(capacity=3)
    await fill_room(room.id, 2)

    assert await booking_service.free_slots(db_session, room.id) == 1


# --- contention -------------------------------------------------------------------

def _competing_writer(monkeypatch, conflicts: int):
    """
    Make the next `conflicts` room reads race with another writer that claims
    the room between our read and our version update.
    """
    original = room_repository.find_room_by_id
    state = {"remaining": conflicts}

    async def racing_find_room_by_id(db, room_id, fresh=False):
        room = await original(db, room_id, fresh=fresh)
        if fresh and room is not None and state["remaining"] > 0:
            state["remaining"] -= 1
            await db.execute(
                update(Room)
                .where(Room.id == room_id)
                .values(version=Room.version + 1)
                .execution_options(synchronize_session=False)
            )
        return room

    monkeypatch.setattr(room_repository, "find_room_by_id", racing_find_room_by_id)


@pytest.mark.asyncio
async def test_version_conflict_is_retried(monkeypatch, db_session, make_attendee, make_room):
    room = await make_room(capacity=2)
    user = await make_attendee()
    room_id, user_id = room.id, user.id
    retries_before = _retries()
    _competing_writer(monkeypatch, conflicts=1)

    booking = await booking_service.create_booking(db_session, user_id, room_id)

    assert booking.room_id == room_id
    assert _retries() == retries_before + 1


@pytest.mark.asyncio
async def test_retries_exhausted_is_forbidden(monkeypatch, db_session, make_attendee, make_room):
    room = await make_room(capacity=2)
    user = await make_attendee()
    room_id, user_id = room.id, user.id
    _competing_writer(monkeypatch, conflicts=booking_service.settings.BOOKING_MAX_RETRY_ATTEMPTS)

    with pytest.raises(BookingError) as exc_info:
        await booking_service.create_booking(db_session, user_id, room_id)

    assert exc_info.value.kind is ErrorKind.FORBIDDEN
    assert exc_info.value.message == "Room is busy, please try again"
    assert await count_bookings_by_room_id(db_session, room_id) == 0


async def _attempt_create(session_factory, user_id: int, room_id: int):
    """One request: its own session, committed on success, rolled back on refusal."""
    async with session_factory() as session:
        try:
            booking = await booking_service.create_booking(session, user_id, room_id)
            await session.commit()
            return booking.id
        except BookingError as exc:
            await session.rollback()
            return exc.kind


@pytest.mark.asyncio
async def test_concurrent_creates_for_last_slot(session_factory, make_attendee, make_room, fill_room):
    room = await make_room(capacity=2)
    await fill_room(room.id, 1)
    contenders = [await make_attendee(), await make_attendee()]
    room_id = room.id
    contender_ids = [user.id for user in contenders]

    results = await asyncio.gather(
        *(_attempt_create(session_factory, user_id, room_id) for user_id in contender_ids)
    )

    assert sum(1 for result in results if isinstance(result, int)) == 1
    assert results.count(ErrorKind.FORBIDDEN) == 1
    async with session_factory() as session:
        assert await count_bookings_by_room_id(session, room_id) == 2


@pytest.mark.asyncio
async def test_concurrent_burst_never_oversells(session_factory, make_attendee, make_room):
    room = await make_room(capacity=3)
    contenders = [await make_attendee() for _ in range(8)]
    room_id = room.id
    contender_ids = [user.id for user in contenders]

    results = await asyncio.gather(
        *(_attempt_create(session_factory, user_id, room_id) for user_id in contender_ids)
    )

    # Under heavy contention a request may also give up after its retries,
    # so fewer than three can succeed. More than three never may.
    successes = sum(1 for result in results if isinstance(result, int))
    assert 1 <= successes <= 3
    assert results.count(ErrorKind.FORBIDDEN) == len(contender_ids) - successes
    async with session_factory() as session:
        assert await count_bookings_by_room_id(session, room_id) == successes
