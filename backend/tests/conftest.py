"""
Pytest fixtures for the test database, HTTP client and booking data.

Tables are created and dropped around every test. The default test database
is a SQLite file through aiosqlite; point TEST_DATABASE_URL at PostgreSQL to
run the same suite against the production dialect.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("ADMISSION_STRATEGY", "optimistic")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./hotel_booking_dev.db")

import itertools
import uuid
from typing import AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from hotel_booking.main import app
from hotel_booking.db.base import Base
from hotel_booking.db.session import get_db
from hotel_booking.core.security import create_access_token
from hotel_booking.models import (
    Booking, Enrollment, Hotel, Room, Ticket, TicketStatus, TicketType, User, UserSession,
)

TEST_DATABASE_URL = os.environ.get(
    "TEST_DATABASE_URL", "sqlite+aiosqlite:///./test_hotel_booking.db"
)


def _serialize_sqlite_transactions(engine: AsyncEngine) -> None:
    # pysqlite defers BEGIN until the first write, so two writers can deadlock
    # upgrading their locks. Take the write lock when the transaction starts.
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


@pytest_asyncio.fixture(scope="function")
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
    if engine.dialect.name == "sqlite":
        _serialize_sqlite_transactions(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker:
    """Independent sessions, one per simulated request."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# Factories commit and never refresh: a refresh would open a new transaction
# and hold the SQLite write lock while other sessions need it.

@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[[], Awaitable[User]]:
    sequence = itertools.count(1)

    async def _make_user() -> User:
        user = User(email=f"attendee{next(sequence)}@example.com")
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_attendee(db_session: AsyncSession, make_user) -> Callable[..., Awaitable[User]]:
    """
    A user with an enrollment and a ticket. Defaults describe an attendee who
    may book: paid, in-person, hotel included.
    """

    async def _make_attendee(
        status: TicketStatus = TicketStatus.PAID,
        is_remote: bool = False,
        includes_hotel: bool = True,
        with_enrollment: bool = True,
        with_ticket: bool = True,
    ) -> User:
        user = await make_user()
        if not with_enrollment:
            return user

        enrollment = Enrollment(user_id=user.id, name="Ada Lovelace", cpf="12345678909")
        db_session.add(enrollment)
        await db_session.flush()

        if with_ticket:
            ticket_type = TicketType(
                name="In-person + hotel" if includes_hotel else "In-person",
                price=60000,
                is_remote=is_remote,
                includes_hotel=includes_hotel,
            )
            db_session.add(ticket_type)
            await db_session.flush()
            db_session.add(
                Ticket(enrollment_id=enrollment.id, ticket_type_id=ticket_type.id, status=status)
            )

        await db_session.commit()
        return user

    return _make_attendee


@pytest.fixture
def make_room(db_session: AsyncSession) -> Callable[..., Awaitable[Room]]:
    async def _make_room(capacity: int = 3, name: str = "101") -> Room:
        hotel = Hotel(name="Driven Resort", image="https://example.com/hotel.png")
        db_session.add(hotel)
        await db_session.flush()
        room = Room(name=name, capacity=capacity, hotel_id=hotel.id)
        db_session.add(room)
        await db_session.commit()
        return room

    return _make_room


@pytest.fixture
def make_booking(db_session: AsyncSession) -> Callable[[int, int], Awaitable[Booking]]:
    async def _make_booking(user_id: int, room_id: int) -> Booking:
        booking = Booking(user_id=user_id, room_id=room_id)
        db_session.add(booking)
        await db_session.commit()
        return booking

    return _make_booking


@pytest.fixture
def fill_room(make_user, make_booking) -> Callable[[int, int], Awaitable[None]]:
    """Book `count` slots of a room for throwaway users."""

    async def _fill_room(room_id: int, count: int) -> None:
        for _ in range(count):
            guest = await make_user()
            await make_booking(guest.id, room_id)

    return _fill_room


@pytest.fixture
def headers_for(db_session: AsyncSession) -> Callable[[User], Awaitable[dict]]:
    """Authorization headers backed by a live session row."""

    async def _headers_for(user: User) -> dict:
        token = create_access_token(data={"sub": str(user.id), "jti": uuid.uuid4().hex})
        db_session.add(UserSession(user_id=user.id, token=token))
        await db_session.commit()
        return {"Authorization": f"Bearer {token}"}

    return _headers_for


@pytest_asyncio.fixture
async def attendee(make_attendee) -> User:
    return await make_attendee()


@pytest_asyncio.fixture
async def auth_headers(attendee: User, headers_for) -> dict:
    return await headers_for(attendee)


@pytest_asyncio.fixture
async def room(make_room) -> Room:
    return await make_room(capacity=3)
