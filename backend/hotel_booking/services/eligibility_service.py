"""
Eligibility checks run before any booking write.

Order matters: a missing room is NOT_FOUND even for a user who could never
book, everything after that is FORBIDDEN.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from hotel_booking.core.exceptions import forbidden_error, not_found_error
from hotel_booking.core.logging import get_logger
from hotel_booking.models.enrollment import Enrollment
from hotel_booking.models.hotel import Room
from hotel_booking.models.ticket import Ticket, TicketStatus
from hotel_booking.repositories import enrollment_repository, room_repository

logger = get_logger(__name__)


@dataclass(frozen=True)
class Eligibility:
    room: Room
    enrollment: Enrollment
    ticket: Ticket


def ticket_disqualification(ticket: Ticket) -> Optional[str]:
    """Why this ticket cannot hold a room, or None if it can."""
    if ticket.status != TicketStatus.PAID:
        return "Ticket is not paid"
    if ticket.ticket_type.is_remote:
        return "Ticket is for remote attendance"
    if not ticket.ticket_type.includes_hotel:
        return "Ticket does not include hotel accommodation"
    return None


async def resolve_room(db: AsyncSession, room_id: int) -> Room:
    room = await room_repository.find_room_by_id(db, room_id)
    if room is None:
        raise not_found_error("Room does not exist")
    return room


async def check_eligibility(db: AsyncSession, user_id: int, room_id: int) -> Eligibility:
    room = await resolve_room(db, room_id)

    enrollment = await enrollment_repository.find_enrollment_by_user_id(db, user_id)
    if enrollment is None:
        logger.info("booking_ineligible", user_id=user_id, reason="no_enrollment")
        raise forbidden_error("User has no enrollment")

    ticket = await enrollment_repository.find_ticket_by_enrollment_id(db, enrollment.id)
    if ticket is None:
        logger.info("booking_ineligible", user_id=user_id, reason="no_ticket")
        raise forbidden_error("User has no ticket")

    reason = ticket_disqualification(ticket)
    if reason is not None:
        logger.info(
            "booking_ineligible",
            user_id=user_id,
            ticket_id=ticket.id,
            reason=reason,
        )
        raise forbidden_error(reason)

    return Eligibility(room=room, enrollment=enrollment, ticket=ticket)
