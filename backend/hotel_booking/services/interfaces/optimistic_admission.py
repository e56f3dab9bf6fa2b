"""
Optimistic admission strategy - no pre-check.
Relies entirely on the room version claim in the database.
"""

from hotel_booking.services.interfaces.admission import AdmissionStrategy


class OptimisticAdmission(AdmissionStrategy):
    """
    Always admit.

    Use when:
    - Rooms see a handful of concurrent requests at most
    - Redis is not deployed
    """

    async def admit(self, room_id: int) -> bool:
        return True

    async def release(self, room_id: int) -> None:
        pass

    async def sync(self, room_id: int, free_slots: int) -> None:
        pass
