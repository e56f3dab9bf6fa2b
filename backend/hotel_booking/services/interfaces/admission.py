"""
Admission control strategy interface.

An admission gate runs in front of the capacity allocator and may turn
requests away early when a room is clearly saturated. It is advisory: the
database reservation is still the only thing that decides whether a booking
is written.
"""

from abc import ABC, abstractmethod


class AdmissionStrategy(ABC):
    """
    Implementations:
    - OptimisticAdmission: admit everything, the database decides
    - RedisAdmission: count in-flight attempts per room in Redis
    """

    @abstractmethod
    async def admit(self, room_id: int) -> bool:
        """
        Check if a booking attempt for this room should reach the database.

        Returns:
            True if admitted, False to fail fast as "room full"
        """

    @abstractmethod
    async def release(self, room_id: int) -> None:
        """Mark an admitted attempt as finished, whatever its outcome."""

    @abstractmethod
    async def sync(self, room_id: int, free_slots: int) -> None:
        """Record the room's free slots as last seen by the database."""
