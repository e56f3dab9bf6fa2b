"""
Admission strategy factory.
Configures which admission control strategy guards the booking endpoints.
"""

from typing import Optional

from hotel_booking.core.config import get_settings
from hotel_booking.services.interfaces.admission import AdmissionStrategy
from hotel_booking.services.interfaces.optimistic_admission import OptimisticAdmission
from hotel_booking.services.admission_service import RedisAdmission


def get_admission_strategy() -> AdmissionStrategy:
    """
    Strategy selection via ADMISSION_STRATEGY:
    - "optimistic" (default): database only
    - "redis": fail-fast gate in Redis before the database
    """
    if get_settings().ADMISSION_STRATEGY == 'redis':
        return RedisAdmission()
    return OptimisticAdmission()


_strategy: Optional[AdmissionStrategy] = None


def get_admission() -> AdmissionStrategy:
    """Admission strategy singleton, usable as a FastAPI dependency."""
    global _strategy
    if _strategy is None:
        _strategy = get_admission_strategy()
    return _strategy
