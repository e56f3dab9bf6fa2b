"""
Admission control for high-contention rooms, backed by Redis.

Each room has two keys:
  room:{id}:free      free slots, written by sync() after every booking write
  room:{id}:inflight  admitted attempts that have not released yet

An attempt is rejected when the attempts already in flight could fill every
free slot. Unknown rooms (no free key yet) are admitted.

Circuit Breaker:
  On Redis failure the gate fails open and admits everything. The database
  claim on rooms.version still prevents overselling, so a Redis outage only
  costs the fail-fast shortcut.
"""

import os
from typing import Optional

import redis.asyncio as redis

from hotel_booking.core.config import get_settings
from hotel_booking.core.logging import get_logger
from hotel_booking.core.metrics import redis_circuit_breaker_open, redis_connection_errors
from hotel_booking.infrastructure.redis_client import get_redis
from hotel_booking.services.interfaces.admission import AdmissionStrategy

logger = get_logger(__name__)
settings = get_settings()

SCRIPT_PATH = os.path.join(os.path.dirname(__file__), '../infrastructure/admission_lua.lua')
with open(SCRIPT_PATH, 'r') as f:
    ADMISSION_SCRIPT = f.read()

RELEASE_SCRIPT = """
local inflight = tonumber(redis.call('GET', KEYS[1]) or '0')
if inflight > 0 then
  return redis.call('DECR', KEYS[1])
end
return 0
"""


def free_key(room_id: int) -> str:
    return f"room:{room_id}:free"


def inflight_key(room_id: int) -> str:
    return f"room:{room_id}:inflight"


class RedisAdmission(AdmissionStrategy):
    """
    Use when:
    - Many attendees race for the same few rooms (room release at a fixed time)
    - The database needs protecting from retry storms
    """

    def __init__(self, client: Optional[redis.Redis] = None):
        self._client = client
        self._admit_script = None
        self._release_script = None

    async def _redis(self) -> Optional[redis.Redis]:
        if self._client is None:
            self._client = await get_redis()
        if self._client is not None and self._admit_script is None:
            self._admit_script = self._client.register_script(ADMISSION_SCRIPT)
            self._release_script = self._client.register_script(RELEASE_SCRIPT)
        return self._client

    def _trip(self, operation: str, error: Exception) -> None:
        redis_connection_errors.inc()
        redis_circuit_breaker_open.set(1)
        logger.warning("admission_fail_open", operation=operation, error=str(error))

    async def admit(self, room_id: int) -> bool:
        client = await self._redis()
        if client is None:
            return True

        try:
            result = await self._admit_script(
                keys=[free_key(room_id), inflight_key(room_id)],
                args=[settings.REDIS_CACHE_TTL],
            )
        except redis.RedisError as e:
            self._trip("admit", e)
            return True

        redis_circuit_breaker_open.set(0)
        return bool(int(result))

    async def release(self, room_id: int) -> None:
        client = await self._redis()
        if client is None:
            return
        try:
            await self._release_script(keys=[inflight_key(room_id)])
        except redis.RedisError as e:
            self._trip("release", e)

    async def sync(self, room_id: int, free_slots: int) -> None:
        client = await self._redis()
        if client is None:
            return
        try:
            await client.set(free_key(room_id), free_slots, ex=settings.REDIS_CACHE_TTL)
        except redis.RedisError as e:
            self._trip("sync", e)
