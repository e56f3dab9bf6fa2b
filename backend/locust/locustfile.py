"""
Locust Load Test Suite

Accounts come from the auth service, so tokens are seeded beforehand:
  LOCUST_TOKENS   comma-separated bearer tokens of eligible attendees
  LOCUST_ROOM_ID  room every ConcurrencyUser fights for

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test overbooking
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import os
import random
from itertools import cycle

from locust import HttpUser, task, between, tag

BOOKING_URL = "/api/v1/booking"

TOKENS = [t.strip() for t in os.environ.get("LOCUST_TOKENS", "").split(",") if t.strip()]
ROOM_ID = int(os.environ.get("LOCUST_ROOM_ID", "1"))
_token_pool = cycle(TOKENS) if TOKENS else None


def _next_headers() -> dict:
    if _token_pool is None:
        return {}
    return {"Authorization": f"Bearer {next(_token_pool)}"}


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - many attendees, one room

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM bookings WHERE room_id = X;
    Should be <= rooms.capacity
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = _next_headers()

    @tag("concurrency")
    @task
    def book_contended_room(self):
        if not self.headers:
            return

        with self.client.post(BOOKING_URL,
            json={"roomId": ROOM_ID},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code in (200, 403):
                resp.success()  # 403: room full or already booked
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("concurrency", "read")
    @task(3)
    def view_booking(self):
        if not self.headers:
            return

        with self.client.get(BOOKING_URL, headers=self.headers, catch_response=True) as resp:
            if resp.status_code in (200, 404):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class EdgeCaseUser(HttpUser):
    """
    TEST 2: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = _next_headers()

    @tag("edge")
    @task
    def unknown_room(self):
        with self.client.post(BOOKING_URL,
            json={"roomId": 999999},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code in (401, 404):
                resp.success()
            else:
                resp.failure(f"Expected 404, got {resp.status_code}")

    @tag("edge")
    @task
    def malformed_room_id(self):
        room_id = random.choice(["abc", -5, 0, None])
        with self.client.post(BOOKING_URL,
            json={"roomId": room_id},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code in (401, 403):
                resp.success()
            else:
                resp.failure(f"Expected 403, got {resp.status_code}")

    @tag("edge")
    @task
    def move_missing_booking(self):
        with self.client.put(f"{BOOKING_URL}/999999",
            json={"roomId": ROOM_ID},
            headers=self.headers,
            catch_response=True,
            name=f"{BOOKING_URL}/{{id}}",
        ) as resp:
            if resp.status_code in (200, 401, 403, 404):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")
