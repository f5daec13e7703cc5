"""
Locust load tests for the event booking API.

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Last-seat race, must never oversell
  locust -f locustfile.py --tags throughput   # Cached event listing
  locust -f locustfile.py --tags edge         # Bad input must get 4xx, never 5xx
  locust -f locustfile.py                     # All tests

Creating events needs an admin account. Point ADMIN_EMAIL / ADMIN_PASSWORD at
one that already exists (promote a user with PUT /api/v1/users/{id}/role).
"""

import os
import random
import uuid
from datetime import datetime, timezone, timedelta

from locust import HttpUser, task, between, tag, events

ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "Admin12345")
RACE_SEATS = int(os.environ.get("RACE_SEATS", "10"))

# Shared state
EVENT_IDS = []
RACE_EVENT_ID = None


def random_email():
    return f"load_{uuid.uuid4().hex[:12]}@test.com"


def event_payload(total_seats, title=None, days_ahead=30):
    return {
        "title": title or f"Load Event {random.randint(1, 10000)}",
        "description": "Generated by the load test suite",
        "date": (datetime.now(timezone.utc) + timedelta(days=days_ahead)).isoformat(),
        "location": "Load Test Arena",
        "total_seats": total_seats,
        "price": "15.00",
        "category": "load-test",
    }


def register_and_login(client):
    """Register a throwaway user and return auth headers ({} on failure)."""
    email = random_email()
    client.post("/api/v1/auth/register", json={
        "first_name": "Load",
        "last_name": "Tester",
        "email": email,
        "password": "test1234",
    })
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": "test1234"})
    if resp.status_code != 200:
        return {}
    return {"Authorization": f"Bearer {resp.json()['data']['access_token']}"}


def admin_headers(client):
    resp = client.post("/api/v1/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    if resp.status_code != 200:
        return {}
    return {"Authorization": f"Bearer {resp.json()['data']['access_token']}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"Booking load test against {environment.host}")
    print(f"Race event capacity: {RACE_SEATS} seats")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - many users, RACE_SEATS seats

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After the run, verify:
      SELECT total_seats, available_seats FROM events WHERE id = X;
      SELECT SUM(number_of_tickets) FROM bookings
       WHERE event_id = X AND status = 'confirmed';
    available_seats must equal total_seats minus the sum, and never go negative.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        global RACE_EVENT_ID

        self.headers = register_and_login(self.client)

        if RACE_EVENT_ID is None:
            headers = admin_headers(self.client)
            resp = self.client.post(
                "/api/v1/events/",
                json=event_payload(RACE_SEATS, title="Concurrency Race Event"),
                headers=headers,
            )
            if resp.status_code == 201:
                RACE_EVENT_ID = resp.json()["data"]["id"]
                print(f"\nCreated race event {RACE_EVENT_ID} with {RACE_SEATS} seats\n")

    @tag("concurrency")
    @task
    def book_last_seats(self):
        """Everyone fights for the same seats."""
        if not RACE_EVENT_ID or not self.headers:
            return

        with self.client.post(
            "/api/v1/bookings/",
            json={"event_id": RACE_EVENT_ID, "number_of_tickets": 1},
            headers=self.headers,
            name="/api/v1/bookings/ [race]",
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code in (400, 409):
                # 400: sold out, 409: this user already holds a seat
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. With REDIS_ENABLED=false on the API, run again

    Compare average latency, requests/sec and P95/P99.
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_events_cached(self):
        page = random.randint(1, 5)
        resp = self.client.get(
            f"/api/v1/events/?page={page}&limit=20",
            name="/api/v1/events/ [cached]",
        )
        if resp.status_code == 200:
            for event in resp.json()["data"]["events"]:
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @tag("throughput", "read")
    @task(3)
    def get_event_detail(self):
        if EVENT_IDS:
            event_id = random.choice(EVENT_IDS)
            self.client.get(f"/api/v1/events/{event_id}", name="/api/v1/events/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    Every request here must be rejected with a 4xx envelope.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = register_and_login(self.client)

    def _expect(self, resp, codes):
        if resp.status_code in codes and resp.json().get("success") is False:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_event(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"event_id": 999999, "number_of_tickets": 1},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, (404,))

    @tag("edge")
    @task
    def ticket_count_out_of_range(self):
        tickets = random.choice([-5, 0, 11, 999999])
        with self.client.post(
            "/api/v1/bookings/",
            json={"event_id": 1, "number_of_tickets": tickets},
            headers=self.headers,
            name="/api/v1/bookings/ [bad count]",
            catch_response=True,
        ) as resp:
            self._expect(resp, (400,))

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/bookings/",
            data="not json at all",
            headers={**self.headers, "Content-Type": "application/json"},
            name="/api/v1/bookings/ [malformed]",
            catch_response=True,
        ) as resp:
            self._expect(resp, (400,))

    @tag("edge")
    @task
    def cancel_unknown_booking(self):
        with self.client.put(
            "/api/v1/bookings/999999/cancel",
            headers=self.headers,
            name="/api/v1/bookings/{id}/cancel [unknown]",
            catch_response=True,
        ) as resp:
            self._expect(resp, (404,))

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"event_id": 1, "number_of_tickets": 1},
            name="/api/v1/bookings/ [no auth]",
            catch_response=True,
        ) as resp:
            self._expect(resp, (401,))


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Mostly browsing, some bookings and cancellations.
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = register_and_login(self.client)
        self.booking_ids = []

    @task(50)
    def browse_events(self):
        resp = self.client.get("/api/v1/events/?page=1&limit=20")
        if resp.status_code == 200:
            for event in resp.json()["data"]["events"]:
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @task(20)
    def view_event(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}", name="/api/v1/events/{id}")

    @task(10)
    def book_tickets(self):
        if EVENT_IDS and self.headers:
            resp = self.client.post(
                "/api/v1/bookings/",
                json={"event_id": random.choice(EVENT_IDS), "number_of_tickets": random.randint(1, 3)},
                headers=self.headers,
            )
            if resp.status_code == 201:
                self.booking_ids.append(resp.json()["data"]["id"])

    @task(5)
    def my_bookings(self):
        if self.headers:
            self.client.get("/api/v1/bookings/mine", headers=self.headers)

    @task(2)
    def cancel_booking(self):
        if self.booking_ids:
            booking_id = self.booking_ids.pop()
            self.client.put(
                f"/api/v1/bookings/{booking_id}/cancel",
                json={"reason": "load test"},
                headers=self.headers,
                name="/api/v1/bookings/{id}/cancel",
            )
