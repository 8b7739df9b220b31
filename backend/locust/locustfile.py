"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags race        # Many members racing for few seats
  locust -f locustfile.py --tags edge        # Bad input
  locust -f locustfile.py --tags scheduler   # Reconciliation under registration load
  locust -f locustfile.py                    # All tests
"""

import random
import string
from locust import HttpUser, task, between, tag, events

SLOTS = ["Morning", "Afternoon", "Evening", "12Hour", "24Hour"]
RACE_SEATS = range(1, 11)
MEMBERSHIP_IDS = []


def random_member() -> dict:
    name = "load_" + "".join(random.choices(string.ascii_lowercase, k=8))
    return {
        "name": name,
        "email": f"{name}@test.com",
        "phone": str(random.randint(6000000000, 9999999999)),
    }


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print("Seat race: seats 1-10, Morning slot")
    print("=" * 60)


class SeatRaceUser(HttpUser):
    """
    TEST 1: Concurrency - 100 members -> 10 seats in one slot

    Run: locust -f locustfile.py --tags race -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT seat_number, slot, COUNT(*) FROM seat_occupancies
      GROUP BY seat_number, slot HAVING COUNT(*) > 1;
    Should return no rows
    """
    wait_time = between(0, 0.1)

    @tag("race")
    @task
    def register_for_contested_seat(self):
        """Everyone wants the same ten Morning seats."""
        payload = {**random_member(), "seat_number": random.choice(RACE_SEATS), "slot": "Morning"}
        with self.client.post(
            "/api/v1/memberships/",
            json=payload,
            name="/api/v1/memberships/ [race]",
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                MEMBERSHIP_IDS.append(resp.json()["id"])
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: seat taken
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("race")
    @task(2)
    def watch_locks(self):
        self.client.get("/api/v1/seats/locks")


class EdgeCaseUser(HttpUser):
    """
    TEST 2: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_seat(self):
        with self.client.post(
            "/api/v1/memberships/",
            json={**random_member(), "seat_number": 999999, "slot": "Morning"},
            catch_response=True,
        ) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def zero_seat(self):
        with self.client.post(
            "/api/v1/memberships/",
            json={**random_member(), "seat_number": 0, "slot": "Morning"},
            catch_response=True,
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def unknown_slot(self):
        with self.client.post(
            "/api/v1/memberships/",
            json={**random_member(), "seat_number": 50, "slot": "Midnight"},
            catch_response=True,
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def payment_for_missing_member(self):
        with self.client.post(
            "/api/v1/memberships/does-not-exist/payments",
            json={},
            catch_response=True,
        ) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/memberships/",
            data="not json at all",
            catch_response=True,
        ) as resp:
            self._expect(resp, [400, 422])


class SchedulerUser(HttpUser):
    """
    TEST 3: Reconciliation ticks fired while registrations and payments run

    Run: locust -f locustfile.py --tags scheduler -u 50 -r 10 --run-time 60s

    Overlapping triggers must come back 409, never run twice.
    """
    wait_time = between(0.5, 2)

    @tag("scheduler")
    @task(10)
    def register_and_pay(self):
        payload = {
            **random_member(),
            "seat_number": random.randint(11, 100),
            "slot": random.choice(SLOTS),
        }
        resp = self.client.post("/api/v1/memberships/", json=payload, name="/api/v1/memberships/")
        if resp.status_code == 201:
            membership_id = resp.json()["id"]
            MEMBERSHIP_IDS.append(membership_id)
            self.client.post(
                f"/api/v1/memberships/{membership_id}/payments",
                json={},
                name="/api/v1/memberships/{id}/payments",
            )

    @tag("scheduler")
    @task(1)
    def trigger_tick(self):
        with self.client.post("/api/v1/scheduler/trigger", catch_response=True) as resp:
            if resp.status_code in [200, 409]:
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("scheduler")
    @task(3)
    def health_check(self):
        self.client.get("/health")
