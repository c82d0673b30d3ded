"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags race        # Shoppers race for the same seats
  locust -f locustfile.py --tags throughput  # Seat map polling (cache)
  locust -f locustfile.py --tags edge        # Bad input
  locust -f locustfile.py                    # All tests
"""

import random
import uuid

from locust import HttpUser, between, events, tag, task

RACE_SEATS = 10
ROWS = "ABCDEFGHIJ"

# Shared state
RACE_EVENT_ID = None
EVENT_IDS = []


def seat_layout(rows: int, per_row: int) -> list[dict]:
    return [
        {"id": f"{ROWS[r]}{c + 1}", "row": r, "col": c, "row_label": ROWS[r], "seat_number": str(c + 1)}
        for r in range(rows)
        for c in range(per_row)
    ]


def event_payload(title: str, rows: int, per_row: int) -> dict:
    layout = seat_layout(rows, per_row)
    return {
        "title": title,
        "organizer_id": "load-organizer",
        "seating_type": "RESERVED",
        "ticket_types": [{"id": "std", "name": "Standard", "price": "25.00", "color": "#3366ff"}],
        "theater_seats": layout,
        "seat_mappings": {seat["id"]: "std" for seat in layout},
    }


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"SETUP: race event gets {RACE_SEATS} seats, created by the first shopper")
    print("=" * 60)


class SeatRaceUser(HttpUser):
    """
    TEST 1: Concurrency - 100 shoppers -> 10 seats

    Run: locust -f locustfile.py --tags race -u 100 -r 50 --run-time 30s

    After test, verify no seat was sold twice:
      SELECT seat_id, COUNT(*) FROM tickets WHERE event_id = X GROUP BY seat_id HAVING COUNT(*) > 1;
    Should return no rows.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        if not RACE_EVENT_ID:
            resp = self.client.post("/api/v1/events/", json=event_payload("Seat Race", 1, RACE_SEATS))
            if resp.status_code == 201:
                globals()["RACE_EVENT_ID"] = resp.json()["id"]
                print(f"\n✓ Created event {RACE_EVENT_ID} with {RACE_SEATS} seats\n")

    @tag("race")
    @task
    def lock_and_buy(self):
        """Everyone wants the same seat; only one lock may win it."""
        if not RACE_EVENT_ID:
            return

        seat_id = f"A{random.randint(1, RACE_SEATS)}"
        with self.client.post(
            f"/api/v1/events/{RACE_EVENT_ID}/lock-seats",
            json={"seat_ids": [seat_id]},
            name="/api/v1/events/{id}/lock-seats",
            catch_response=True,
        ) as resp:
            if resp.status_code == 409:
                resp.success()  # Version race lost three times
                return
            if resp.status_code != 200:
                resp.failure(f"Unexpected: {resp.status_code}")
                return
            resp.success()
            if not resp.json()["success"]:
                return  # Expected: seat already taken

        with self.client.post(
            "/api/v1/orders/",
            json={
                "customer": {"name": "Load Shopper", "email": f"load_{uuid.uuid4().hex[:8]}@test.com"},
                "event_id": RACE_EVENT_ID,
                "seats": [{"id": seat_id}],
                "payment_mode": "ONLINE",
                "transaction_id": f"txn_{uuid.uuid4().hex[:12]}",
            },
            name="/api/v1/orders/",
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class SeatMapUser(HttpUser):
    """
    TEST 2: Throughput - Seat map cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def poll_seat_map(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}/seats", name="/api/v1/events/{id}/seats")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    @tag("edge")
    @task
    def lock_unknown_event(self):
        with self.client.post(
            "/api/v1/events/999999/lock-seats",
            json={"seat_ids": ["A1"]},
            catch_response=True,
        ) as resp:
            if resp.status_code == 404:
                resp.success()
            else:
                resp.failure(f"Expected 404, got {resp.status_code}")

    @tag("edge")
    @task
    def lock_too_many(self):
        if not EVENT_IDS:
            return
        with self.client.post(
            f"/api/v1/events/{EVENT_IDS[0]}/lock-seats",
            json={"seat_ids": [f"X{i}" for i in range(50)]},
            name="/api/v1/events/{id}/lock-seats [too many]",
            catch_response=True,
        ) as resp:
            if resp.status_code == 400:
                resp.success()
            else:
                resp.failure(f"Expected 400, got {resp.status_code}")

    @tag("edge")
    @task
    def release_garbage_beacon(self):
        """Beacons may send anything; release must still answer success."""
        if not EVENT_IDS:
            return
        with self.client.post(
            f"/api/v1/events/{EVENT_IDS[0]}/release-seats",
            data="not json at all",
            headers={"Content-Type": "text/plain"},
            name="/api/v1/events/{id}/release-seats [garbage]",
            catch_response=True,
        ) as resp:
            if resp.status_code == 200:
                resp.success()
            else:
                resp.failure(f"Expected 200, got {resp.status_code}")

    @tag("edge")
    @task
    def empty_order(self):
        with self.client.post(
            "/api/v1/orders/",
            json={"customer": {"name": "x", "email": "x@test.com"}, "event_id": 1, "seats": []},
            catch_response=True,
        ) as resp:
            if resp.status_code == 422:
                resp.success()
            else:
                resp.failure(f"Expected 422, got {resp.status_code}")


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly seat map polling
      - Some lock / abandon cycles (released by beacon or left to the sweeper)
      - Rare event creation
    """
    wait_time = between(1, 3)

    @task(50)
    def view_seat_map(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}/seats", name="/api/v1/events/{id}/seats")

    @task(10)
    def lock_then_abandon(self):
        if not EVENT_IDS:
            return
        event_id = random.choice(EVENT_IDS)
        seat_ids = [f"{random.choice(ROWS[:5])}{random.randint(1, 20)}" for _ in range(random.randint(1, 3))]
        resp = self.client.post(
            f"/api/v1/events/{event_id}/lock-seats",
            json={"seat_ids": seat_ids},
            name="/api/v1/events/{id}/lock-seats",
        )
        if resp.status_code == 200 and resp.json()["success"] and random.random() < 0.5:
            self.client.post(
                f"/api/v1/events/{event_id}/release-seats?seatIds={','.join(seat_ids)}",
                name="/api/v1/events/{id}/release-seats",
            )

    @task(1)
    def create_event(self):
        resp = self.client.post("/api/v1/events/", json=event_payload(f"Event {random.randint(1, 10000)}", 5, 20))
        if resp.status_code == 201:
            EVENT_IDS.append(resp.json()["id"])
