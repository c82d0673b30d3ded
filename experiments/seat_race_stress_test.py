#!/usr/bin/env python3
"""
Seat race stress test for the Box Office API.
Many shoppers lock and buy the SAME seat at once; exactly one may win.
"""

import asyncio
import time
import uuid

import aiohttp

API_URL = "http://localhost:8000"
CONCURRENT_USERS = 50
SEAT_ID = "A1"


class SeatRaceTest:
    def __init__(self):
        self.results = {
            "locked": 0,
            "lock_conflicts": 0,
            "orders": 0,
            "order_conflicts": 0,
            "errors": 0,
            "response_times": [],
        }
        self.event_id = None

    async def create_test_event(self, session: aiohttp.ClientSession):
        layout = [{"id": f"A{i}", "row": 0, "col": i - 1, "row_label": "A", "seat_number": str(i)} for i in range(1, 6)]
        async with session.post(f"{API_URL}/api/v1/events/", json={
            "title": f"Seat Race {int(time.time())}",
            "organizer_id": "stress-organizer",
            "ticket_types": [{"id": "std", "name": "Standard", "price": "20.00"}],
            "theater_seats": layout,
            "seat_mappings": {seat["id"]: "std" for seat in layout},
        }) as resp:
            if resp.status == 201:
                data = await resp.json()
                self.event_id = data["id"]
                print(f"✓ Created event {self.event_id}, everyone wants seat {SEAT_ID}")

    async def shopper(self, session: aiohttp.ClientSession, user_num: int):
        start = time.time()
        try:
            async with session.post(
                f"{API_URL}/api/v1/events/{self.event_id}/lock-seats",
                json={"seat_ids": [SEAT_ID]},
            ) as resp:
                body = await resp.json()
                if resp.status != 200 or not body.get("success"):
                    self.results["lock_conflicts"] += 1
                    return
                self.results["locked"] += 1

            # Buy immediately; a second buyer racing the same hold must still lose at commit
            async with session.post(f"{API_URL}/api/v1/orders/", json={
                "customer": {"name": f"Shopper {user_num}", "email": f"shopper{user_num}@test.com"},
                "event_id": self.event_id,
                "seats": [{"id": SEAT_ID}],
                "payment_mode": "ONLINE",
                "transaction_id": f"txn_{uuid.uuid4().hex[:12]}",
            }) as resp:
                elapsed = (time.time() - start) * 1000
                self.results["response_times"].append(elapsed)
                if resp.status == 201:
                    self.results["orders"] += 1
                    print(f"✓ Shopper {user_num} bought {SEAT_ID} ({elapsed:.0f}ms)")
                elif resp.status == 409:
                    self.results["order_conflicts"] += 1
                else:
                    self.results["errors"] += 1
                    print(f"✗ Shopper {user_num} failed: {resp.status}")
        except aiohttp.ClientError as e:
            self.results["errors"] += 1
            print(f"✗ Shopper {user_num} error: {e}")

    async def verify(self, session: aiohttp.ClientSession) -> bool:
        async with session.get(f"{API_URL}/api/v1/orders/?event_id={self.event_id}") as resp:
            orders = await resp.json()
        sold = [t["seat_id"] for order in orders for t in order["tickets"]]
        print(f"\nTickets issued for {SEAT_ID}: {sold.count(SEAT_ID)}")
        return sold.count(SEAT_ID) <= 1

    async def run(self):
        print(f"\n{'=' * 60}")
        print(f"SEAT RACE: {CONCURRENT_USERS} shoppers → 1 seat")
        print(f"{'=' * 60}\n")

        async with aiohttp.ClientSession() as session:
            await self.create_test_event(session)
            if not self.event_id:
                print("✗ Failed to create event")
                return

            started = time.time()
            await asyncio.gather(*(self.shopper(session, i) for i in range(CONCURRENT_USERS)))
            total_time = time.time() - started

            print("\n" + "=" * 60)
            print("RESULTS")
            print("=" * 60)
            print(f"Total time:       {total_time:.2f}s")
            for key in ("locked", "lock_conflicts", "orders", "order_conflicts", "errors"):
                print(f"{key:<17} {self.results[key]}")

            if self.results["response_times"]:
                times = sorted(self.results["response_times"])
                print(f"\nCheckout response times: avg {sum(times) / len(times):.0f}ms, max {times[-1]:.0f}ms")

            if await self.verify(session):
                print("\n✓ PASS: seat sold at most once")
            else:
                print("\n✗ FAIL: seat sold more than once")


if __name__ == "__main__":
    asyncio.run(SeatRaceTest().run())
