"""
Tests for checkout: commit-time seat checks, totals, coupons, payment modes,
notifications and ticket check-in.
"""

import asyncio
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.exceptions import ConcurrencyConflictError, CouponConflictError, OrderPersistenceError
from boxoffice.main import app
from boxoffice.models import Order, ServiceCharge
from boxoffice.schemas.order import OrderCreate
from boxoffice.schemas.seat import SeatStatus
from boxoffice.services import order_service
from boxoffice.services.interfaces.notifier import Notifier
from boxoffice.services.interfaces.payment_gateway import PaymentGateway
from boxoffice.services.interfaces.reference_gateway import ReferencePaymentGateway
from boxoffice.services.strategy_factory import get_notifier, get_payment_gateway
from tests.conftest import load_coupon, load_seats


def order_payload(event_id: int, seat_ids=None, **overrides) -> dict:
    payload = {
        "customer": {"name": "Ada Lovelace", "email": "ada@example.com", "phone": "555-0100"},
        "event_id": event_id,
        "seats": [{"id": seat_id} for seat_id in (seat_ids or ["A1"])],
        "service_fee": "0",
        "payment_mode": "ONLINE",
        "transaction_id": "txn_123",
    }
    payload.update(overrides)
    return payload


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent = []

    async def send_order_confirmation(self, notification):
        self.sent.append(notification)


class BrokenNotifier(Notifier):
    async def send_order_confirmation(self, notification):
        raise RuntimeError("smtp down")


class DecliningGateway(PaymentGateway):
    async def confirm(self, transaction_id, amount):
        return False


@pytest.mark.asyncio
async def test_happy_path(client: AsyncClient, reserved_event, session_factory):
    """Lock a 50.00 seat, buy it with a 2.00 service fee: total 52.00 and the seat is SOLD."""
    lock = await client.post(f"/api/v1/events/{reserved_event.id}/lock-seats", json={"seat_ids": ["A1"]})
    assert lock.json()["success"] is True

    response = await client.post("/api/v1/orders/", json=order_payload(reserved_event.id, service_fee="2.00"))
    assert response.status_code == 201
    order = response.json()
    assert Decimal(order["subtotal"]) == Decimal("50")
    assert Decimal(order["discount_applied"]) == Decimal("0")
    assert Decimal(order["service_fee"]) == Decimal("2")
    assert Decimal(order["total_amount"]) == Decimal("52.00")
    assert order["status"] == "PAID"
    assert order["transaction_id"] == "txn_123"

    [ticket] = order["tickets"]
    assert ticket["id"].startswith("TKT")
    assert ticket["qr_code_data"] == ticket["id"]
    assert ticket["seat_id"] == "A1"
    assert ticket["seat_label"] == "A1"
    assert ticket["ticket_type"] == "Standard"
    assert Decimal(ticket["price"]) == Decimal("50")

    seats = await load_seats(session_factory, reserved_event.id)
    assert seats["A1"].status == SeatStatus.SOLD
    assert seats["A1"].hold_until is None


@pytest.mark.asyncio
async def test_order_is_all_or_nothing(client: AsyncClient, reserved_event, session_factory):
    await client.put(f"/api/v1/events/{reserved_event.id}/seats", json={"seat_ids": ["A2"], "status": "SOLD"})

    response = await client.post("/api/v1/orders/", json=order_payload(reserved_event.id, ["A1", "A2"]))
    assert response.status_code == 409
    body = response.json()
    assert body["message"] == "Some seats are not available"
    assert body["conflicts"] == [{"seat_id": "A2", "reason": "SOLD"}]
    assert body["transaction_id"] == "txn_123"

    seats = await load_seats(session_factory, reserved_event.id)
    assert seats["A1"].status == SeatStatus.AVAILABLE

    orders = await client.get(f"/api/v1/orders/?event_id={reserved_event.id}")
    assert orders.json() == []


@pytest.mark.asyncio
async def test_unknown_seat_rejected_before_payment(client: AsyncClient, reserved_event):
    response = await client.post("/api/v1/orders/", json=order_payload(reserved_event.id, ["B5", "Z1"]))
    assert response.status_code == 409
    reasons = {c["seat_id"]: c["reason"] for c in response.json()["conflicts"]}
    assert reasons == {"Z1": "NOT_FOUND"}


@pytest.mark.asyncio
async def test_unmapped_seat_cannot_be_sold(client: AsyncClient, reserved_event):
    response = await client.post("/api/v1/orders/", json=order_payload(reserved_event.id, ["B5"]))
    assert response.status_code == 409
    assert response.json()["conflicts"] == [{"seat_id": "B5", "reason": "UNAVAILABLE"}]


@pytest.mark.asyncio
async def test_seat_cannot_be_sold_twice(client: AsyncClient, reserved_event):
    first = await client.post("/api/v1/orders/", json=order_payload(reserved_event.id, ["A1"]))
    assert first.status_code == 201

    second = await client.post(
        "/api/v1/orders/",
        json=order_payload(reserved_event.id, ["A1"], transaction_id="txn_456"),
    )
    assert second.status_code == 409
    assert second.json()["conflicts"] == [{"seat_id": "A1", "reason": "SOLD"}]
    assert second.json()["transaction_id"] == "txn_456"


@pytest.mark.asyncio
async def test_expired_hold_can_still_be_bought(client: AsyncClient, reserved_event):
    """Holds are not owned; a lapsed hold that has not been swept yet is claimable."""
    await client.put(
        f"/api/v1/events/{reserved_event.id}/seats",
        json={"seat_ids": ["A1"], "status": "BOOKING_IN_PROGRESS"},
    )
    response = await client.post("/api/v1/orders/", json=order_payload(reserved_event.id, ["A1"]))
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_best_threshold_coupon_is_applied_automatically(client: AsyncClient, reserved_event, make_coupon, session_factory):
    coupon = await make_coupon(
        code="BIGSPENDER",
        rule_type="THRESHOLD",
        discount_type="PERCENTAGE",
        value=Decimal("10"),
        min_amount=Decimal("100"),
    )

    response = await client.post("/api/v1/orders/", json=order_payload(reserved_event.id, ["B1", "B2"]))
    assert response.status_code == 201
    order = response.json()
    assert Decimal(order["subtotal"]) == Decimal("120")
    assert Decimal(order["discount_applied"]) == Decimal("12.00")
    assert Decimal(order["total_amount"]) == Decimal("108.00")
    assert order["coupon_code"] == "BIGSPENDER"

    assert (await load_coupon(session_factory, coupon.id)).used_count == 1


@pytest.mark.asyncio
async def test_coupon_usage_cap(client: AsyncClient, reserved_event, make_coupon, session_factory):
    coupon = await make_coupon(code="ONCE", max_uses=1)

    first = await client.post(
        "/api/v1/orders/",
        json=order_payload(reserved_event.id, ["A1"], coupon_id=coupon.id),
    )
    assert first.status_code == 201
    assert Decimal(first.json()["discount_applied"]) == Decimal("10.00")

    second = await client.post(
        "/api/v1/orders/",
        json=order_payload(reserved_event.id, ["A2"], coupon_id=coupon.id, transaction_id="txn_2"),
    )
    assert second.status_code == 409
    assert second.json()["coupon_code"] == "ONCE"

    assert (await load_coupon(session_factory, coupon.id)).used_count == 1
    seats = await load_seats(session_factory, reserved_event.id)
    assert seats["A2"].status == SeatStatus.AVAILABLE


@pytest.mark.asyncio
async def test_exhausted_coupon_at_commit_rolls_back_the_sale(client: AsyncClient, reserved_event, make_coupon, session_factory, monkeypatch):
    """Another order took the last use between evaluation and redemption."""
    coupon = await make_coupon(code="LAST", max_uses=1)

    async def lose_the_race(db, coupon_obj, increment):
        return False

    monkeypatch.setattr(order_service, "redeem_coupon", lose_the_race)

    response = await client.post(
        "/api/v1/orders/",
        json=order_payload(reserved_event.id, ["A1"], coupon_id=coupon.id),
    )

    assert response.status_code == 409
    assert response.json()["coupon_code"] == "LAST"
    assert response.json()["transaction_id"] == "txn_123"
    seats = await load_seats(session_factory, reserved_event.id)
    assert seats["A1"].status == SeatStatus.AVAILABLE
    assert (await load_coupon(session_factory, coupon.id)).used_count == 0


@pytest.mark.asyncio
async def test_store_failure_after_payment_reports_the_transaction(client: AsyncClient, reserved_event, make_coupon, session_factory, monkeypatch):
    """A database error once payment is taken still hands back the transaction id."""
    coupon = await make_coupon(code="FLAKY")

    async def connection_reset(db, coupon_obj, increment):
        raise OperationalError("UPDATE coupons", {}, Exception("connection reset"))

    monkeypatch.setattr(order_service, "redeem_coupon", connection_reset)

    response = await client.post(
        "/api/v1/orders/",
        json=order_payload(reserved_event.id, ["A1"], coupon_id=coupon.id, transaction_id="txn_paid_42"),
    )

    assert response.status_code == 503
    assert response.json() == {
        "message": "Order could not be saved after payment",
        "transaction_id": "txn_paid_42",
    }
    seats = await load_seats(session_factory, reserved_event.id)
    assert seats["A1"].status == SeatStatus.AVAILABLE


@pytest.mark.asyncio
async def test_failed_commit_after_payment_reports_the_transaction(client: AsyncClient, reserved_event, session_factory, monkeypatch):
    async def commit_fails(self):
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(AsyncSession, "commit", commit_fails)

    response = await client.post(
        "/api/v1/orders/",
        json=order_payload(reserved_event.id, ["A1"], transaction_id="txn_paid_43"),
    )

    assert response.status_code == 503
    assert response.json()["transaction_id"] == "txn_paid_43"
    seats = await load_seats(session_factory, reserved_event.id)
    assert seats["A1"].status == SeatStatus.AVAILABLE
    async with session_factory() as session:
        assert (await session.execute(select(Order))).scalars().all() == []


@pytest.mark.asyncio
async def test_concurrent_orders_share_a_single_use_coupon(session_factory, reserved_event, make_coupon):
    """Two checkouts race for the last use of a coupon: one gets it, the other sells nothing."""
    coupon = await make_coupon(code="ONCE", max_uses=1)
    gateway = ReferencePaymentGateway()

    async def attempt(seat_id, transaction_id):
        data = OrderCreate(**order_payload(reserved_event.id, [seat_id], coupon_id=coupon.id, transaction_id=transaction_id))
        async with session_factory() as session:
            try:
                order, _ = await order_service.create_order(session, data, gateway)
            except (CouponConflictError, ConcurrencyConflictError, OrderPersistenceError, OperationalError) as e:
                await session.rollback()
                return seat_id, e
            return seat_id, order

    outcomes = await asyncio.gather(attempt("A1", "txn_a"), attempt("A2", "txn_b"))

    sold = [(seat_id, result) for seat_id, result in outcomes if isinstance(result, Order)]
    rejected = [(seat_id, result) for seat_id, result in outcomes if not isinstance(result, Order)]
    assert len(sold) == 1
    assert len(rejected) == 1

    winner_seat, order = sold[0]
    assert order.discount_applied == Decimal("10.00")
    assert order.coupon_code == "ONCE"

    loser_seat, _ = rejected[0]
    seats = await load_seats(session_factory, reserved_event.id)
    assert seats[winner_seat].status == SeatStatus.SOLD
    assert seats[loser_seat].status == SeatStatus.AVAILABLE
    assert (await load_coupon(session_factory, coupon.id)).used_count == 1


@pytest.mark.asyncio
async def test_unknown_coupon_id(client: AsyncClient, reserved_event):
    response = await client.post("/api/v1/orders/", json=order_payload(reserved_event.id, coupon_id=404))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_explicit_coupon_that_does_not_apply(client: AsyncClient, reserved_event, make_coupon):
    coupon = await make_coupon(code="BIG", rule_type="THRESHOLD", min_amount=Decimal("500"))
    response = await client.post("/api/v1/orders/", json=order_payload(reserved_event.id, coupon_id=coupon.id))
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_free_order_with_full_discount(client: AsyncClient, reserved_event, make_coupon):
    coupon = await make_coupon(code="COMP", value=Decimal("100"))
    response = await client.post(
        "/api/v1/orders/",
        json=order_payload(reserved_event.id, coupon_id=coupon.id, payment_mode="FREE", transaction_id=None),
    )
    assert response.status_code == 201
    order = response.json()
    assert Decimal(order["discount_applied"]) == Decimal("50.00")
    assert Decimal(order["total_amount"]) == Decimal("0")
    assert order["transaction_id"] == "FREE"


@pytest.mark.asyncio
async def test_free_mode_requires_zero_total(client: AsyncClient, reserved_event, session_factory):
    response = await client.post(
        "/api/v1/orders/",
        json=order_payload(reserved_event.id, payment_mode="FREE", transaction_id=None),
    )
    assert response.status_code == 402
    seats = await load_seats(session_factory, reserved_event.id)
    assert seats["A1"].status == SeatStatus.AVAILABLE


@pytest.mark.asyncio
async def test_online_payment_needs_transaction(client: AsyncClient, reserved_event):
    response = await client.post("/api/v1/orders/", json=order_payload(reserved_event.id, transaction_id=None))
    assert response.status_code == 402


@pytest.mark.asyncio
async def test_declined_payment_sells_nothing(client: AsyncClient, reserved_event, session_factory):
    app.dependency_overrides[get_payment_gateway] = lambda: DecliningGateway()

    response = await client.post("/api/v1/orders/", json=order_payload(reserved_event.id))
    assert response.status_code == 402
    seats = await load_seats(session_factory, reserved_event.id)
    assert seats["A1"].status == SeatStatus.AVAILABLE


@pytest.mark.asyncio
async def test_offline_payment(client: AsyncClient, reserved_event):
    response = await client.post(
        "/api/v1/orders/",
        json=order_payload(reserved_event.id, payment_mode="OFFLINE", transaction_id=None),
    )
    assert response.status_code == 201
    assert response.json()["payment_mode"] == "OFFLINE"


@pytest.mark.asyncio
async def test_general_admission_order(client: AsyncClient, ga_event, session_factory):
    response = await client.post(
        "/api/v1/orders/",
        json=order_payload(ga_event.id, seats=[{"ticket_type_id": "ga"}, {"ticket_type_id": "ga"}]),
    )
    assert response.status_code == 201
    order = response.json()
    assert len(order["tickets"]) == 2
    assert Decimal(order["subtotal"]) == Decimal("60")
    assert all(t["seat_id"] is None for t in order["tickets"])
    assert len({t["id"] for t in order["tickets"]}) == 2

    event = await client.get(f"/api/v1/events/{ga_event.id}")
    assert event.json()["ticket_types"][0]["sold"] == 2


@pytest.mark.asyncio
async def test_general_admission_unknown_ticket_type(client: AsyncClient, ga_event):
    response = await client.post(
        "/api/v1/orders/",
        json=order_payload(ga_event.id, seats=[{"ticket_type_id": "backstage"}]),
    )
    assert response.status_code == 409
    assert response.json()["conflicts"] == [{"seat_id": "backstage", "reason": "NOT_FOUND"}]


@pytest.mark.asyncio
async def test_confirmation_is_sent_after_order(client: AsyncClient, reserved_event):
    notifier = RecordingNotifier()
    app.dependency_overrides[get_notifier] = lambda: notifier

    response = await client.post("/api/v1/orders/", json=order_payload(reserved_event.id))
    assert response.status_code == 201

    [notification] = notifier.sent
    assert notification.order_id == response.json()["id"]
    assert notification.customer_email == "ada@example.com"
    assert notification.organizer_email == "organizer@example.com"
    assert notification.admin_email
    assert notification.ticket_ids == [response.json()["tickets"][0]["id"]]


@pytest.mark.asyncio
async def test_notification_failure_does_not_fail_order(client: AsyncClient, reserved_event):
    app.dependency_overrides[get_notifier] = lambda: BrokenNotifier()

    response = await client.post("/api/v1/orders/", json=order_payload(reserved_event.id))
    assert response.status_code == 201

    fetched = await client.get(f"/api/v1/orders/{response.json()['id']}")
    assert fetched.status_code == 200


@pytest.mark.asyncio
async def test_quote_uses_service_charges(client: AsyncClient, reserved_event, db_session, make_coupon):
    db_session.add_all([
        ServiceCharge(name="Booking fee", charge_type="FIXED", value=Decimal("1.50"), active=True),
        ServiceCharge(name="Card fee", charge_type="PERCENTAGE", value=Decimal("2"), active=True),
        ServiceCharge(name="Old fee", charge_type="FIXED", value=Decimal("99"), active=False),
    ])
    await db_session.commit()
    await make_coupon(code="AUTO5", rule_type="SEAT_COUNT", min_seats=2, value=Decimal("5"))

    response = await client.post(
        "/api/v1/orders/quote",
        json={"event_id": reserved_event.id, "seats": [{"id": "A1"}, {"id": "A2"}]},
    )
    assert response.status_code == 200
    quote = response.json()
    assert Decimal(quote["subtotal"]) == Decimal("100")
    assert Decimal(quote["discount"]) == Decimal("5.00")
    assert quote["coupon_code"] == "AUTO5"
    # 1.50 + 2% of 95.00
    assert Decimal(quote["service_fee"]) == Decimal("3.40")
    assert Decimal(quote["total_amount"]) == Decimal("98.40")


@pytest.mark.asyncio
async def test_list_and_get_orders(client: AsyncClient, reserved_event):
    created = await client.post("/api/v1/orders/", json=order_payload(reserved_event.id, ["A1", "A2"]))
    order_id = created.json()["id"]

    listed = await client.get(f"/api/v1/orders/?event_id={reserved_event.id}")
    assert [o["id"] for o in listed.json()] == [order_id]

    fetched = await client.get(f"/api/v1/orders/{order_id}")
    assert len(fetched.json()["tickets"]) == 2

    missing = await client.get("/api/v1/orders/9999")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_verify_and_check_in_ticket(client: AsyncClient, reserved_event):
    created = await client.post("/api/v1/orders/", json=order_payload(reserved_event.id))
    ticket_id = created.json()["tickets"][0]["id"]

    verified = await client.post("/api/v1/orders/tickets/verify", json={"qr_code": ticket_id})
    assert verified.status_code == 200
    assert verified.json()["valid"] is True
    assert verified.json()["order"]["id"] == created.json()["id"]
    assert verified.json()["ticket"]["checked_in"] is False

    checked = await client.post("/api/v1/orders/tickets/check-in", json={"ticket_id": ticket_id})
    assert checked.json()["ticket"]["checked_in"] is True
    assert checked.json()["ticket"]["check_in_date"] is not None

    undone = await client.post("/api/v1/orders/tickets/check-in", json={"ticket_id": ticket_id, "checked_in": False})
    assert undone.json()["ticket"]["checked_in"] is False
    assert undone.json()["ticket"]["check_in_date"] is None

    unknown = await client.post("/api/v1/orders/tickets/verify", json={"qr_code": "TKTNOPE"})
    assert unknown.status_code == 404
