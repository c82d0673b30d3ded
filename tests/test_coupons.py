"""
Tests for coupon management, explicit validation, the best-coupon lookup and
conditional redemption.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient

from boxoffice.core.clock import utcnow
from boxoffice.services.coupon_service import redeem_coupon
from tests.conftest import load_coupon


def cart(*seat_ids: str) -> list[dict]:
    return [{"id": seat_id} for seat_id in seat_ids]


@pytest.mark.asyncio
async def test_create_coupon_normalizes_code(client: AsyncClient):
    response = await client.post(
        "/api/v1/coupons/",
        json={"code": "  spring24 ", "value": "15", "organizer_id": "org-1"},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["code"] == "SPRING24"
    assert data["used_count"] == 0
    assert data["rule_type"] == "CODE"
    assert data["discount_type"] == "FIXED"


@pytest.mark.asyncio
async def test_duplicate_active_code_rejected(client: AsyncClient, make_coupon):
    await make_coupon(code="DUPE")
    response = await client.post(
        "/api/v1/coupons/",
        json={"code": "dupe", "value": "5", "organizer_id": "org-2"},
    )
    assert response.status_code == 400
    assert response.json()["code"] == "DUPE"


@pytest.mark.asyncio
async def test_inactive_duplicate_is_allowed(client: AsyncClient, make_coupon):
    await make_coupon(code="OLD", active=False)
    response = await client.post(
        "/api/v1/coupons/",
        json={"code": "OLD", "value": "5", "organizer_id": "org-1"},
    )
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_invalid_rule_type_rejected(client: AsyncClient):
    response = await client.post(
        "/api/v1/coupons/",
        json={"code": "X", "value": "5", "organizer_id": "org-1", "rule_type": "LOYALTY"},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_validate_code(client: AsyncClient, reserved_event, make_coupon):
    await make_coupon(code="TENOFF", discount_type="PERCENTAGE", value=Decimal("10"))

    response = await client.post(
        "/api/v1/coupons/validate",
        json={"code": "tenoff", "event_id": reserved_event.id, "seats": cart("A1", "B1")},
    )
    assert response.status_code == 200
    assert response.json()["code"] == "TENOFF"
    assert Decimal(response.json()["discount"]) == Decimal("11.00")


@pytest.mark.asyncio
async def test_validate_does_not_consume_uses(client: AsyncClient, reserved_event, make_coupon, session_factory):
    coupon = await make_coupon(code="ONCE", max_uses=1)
    for _ in range(2):
        response = await client.post(
            "/api/v1/coupons/validate",
            json={"code": "ONCE", "event_id": reserved_event.id, "seats": cart("A1")},
        )
        assert response.status_code == 200
    assert (await load_coupon(session_factory, coupon.id)).used_count == 0


@pytest.mark.asyncio
async def test_validate_rejection_messages(client: AsyncClient, reserved_event, make_coupon):
    await make_coupon(code="OTHER", event_id=reserved_event.id + 100)
    await make_coupon(code="STALE", expiry_date=utcnow() - timedelta(days=1))
    await make_coupon(code="USEDUP", max_uses=2, used_count=2)
    await make_coupon(code="BIGCART", rule_type="THRESHOLD", min_amount=Decimal("1000"))

    expected = {
        "NOPE": "Invalid coupon",
        "OTHER": "Not valid for this event",
        "STALE": "Expired",
        "USEDUP": "Limit reached",
        "BIGCART": "Not applicable",
    }
    for code, message in expected.items():
        response = await client.post(
            "/api/v1/coupons/validate",
            json={"code": code, "event_id": reserved_event.id, "seats": cart("A1")},
        )
        assert response.status_code == 400, code
        assert response.json()["message"] == message


@pytest.mark.asyncio
async def test_best_coupon(client: AsyncClient, reserved_event, make_coupon):
    await make_coupon(code="SMALL", rule_type="THRESHOLD", min_amount=Decimal("50"), value=Decimal("5"))
    await make_coupon(code="BULK", rule_type="SEAT_COUNT", min_seats=2, value=Decimal("8"))
    await make_coupon(code="TYPED", value=Decimal("40"))
    await make_coupon(code="ELSEWHERE", rule_type="THRESHOLD", organizer_id="org-2", value=Decimal("30"))

    response = await client.post(
        "/api/v1/coupons/best",
        json={"event_id": reserved_event.id, "seats": cart("A1", "A2")},
    )
    assert response.status_code == 200
    best = response.json()["coupon"]
    assert best["code"] == "BULK"
    assert Decimal(best["discount"]) == Decimal("8.00")


@pytest.mark.asyncio
async def test_best_coupon_none_applies(client: AsyncClient, reserved_event, make_coupon):
    await make_coupon(code="BULK", rule_type="SEAT_COUNT", min_seats=5, value=Decimal("8"))
    response = await client.post(
        "/api/v1/coupons/best",
        json={"event_id": reserved_event.id, "seats": cart("A1")},
    )
    assert response.json() == {"coupon": None}


@pytest.mark.asyncio
async def test_update_coupon(client: AsyncClient, make_coupon):
    coupon = await make_coupon(code="EDITME")
    response = await client.patch(f"/api/v1/coupons/{coupon.id}", json={"value": "25", "max_uses": 3})
    assert response.status_code == 200
    assert Decimal(response.json()["value"]) == Decimal("25")
    assert response.json()["max_uses"] == 3
    assert response.json()["code"] == "EDITME"


@pytest.mark.asyncio
async def test_update_to_taken_code_rejected(client: AsyncClient, make_coupon):
    await make_coupon(code="TAKEN")
    coupon = await make_coupon(code="MINE")
    response = await client.patch(f"/api/v1/coupons/{coupon.id}", json={"code": "taken"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_is_soft(client: AsyncClient, make_coupon, session_factory):
    coupon = await make_coupon(code="BYE")
    response = await client.delete(f"/api/v1/coupons/{coupon.id}")
    assert response.json() == {"success": True}

    assert (await client.get(f"/api/v1/coupons/{coupon.id}")).status_code == 404
    listed = await client.get("/api/v1/coupons/?organizer_id=org-1")
    assert listed.json() == []

    stored = await load_coupon(session_factory, coupon.id)
    assert stored.deleted is True
    assert stored.active is False


@pytest.mark.asyncio
async def test_list_coupons_for_event(client: AsyncClient, reserved_event, make_coupon):
    await make_coupon(code="ALLEVENTS")
    await make_coupon(code="THISONE", event_id=reserved_event.id)
    await make_coupon(code="OTHERONE", event_id=reserved_event.id + 1)

    response = await client.get(f"/api/v1/coupons/?event_id={reserved_event.id}")
    assert sorted(c["code"] for c in response.json()) == ["ALLEVENTS", "THISONE"]


@pytest.mark.asyncio
async def test_redeem_respects_usage_cap(session_factory, make_coupon):
    coupon = await make_coupon(code="CAPPED", max_uses=3, used_count=1)

    async with session_factory() as db:
        assert await redeem_coupon(db, coupon, 2) is True
        await db.commit()

    async with session_factory() as db:
        assert await redeem_coupon(db, coupon, 1) is False
        await db.rollback()

    assert (await load_coupon(session_factory, coupon.id)).used_count == 3


@pytest.mark.asyncio
async def test_redeem_unlimited_and_inactive(session_factory, make_coupon):
    unlimited = await make_coupon(code="FOREVER", max_uses=0, used_count=41)
    inactive = await make_coupon(code="PAUSED", active=False)

    async with session_factory() as db:
        assert await redeem_coupon(db, unlimited, 1) is True
        assert await redeem_coupon(db, inactive, 1) is False
        await db.commit()

    assert (await load_coupon(session_factory, unlimited.id)).used_count == 42
