"""
Pytest fixtures for test database, client, and seeded events.

Each test gets its own SQLite file (aiosqlite), so several sessions can hit
the same database concurrently the way request handlers do in production.
Redis and the background sweeper are disabled.
"""

import os

os.environ["REDIS_ENABLED"] = "false"
os.environ["SWEEPER_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from decimal import Decimal
from typing import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from boxoffice.db.base import Base
from boxoffice.db.session import get_db
from boxoffice.main import app
from boxoffice.models import Coupon, Event
from boxoffice.schemas.event import EventCreate, TemplateSeat
from boxoffice.schemas.seat import EventSeat, TicketType
from boxoffice.services.event_service import create_event
from boxoffice.services.seat_store import SeatStore

ROW_LABELS = "ABCDEFGH"


def theater(rows: int, per_row: int) -> list[TemplateSeat]:
    return [
        TemplateSeat(
            id=f"{ROW_LABELS[r]}{c + 1}",
            row=r,
            col=c,
            row_label=ROW_LABELS[r],
            seat_number=str(c + 1),
        )
        for r in range(rows)
        for c in range(per_row)
    ]


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh SQLite file per test; tables created up front."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'boxoffice_test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests each get their own session, committed like get_db."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def load_seats(session_factory, event_id: int) -> dict[str, EventSeat]:
    """Read committed seat state through a new session."""
    async with session_factory() as session:
        snapshot = await SeatStore(session).load(event_id)
        return {seat.id: seat for seat in snapshot.seats}


async def load_coupon(session_factory, coupon_id: int) -> Coupon:
    async with session_factory() as session:
        return await session.get(Coupon, coupon_id)


@pytest_asyncio.fixture
async def reserved_event(db_session: AsyncSession) -> Event:
    """
    2 rows x 5 seats. Row A is Standard at 50.00, row B is VIP at 60.00 except
    B5, which is left unmapped and therefore UNAVAILABLE.
    """
    ticket_types = [
        TicketType(id="std", name="Standard", price=Decimal("50.00"), color="#3366ff"),
        TicketType(id="vip", name="VIP", price=Decimal("60.00"), color="#ffcc00"),
    ]
    layout = theater(2, 5)
    mappings = {seat.id: "std" for seat in layout if seat.row_label == "A"}
    mappings.update({seat.id: "vip" for seat in layout if seat.row_label == "B" and seat.seat_number != "5"})

    event = await create_event(
        db_session,
        EventCreate(
            title="Test Concert",
            organizer_id="org-1",
            organizer_email="organizer@example.com",
            ticket_types=ticket_types,
            theater_seats=layout,
            seat_mappings=mappings,
        ),
    )
    await db_session.commit()
    return event


@pytest_asyncio.fixture
async def ga_event(db_session: AsyncSession) -> Event:
    event = await create_event(
        db_session,
        EventCreate(
            title="Open Air Festival",
            organizer_id="org-1",
            seating_type="GENERAL_ADMISSION",
            ticket_types=[TicketType(id="ga", name="General", price=Decimal("30.00"), total_quantity=100)],
        ),
    )
    await db_session.commit()
    return event


@pytest_asyncio.fixture
async def make_coupon(db_session: AsyncSession):
    """Factory that inserts and commits a coupon."""

    async def _make(**overrides) -> Coupon:
        values = {
            "code": "SAVE10",
            "discount_type": "FIXED",
            "value": Decimal("10.00"),
            "rule_type": "CODE",
            "organizer_id": "org-1",
            "used_count": 0,
            "active": True,
            "deleted": False,
            "value_per_ticket": False,
        }
        values.update(overrides)
        coupon = Coupon(**values)
        db_session.add(coupon)
        await db_session.commit()
        return coupon

    return _make
