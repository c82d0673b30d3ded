"""
Coupon management, validation and redemption.

Redemption is the only write to `used_count`, and it is a single conditional
UPDATE:

    UPDATE coupons SET used_count = used_count + :inc
    WHERE id = :id AND active AND NOT deleted
      AND (max_uses IS NULL OR max_uses = 0 OR used_count + :inc <= max_uses)

Two orders racing for the last use both pass validation, but only one of the
updates matches a row. The loser's transaction is rolled back by the caller.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.clock import utcnow
from boxoffice.core.exceptions import CouponError, CouponNotFoundError
from boxoffice.core.logging import get_logger
from boxoffice.core.metrics import coupon_redemptions
from boxoffice.models.coupon import Coupon
from boxoffice.schemas.cart import CartItem
from boxoffice.schemas.coupon import CouponCreate, CouponUpdate
from boxoffice.services import discount_service
from boxoffice.services.discount_service import DiscountContext, DiscountResult
from boxoffice.services.pricing import price_cart
from boxoffice.services.seat_store import SeatStore

logger = get_logger(__name__)


async def _active_code_exists(db: AsyncSession, code: str, exclude_id: Optional[int] = None) -> bool:
    query = select(Coupon.id).where(
        Coupon.code == code,
        Coupon.active.is_(True),
        Coupon.deleted.is_(False),
    )
    if exclude_id is not None:
        query = query.where(Coupon.id != exclude_id)
    result = await db.execute(query)
    return result.first() is not None


async def create_coupon(db: AsyncSession, data: CouponCreate) -> Coupon:
    if data.active and await _active_code_exists(db, data.code):
        raise CouponError("Coupon code already exists", details={"code": data.code})

    coupon = Coupon(**data.model_dump(), used_count=0)
    db.add(coupon)
    await db.flush()

    logger.info("coupon_created", coupon_id=coupon.id, code=coupon.code, rule_type=coupon.rule_type)
    return coupon


async def get_coupon(db: AsyncSession, coupon_id: int) -> Coupon:
    result = await db.execute(select(Coupon).where(Coupon.id == coupon_id, Coupon.deleted.is_(False)))
    coupon = result.scalar_one_or_none()
    if coupon is None:
        raise CouponNotFoundError(coupon_id)
    return coupon


async def list_coupons(
    db: AsyncSession,
    organizer_id: Optional[str] = None,
    event_id: Optional[int] = None,
) -> list[Coupon]:
    query = select(Coupon).where(Coupon.deleted.is_(False))
    if organizer_id is not None:
        query = query.where(Coupon.organizer_id == organizer_id)
    if event_id is not None:
        query = query.where(or_(Coupon.event_id == event_id, Coupon.event_id.is_(None)))
    result = await db.execute(query.order_by(Coupon.created_at.desc(), Coupon.id.desc()))
    return list(result.scalars().all())


async def update_coupon(db: AsyncSession, coupon_id: int, data: CouponUpdate) -> Coupon:
    coupon = await get_coupon(db, coupon_id)
    changes = data.model_dump(exclude_unset=True)

    code = changes.get("code", coupon.code)
    active = changes.get("active", coupon.active)
    if active and ("code" in changes or "active" in changes):
        if await _active_code_exists(db, code, exclude_id=coupon.id):
            raise CouponError("Coupon code already exists", details={"code": code})

    for key, value in changes.items():
        setattr(coupon, key, value)
    await db.flush()

    logger.info("coupon_updated", coupon_id=coupon.id, fields=sorted(changes))
    return coupon


async def delete_coupon(db: AsyncSession, coupon_id: int) -> None:
    coupon = await get_coupon(db, coupon_id)
    coupon.deleted = True
    coupon.active = False
    await db.flush()
    logger.info("coupon_deleted", coupon_id=coupon_id, code=coupon.code)


async def _cart_context(
    db: AsyncSession,
    event_id: int,
    items: list[CartItem],
    requested_code: Optional[str] = None,
):
    snapshot = await SeatStore(db).load(event_id)
    cart = price_cart(snapshot, items)
    context = DiscountContext(
        subtotal=cart.subtotal,
        seats_count=len(cart.lines),
        requested_code=requested_code,
        event_id=event_id,
        seat_prices=cart.seat_prices,
    )
    return snapshot.event, context


async def validate_coupon(
    db: AsyncSession,
    code: str,
    event_id: int,
    items: list[CartItem],
    now: Optional[datetime] = None,
) -> tuple[Coupon, DiscountResult]:
    """
    Explicit check of a typed code against a cart. Each rejection has its own
    message so the checkout page can tell the customer what went wrong.
    """
    now = now or utcnow()
    code = code.strip().upper()

    result = await db.execute(
        select(Coupon)
        .where(Coupon.code == code, Coupon.active.is_(True), Coupon.deleted.is_(False))
        .order_by(Coupon.id)
    )
    coupon = result.scalars().first()
    if coupon is None:
        raise CouponError("Invalid coupon", details={"code": code})

    if coupon.event_id is not None and coupon.event_id != event_id:
        raise CouponError("Not valid for this event", details={"code": code})
    if discount_service.is_expired(coupon, now):
        raise CouponError("Expired", details={"code": code})
    remaining = discount_service.remaining_uses(coupon)
    if remaining is not None and remaining <= 0:
        raise CouponError("Limit reached", details={"code": code})

    _, context = await _cart_context(db, event_id, items, requested_code=code)
    discount = discount_service.compute_discount(coupon, context, now)
    if not discount.applies:
        raise CouponError("Not applicable", details={"code": code})

    return coupon, discount


async def find_best_coupon(
    db: AsyncSession,
    event_id: int,
    items: list[CartItem],
    now: Optional[datetime] = None,
) -> Optional[tuple[Coupon, DiscountResult]]:
    event, context = await _cart_context(db, event_id, items)
    return await discount_service.best_discount_for(db, event, context, now)


async def redeem_coupon(db: AsyncSession, coupon: Coupon, increment: int) -> bool:
    """
    Atomically consume `increment` uses. Returns False when the coupon was
    exhausted, deactivated or deleted since it was evaluated.
    """
    if increment <= 0:
        return True

    result = await db.execute(
        update(Coupon)
        .where(
            Coupon.id == coupon.id,
            Coupon.active.is_(True),
            Coupon.deleted.is_(False),
            or_(
                Coupon.max_uses.is_(None),
                Coupon.max_uses == 0,
                Coupon.used_count + increment <= Coupon.max_uses,
            ),
        )
        .values(used_count=Coupon.used_count + increment)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning("coupon_redemption_rejected", coupon_id=coupon.id, code=coupon.code, increment=increment)
        return False

    coupon_redemptions.labels(rule_type=coupon.rule_type).inc(increment)
    logger.info("coupon_redeemed", coupon_id=coupon.id, code=coupon.code, increment=increment)
    return True
