"""
Discount rules.

compute_discount is pure: given a coupon and a cart context it returns the
discount amount and how many uses it would consume. It never touches the
usage counter; redemption happens separately, at order commit, through a
conditional UPDATE (see coupon_service.redeem_coupon).

Rule types:
  CODE        customer typed the code (case-insensitive)
  THRESHOLD   subtotal >= min_amount
  SEAT_COUNT  seats_count >= min_seats
  EARLY_BIRD  first max_quantity_eligible units sold get the discount,
              applied to the cheapest seats in the cart
"""

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.clock import ensure_aware, utcnow
from boxoffice.models.coupon import Coupon, DiscountType, RuleType
from boxoffice.models.event import Event
from boxoffice.services.pricing import ZERO, money


@dataclass(frozen=True)
class DiscountContext:
    subtotal: Decimal
    seats_count: int
    requested_code: Optional[str] = None
    event_id: Optional[int] = None
    seat_prices: tuple[Decimal, ...] = ()


@dataclass(frozen=True)
class DiscountResult:
    discount: Decimal = ZERO
    usage_increment: int = 0

    @property
    def applies(self) -> bool:
        return self.discount > 0


NO_DISCOUNT = DiscountResult()


def remaining_uses(coupon) -> Optional[int]:
    """None when unlimited (max_uses NULL or 0)."""
    if not coupon.max_uses:
        return None
    return max(0, coupon.max_uses - (coupon.used_count or 0))


def is_expired(coupon, now: datetime) -> bool:
    return coupon.expiry_date is not None and ensure_aware(coupon.expiry_date) < now


def is_redeemable(coupon, now: datetime) -> bool:
    if not coupon.active or coupon.deleted or is_expired(coupon, now):
        return False
    remaining = remaining_uses(coupon)
    return remaining is None or remaining > 0


def _amount(coupon, base: Decimal) -> Decimal:
    value = Decimal(str(coupon.value or 0))
    if coupon.discount_type == DiscountType.PERCENTAGE:
        return base * value / 100
    return min(base, value)


def _early_bird(coupon, context: DiscountContext, allowance: Optional[int]) -> tuple[Decimal, int]:
    eligible = max(0, (coupon.max_quantity_eligible or 0) - (coupon.used_count or 0))
    count = min(eligible, context.seats_count)
    if allowance is not None:
        count = min(count, allowance)
    if count <= 0:
        return ZERO, 0

    base = sum(sorted(context.seat_prices)[:count], ZERO)
    if coupon.discount_type == DiscountType.FIXED and coupon.value_per_ticket:
        value = Decimal(str(coupon.value or 0))
        return min(base, value * count), count
    return _amount(coupon, base), count


def compute_discount(coupon, context: DiscountContext, now: Optional[datetime] = None) -> DiscountResult:
    now = now or utcnow()
    if coupon is None or not is_redeemable(coupon, now):
        return NO_DISCOUNT

    subtotal = context.subtotal
    allowance = remaining_uses(coupon)
    rule = coupon.rule_type or RuleType.CODE

    if rule == RuleType.THRESHOLD:
        if subtotal < Decimal(str(coupon.min_amount or 0)):
            return NO_DISCOUNT
        discount, increment = _amount(coupon, subtotal), 1
    elif rule == RuleType.SEAT_COUNT:
        if context.seats_count < (coupon.min_seats or 0):
            return NO_DISCOUNT
        discount, increment = _amount(coupon, subtotal), 1
    elif rule == RuleType.EARLY_BIRD:
        discount, increment = _early_bird(coupon, context, allowance)
        if increment == 0:
            return NO_DISCOUNT
    else:
        requested = (context.requested_code or "").strip().upper()
        if not requested or requested != (coupon.code or "").upper():
            return NO_DISCOUNT
        discount, increment = _amount(coupon, subtotal), 1

    if allowance is not None:
        increment = min(increment, allowance)

    discount = money(max(ZERO, min(discount, subtotal)))
    return DiscountResult(discount=discount, usage_increment=increment)


def select_best_coupon(
    coupons: list[Coupon],
    context: DiscountContext,
    now: Optional[datetime] = None,
) -> Optional[tuple[Coupon, DiscountResult]]:
    """
    Highest discount among automatic rules. CODE coupons never fire here
    because no code was entered. Ties go to the lowest coupon id.
    """
    now = now or utcnow()
    automatic = replace(context, requested_code=None)

    best: Optional[tuple[Coupon, DiscountResult]] = None
    for coupon in sorted(coupons, key=lambda c: c.id):
        result = compute_discount(coupon, automatic, now)
        if not result.applies:
            continue
        if best is None or result.discount > best[1].discount:
            best = (coupon, result)
    return best


async def find_candidate_coupons(db: AsyncSession, event: Event) -> list[Coupon]:
    """Coupons scoped to the event plus the organizer's unscoped coupons."""
    result = await db.execute(
        select(Coupon)
        .where(
            Coupon.active.is_(True),
            Coupon.deleted.is_(False),
            or_(
                Coupon.event_id == event.id,
                and_(Coupon.event_id.is_(None), Coupon.organizer_id == event.organizer_id),
            ),
        )
        .order_by(Coupon.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def best_discount_for(
    db: AsyncSession,
    event: Event,
    context: DiscountContext,
    now: Optional[datetime] = None,
) -> Optional[tuple[Coupon, DiscountResult]]:
    candidates = await find_candidate_coupons(db, event)
    return select_best_coupon(candidates, context, now)
