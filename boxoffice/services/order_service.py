"""
Order service: checkout, quotes, order reads and ticket check-in.

CHECKOUT TRANSACTION
====================

  1. Price the cart from stored seat / ticket type prices
  2. Resolve the discount (explicit coupon, or the best automatic one)
  3. Confirm payment with the gateway
  4. Re-check and sell the seats in one versioned event write
     (SeatStore.mutate: a lost race re-reads and re-checks)
  5. Consume coupon uses with a conditional UPDATE; if another order took
     the last use, roll back so the seats stay unsold
  6. Persist the Order and one Ticket per unit

Steps 4-6 run in one transaction committed here, so the order is all or nothing.
Failures after step 3 carry the transaction id so the payment can be
reconciled by hand.
"""

import secrets
import string
import time
from dataclasses import replace
from datetime import datetime
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.clock import utcnow
from boxoffice.core.config import get_settings
from boxoffice.core.exceptions import (
    BoxOfficeError,
    ConcurrencyConflictError,
    CouponConflictError,
    CouponNotFoundError,
    OrderNotFoundError,
    OrderPersistenceError,
    PaymentError,
    SeatConflictError,
    TicketNotFoundError,
)
from boxoffice.core.logging import get_logger
from boxoffice.core.metrics import order_latency, record_order_attempt
from boxoffice.models.coupon import Coupon
from boxoffice.models.event import Event
from boxoffice.models.order import Order, PaymentMode, Ticket
from boxoffice.models.service_charge import ServiceCharge
from boxoffice.schemas.order import OrderCreate, QuoteRequest, QuoteResponse
from boxoffice.services import discount_service, seat_inventory
from boxoffice.services.cache_service import invalidate_seat_map
from boxoffice.services.coupon_service import redeem_coupon
from boxoffice.services.discount_service import NO_DISCOUNT, DiscountContext, DiscountResult
from boxoffice.services.interfaces.payment_gateway import PaymentGateway
from boxoffice.services.pricing import ZERO, PricedCart, money, order_total, price_cart, service_fee_for
from boxoffice.services.seat_store import EventSnapshot, SeatStore, SeatWrite

logger = get_logger(__name__)
settings = get_settings()

TICKET_ALPHABET = string.ascii_uppercase + string.digits
TICKET_ID_LENGTH = 12


def generate_ticket_id() -> str:
    return "TKT" + "".join(secrets.choice(TICKET_ALPHABET) for _ in range(TICKET_ID_LENGTH))


def _conflict_payload(conflicts) -> list[dict[str, str]]:
    return [conflict.to_dict() for conflict in conflicts]


async def _load_coupon(db: AsyncSession, coupon_id: int) -> Coupon:
    result = await db.execute(
        select(Coupon)
        .where(Coupon.id == coupon_id, Coupon.deleted.is_(False))
        .execution_options(populate_existing=True)
    )
    coupon = result.scalar_one_or_none()
    if coupon is None:
        raise CouponNotFoundError(coupon_id)
    return coupon


async def resolve_discount(
    db: AsyncSession,
    event: Event,
    cart: PricedCart,
    coupon_id: Optional[int],
    now: datetime,
) -> tuple[Optional[Coupon], DiscountResult]:
    """
    An explicit coupon is evaluated as if its code had been typed and must
    produce a discount; otherwise the best automatic coupon is used, if any.
    """
    context = DiscountContext(
        subtotal=cart.subtotal,
        seats_count=len(cart.lines),
        event_id=event.id,
        seat_prices=cart.seat_prices,
    )

    if coupon_id is None:
        best = await discount_service.best_discount_for(db, event, context, now)
        return best if best else (None, NO_DISCOUNT)

    coupon = await _load_coupon(db, coupon_id)
    if coupon.event_id is not None and coupon.event_id != event.id:
        raise CouponConflictError("Coupon is not valid for this event", code=coupon.code)

    result = discount_service.compute_discount(coupon, replace(context, requested_code=coupon.code), now)
    if not result.applies:
        raise CouponConflictError("Coupon is no longer applicable", code=coupon.code)
    return coupon, result


async def settle_payment(gateway: PaymentGateway, data: OrderCreate, total) -> Optional[str]:
    """Return the transaction id to record, or raise PaymentError."""
    if total == ZERO:
        if data.payment_mode == PaymentMode.FREE or not data.transaction_id:
            return settings.FREE_TRANSACTION_ID
        return data.transaction_id

    if data.payment_mode == PaymentMode.FREE:
        raise PaymentError(
            "Free checkout is only available for zero-total orders",
            details={"total_amount": str(total)},
        )
    if data.payment_mode == PaymentMode.OFFLINE:
        return data.transaction_id

    if not data.transaction_id:
        raise PaymentError("transaction_id is required for online payment")
    if not await gateway.confirm(data.transaction_id, total):
        raise PaymentError("Payment could not be confirmed", details={"transaction_id": data.transaction_id})
    return data.transaction_id


def _sale_decision(cart: PricedCart):
    seat_ids = cart.seat_ids
    ticket_type_ids = cart.ticket_type_ids

    def decide(snapshot: EventSnapshot):
        if snapshot.event.is_general_admission:
            ticket_types, missing = seat_inventory.sell_general_admission(snapshot.ticket_types, ticket_type_ids)
            if missing:
                raise SeatConflictError(
                    [{"seat_id": tt_id, "reason": seat_inventory.ConflictReason.NOT_FOUND.value} for tt_id in missing]
                )
            return SeatWrite(ticket_types=ticket_types), []

        conflicts = seat_inventory.sale_conflicts(snapshot.seats, seat_ids)
        if conflicts:
            raise SeatConflictError(_conflict_payload(conflicts))
        return SeatWrite(seats=seat_inventory.sell(snapshot.seats, seat_ids)), seat_ids

    return decide


def _build_tickets(event: Event, cart: PricedCart, now: datetime) -> list[Ticket]:
    tickets = []
    issued: set[str] = set()
    for line in cart.lines:
        ticket_id = generate_ticket_id()
        while ticket_id in issued:
            ticket_id = generate_ticket_id()
        issued.add(ticket_id)
        tickets.append(
            Ticket(
                id=ticket_id,
                event_id=event.id,
                event_title=event.title,
                seat_id=line.seat_id,
                seat_label=line.label,
                price=line.price,
                ticket_type=line.tier,
                color=line.color,
                qr_code_data=ticket_id,
                purchase_date=now,
                checked_in=False,
            )
        )
    return tickets


async def create_order(
    db: AsyncSession,
    data: OrderCreate,
    gateway: PaymentGateway,
    now: Optional[datetime] = None,
) -> tuple[Order, Event]:
    started = time.perf_counter()
    now = now or utcnow()
    event_id = data.event_id

    store = SeatStore(db)
    snapshot = await store.load(event_id)
    event = snapshot.event
    cart = price_cart(snapshot, data.seats)
    if cart.missing:
        record_order_attempt("seat_conflict")
        raise SeatConflictError(_conflict_payload(cart.missing), transaction_id=data.transaction_id)

    coupon, discount = await resolve_discount(db, event, cart, data.coupon_id, now)
    service_fee = money(data.service_fee)
    total = order_total(cart.subtotal, discount.discount, service_fee)

    try:
        transaction_id = await settle_payment(gateway, data, total)
    except PaymentError:
        record_order_attempt("payment_failed")
        raise

    coupon_code = coupon.code if coupon else None
    try:
        sold = await store.mutate(event_id, _sale_decision(cart))

        if coupon is not None and discount.usage_increment:
            if not await redeem_coupon(db, coupon, discount.usage_increment):
                await db.rollback()
                raise CouponConflictError("Coupon usage limit reached", code=coupon_code)

        order = Order(
            user_id=data.customer.id or f"guest-{secrets.token_hex(6)}",
            customer_name=data.customer.name,
            customer_email=data.customer.email,
            customer_phone=data.customer.phone,
            event_id=event_id,
            subtotal=cart.subtotal,
            discount_applied=discount.discount,
            service_fee=service_fee,
            total_amount=total,
            coupon_code=coupon_code,
            status="PAID",
            payment_mode=data.payment_mode,
            transaction_id=transaction_id,
            tickets=_build_tickets(event, cart, now),
        )
        db.add(order)
        await db.flush()
        await db.commit()
    except (SeatConflictError, CouponConflictError, ConcurrencyConflictError) as e:
        result = "coupon_conflict" if isinstance(e, CouponConflictError) else "seat_conflict"
        record_order_attempt(result)
        _attach_transaction(e, transaction_id)
        logger.warning(
            "order_failed_after_payment",
            event_id=event_id,
            transaction_id=transaction_id,
            reason=e.message,
        )
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        record_order_attempt("store_error")
        error = OrderPersistenceError()
        _attach_transaction(error, transaction_id)
        logger.error(
            "order_failed_after_payment",
            event_id=event_id,
            transaction_id=transaction_id,
            reason=str(e),
            exc_info=True,
        )
        raise error from e

    record_order_attempt("created")
    order_latency.observe(time.perf_counter() - started)
    if sold:
        await invalidate_seat_map(event_id)

    logger.info(
        "order_created",
        order_id=order.id,
        event_id=event_id,
        tickets=len(order.tickets),
        subtotal=str(order.subtotal),
        discount=str(order.discount_applied),
        total=str(order.total_amount),
        coupon_code=coupon_code,
        payment_mode=order.payment_mode,
    )
    return order, event


def _attach_transaction(error: BoxOfficeError, transaction_id: Optional[str]) -> None:
    if transaction_id and transaction_id != settings.FREE_TRANSACTION_ID:
        error.details.setdefault("transaction_id", transaction_id)


async def active_service_charges(db: AsyncSession) -> list[ServiceCharge]:
    result = await db.execute(select(ServiceCharge).where(ServiceCharge.active.is_(True)).order_by(ServiceCharge.id))
    return list(result.scalars().all())


async def quote_order(db: AsyncSession, data: QuoteRequest, now: Optional[datetime] = None) -> QuoteResponse:
    """Price a cart the way checkout would, without writing anything."""
    now = now or utcnow()
    snapshot = await SeatStore(db).load(data.event_id)
    cart = price_cart(snapshot, data.seats)
    if cart.missing:
        raise SeatConflictError(_conflict_payload(cart.missing))

    coupon, discount = await resolve_discount(db, snapshot.event, cart, data.coupon_id, now)
    charges = await active_service_charges(db)
    service_fee = service_fee_for(charges, max(ZERO, cart.subtotal - discount.discount))

    return QuoteResponse(
        subtotal=cart.subtotal,
        discount=discount.discount,
        coupon_id=coupon.id if coupon else None,
        coupon_code=coupon.code if coupon else None,
        service_fee=service_fee,
        total_amount=order_total(cart.subtotal, discount.discount, service_fee),
    )


async def get_order(db: AsyncSession, order_id: int) -> Order:
    result = await db.execute(select(Order).where(Order.id == order_id))
    order = result.scalar_one_or_none()
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


async def list_orders(
    db: AsyncSession,
    event_id: Optional[int] = None,
    customer_email: Optional[str] = None,
) -> list[Order]:
    query = select(Order)
    if event_id is not None:
        query = query.where(Order.event_id == event_id)
    if customer_email is not None:
        query = query.where(Order.customer_email == customer_email)
    result = await db.execute(query.order_by(Order.created_at.desc(), Order.id.desc()))
    return list(result.scalars().all())


async def _find_ticket(db: AsyncSession, reference: str) -> Ticket:
    result = await db.execute(
        select(Ticket).where(or_(Ticket.id == reference, Ticket.qr_code_data == reference))
    )
    ticket = result.scalars().first()
    if ticket is None:
        raise TicketNotFoundError(reference)
    return ticket


async def verify_ticket(db: AsyncSession, qr_code: str) -> tuple[Ticket, Order]:
    ticket = await _find_ticket(db, qr_code.strip())
    order = await get_order(db, ticket.order_id)
    logger.info("ticket_verified", ticket_id=ticket.id, order_id=order.id, checked_in=ticket.checked_in)
    return ticket, order


async def check_in_ticket(
    db: AsyncSession,
    ticket_id: str,
    checked_in: bool = True,
    now: Optional[datetime] = None,
) -> Ticket:
    ticket = await _find_ticket(db, ticket_id.strip())
    ticket.checked_in = checked_in
    ticket.check_in_date = (now or utcnow()) if checked_in else None
    await db.flush()

    logger.info("ticket_check_in_updated", ticket_id=ticket.id, checked_in=checked_in)
    return ticket
