"""
Server-side cart pricing.

Prices never come from the client: reserved seats are priced from the stored
seat (denormalized at hydration), general admission units from the event's
ticket type catalog.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from boxoffice.models.service_charge import ServiceCharge
from boxoffice.schemas.cart import CartItem
from boxoffice.schemas.seat import EventSeat, TicketType
from boxoffice.services import seat_inventory
from boxoffice.services.seat_inventory import ConflictReason, SeatConflict
from boxoffice.services.seat_store import EventSnapshot

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value) -> Decimal:
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class CartLine:
    price: Decimal
    seat: Optional[EventSeat] = None
    ticket_type: Optional[TicketType] = None

    @property
    def seat_id(self) -> Optional[str]:
        return self.seat.id if self.seat else None

    @property
    def label(self) -> Optional[str]:
        return self.seat.label if self.seat else None

    @property
    def tier(self) -> Optional[str]:
        if self.seat:
            return self.seat.tier
        return self.ticket_type.name if self.ticket_type else None

    @property
    def color(self) -> Optional[str]:
        if self.seat:
            return self.seat.color
        return self.ticket_type.color if self.ticket_type else None


@dataclass
class PricedCart:
    lines: list[CartLine]
    missing: list[SeatConflict]

    @property
    def subtotal(self) -> Decimal:
        return money(sum((line.price for line in self.lines), ZERO))

    @property
    def seat_prices(self) -> tuple[Decimal, ...]:
        return tuple(line.price for line in self.lines)

    @property
    def seat_ids(self) -> list[str]:
        return [line.seat_id for line in self.lines if line.seat_id]

    @property
    def ticket_type_ids(self) -> list[str]:
        return [line.ticket_type.id for line in self.lines if line.ticket_type]


def price_cart(snapshot: EventSnapshot, items: list[CartItem]) -> PricedCart:
    lines: list[CartLine] = []
    missing: list[SeatConflict] = []

    if snapshot.event.is_general_admission:
        catalog = {tt.id: tt for tt in snapshot.ticket_types}
        for item in items:
            ticket_type = catalog.get(item.ticket_type_id or "")
            if ticket_type is None:
                missing.append(SeatConflict(item.ticket_type_id or "", ConflictReason.NOT_FOUND))
            else:
                lines.append(CartLine(price=money(ticket_type.price), ticket_type=ticket_type))
        return PricedCart(lines=lines, missing=missing)

    seats = seat_inventory.index_seats(snapshot.seats)
    # A seat can only be bought once per order
    for seat_id in seat_inventory.unique_ids(item.id or "" for item in items):
        seat = seats.get(seat_id)
        if seat is None:
            missing.append(SeatConflict(seat_id, ConflictReason.NOT_FOUND))
        else:
            lines.append(CartLine(price=money(seat.price), seat=seat))
    return PricedCart(lines=lines, missing=missing)


def service_fee_for(charges: list[ServiceCharge], discounted_subtotal: Decimal) -> Decimal:
    fee = ZERO
    for charge in charges:
        value = Decimal(str(charge.value or 0))
        if charge.charge_type == "PERCENTAGE":
            fee += discounted_subtotal * value / 100
        else:
            fee += value
    return money(fee)


def order_total(subtotal: Decimal, discount: Decimal, service_fee: Decimal) -> Decimal:
    return money(max(ZERO, subtotal - discount) + service_fee)
