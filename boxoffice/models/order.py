"""
Order and Ticket models.

An order is written once, at the end of a successful checkout. Tickets are
snapshots: seat label, price, tier and color are copied at sale time so later
catalog edits do not change what the customer bought. The only mutable fields
are a ticket's check-in flag and timestamp.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from boxoffice.db.base import Base, TimestampMixin


class PaymentMode:
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"
    FREE = "FREE"


class Order(Base, TimestampMixin):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)

    subtotal = Column(Numeric(10, 2), nullable=False)
    discount_applied = Column(Numeric(10, 2), nullable=False, default=0)
    service_fee = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)
    coupon_code = Column(String(64), nullable=True)

    status = Column(String(20), nullable=False, default="PAID")
    payment_mode = Column(String(20), nullable=False)
    transaction_id = Column(String(255), nullable=True)

    tickets = relationship(
        "Ticket", back_populates="order", lazy="selectin", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, event={self.event_id}, total={self.total_amount})>"


class Ticket(Base):
    __tablename__ = "tickets"

    # Also the QR payload
    id = Column(String(32), primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    event_id = Column(Integer, nullable=False, index=True)
    event_title = Column(String(255), nullable=False)
    seat_id = Column(String(64), nullable=True)
    seat_label = Column(String(64), nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    ticket_type = Column(String(100), nullable=True)
    color = Column(String(32), nullable=True)
    qr_code_data = Column(String(64), nullable=False)
    purchase_date = Column(DateTime(timezone=True), nullable=False)
    checked_in = Column(Boolean, nullable=False, default=False)
    check_in_date = Column(DateTime(timezone=True), nullable=True)

    order = relationship("Order", back_populates="tickets")

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id}, seat={self.seat_label}, checked_in={self.checked_in})>"
