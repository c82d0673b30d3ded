"""
Coupon model.

`used_count` is only ever changed through a conditional UPDATE in
coupon_service.redeem_coupon, which keeps it at or below `max_uses`.
A `max_uses` of NULL or 0 means unlimited.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String

from boxoffice.db.base import Base, TimestampMixin


class DiscountType:
    FIXED = "FIXED"
    PERCENTAGE = "PERCENTAGE"


class RuleType:
    CODE = "CODE"
    THRESHOLD = "THRESHOLD"
    SEAT_COUNT = "SEAT_COUNT"
    EARLY_BIRD = "EARLY_BIRD"


class Coupon(Base, TimestampMixin):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(64), nullable=False, index=True)
    discount_type = Column(String(20), nullable=False, default=DiscountType.FIXED)
    value = Column(Numeric(10, 2), nullable=False, default=0)

    rule_type = Column(String(20), nullable=False, default=RuleType.CODE)
    min_amount = Column(Numeric(10, 2), nullable=True)
    min_seats = Column(Integer, nullable=True)
    max_quantity_eligible = Column(Integer, nullable=True)
    value_per_ticket = Column(Boolean, nullable=False, default=False)

    event_id = Column(Integer, nullable=True, index=True)
    organizer_id = Column(String(64), nullable=False, index=True)

    max_uses = Column(Integer, nullable=True)
    used_count = Column(Integer, nullable=False, default=0)
    expiry_date = Column(DateTime(timezone=True), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    deleted = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("used_count >= 0", name="check_coupon_used_count_non_negative"),
        CheckConstraint(
            "max_uses IS NULL OR max_uses = 0 OR used_count <= max_uses",
            name="check_coupon_used_lte_max",
        ),
    )

    def __repr__(self) -> str:
        return f"<Coupon(id={self.id}, code={self.code}, used={self.used_count}/{self.max_uses})>"
