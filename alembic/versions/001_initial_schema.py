"""Initial schema: events with embedded seats, coupons, orders, tickets, service charges.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Events table, seats embedded as JSON
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("organizer_id", sa.String(64), nullable=False),
        sa.Column("organizer_email", sa.String(255), nullable=True),
        sa.Column("seating_type", sa.String(32), nullable=False, server_default="RESERVED"),
        sa.Column("status", sa.String(20), nullable=False, server_default="DRAFT"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ticket_types", sa.JSON(), nullable=False),
        sa.Column("seats", sa.JSON(), nullable=False),
        sa.Column("next_hold_expiry", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        sa.CheckConstraint(
            "seating_type IN ('RESERVED', 'GENERAL_ADMISSION')", name="check_event_seating_type"
        ),
    )
    op.create_index("ix_events_id", "events", ["id"])
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])
    # The expiry sweep only ever reads events with a hold deadline in the past.
    # NULL for every event without active holds, so the index stays small.
    op.create_index("ix_events_next_hold_expiry", "events", ["next_hold_expiry"])

    # Coupons table
    op.create_table(
        "coupons",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("discount_type", sa.String(20), nullable=False, server_default="FIXED"),
        sa.Column("value", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("rule_type", sa.String(20), nullable=False, server_default="CODE"),
        sa.Column("min_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("min_seats", sa.Integer(), nullable=True),
        sa.Column("max_quantity_eligible", sa.Integer(), nullable=True),
        sa.Column("value_per_ticket", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("event_id", sa.Integer(), nullable=True),
        sa.Column("organizer_id", sa.String(64), nullable=False),
        sa.Column("max_uses", sa.Integer(), nullable=True),
        sa.Column("used_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        sa.CheckConstraint("used_count >= 0", name="check_coupon_used_count_non_negative"),
        # Last line of defense behind the conditional increment in redeem_coupon
        sa.CheckConstraint(
            "max_uses IS NULL OR max_uses = 0 OR used_count <= max_uses",
            name="check_coupon_used_lte_max",
        ),
    )
    op.create_index("ix_coupons_id", "coupons", ["id"])
    op.create_index("ix_coupons_code", "coupons", ["code"])
    op.create_index("ix_coupons_event_id", "coupons", ["event_id"])
    op.create_index("ix_coupons_organizer_id", "coupons", ["organizer_id"])

    # Orders table
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("customer_email", sa.String(255), nullable=False),
        sa.Column("customer_phone", sa.String(50), nullable=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("subtotal", sa.Numeric(10, 2), nullable=False),
        sa.Column("discount_applied", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("service_fee", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("coupon_code", sa.String(64), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="PAID"),
        sa.Column("payment_mode", sa.String(20), nullable=False),
        sa.Column("transaction_id", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_orders_id", "orders", ["id"])
    op.create_index("ix_orders_user_id", "orders", ["user_id"])
    op.create_index("ix_orders_event_id", "orders", ["event_id"])

    # Tickets table
    op.create_table(
        "tickets",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("event_title", sa.String(255), nullable=False),
        sa.Column("seat_id", sa.String(64), nullable=True),
        sa.Column("seat_label", sa.String(64), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("ticket_type", sa.String(100), nullable=True),
        sa.Column("color", sa.String(32), nullable=True),
        sa.Column("qr_code_data", sa.String(64), nullable=False),
        sa.Column("purchase_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("checked_in", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("check_in_date", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_tickets_order_id", "tickets", ["order_id"])
    op.create_index("ix_tickets_event_id", "tickets", ["event_id"])

    # Service charges table
    op.create_table(
        "service_charges",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("charge_type", sa.String(20), nullable=False, server_default="FIXED"),
        sa.Column("value", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_service_charges_id", "service_charges", ["id"])


def downgrade() -> None:
    op.drop_table("service_charges")
    op.drop_table("tickets")
    op.drop_table("orders")
    op.drop_table("coupons")
    op.drop_table("events")
