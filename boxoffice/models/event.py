"""
Event model with its embedded seat inventory.

Key design decisions:
- Seats live in a JSON array on the event row, not in a separate table, so
  locking N seats is a single-row read-modify-write
- `version` column is the optimistic concurrency token: every seat write is
  UPDATE ... WHERE id = :id AND version = :expected
- `next_hold_expiry` mirrors the earliest hold_until among seats in
  BOOKING_IN_PROGRESS, so the expiry sweep can find stale holds with an index
  lookup instead of scanning every seat array
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Index, Integer, JSON, String

from boxoffice.db.base import Base, TimestampMixin


class SeatingType:
    RESERVED = "RESERVED"
    GENERAL_ADMISSION = "GENERAL_ADMISSION"


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    organizer_id = Column(String(64), nullable=False, index=True)
    organizer_email = Column(String(255), nullable=True)
    seating_type = Column(String(32), nullable=False, default=SeatingType.RESERVED)
    status = Column(String(20), nullable=False, default="DRAFT")
    currency = Column(String(3), nullable=False, default="USD")
    start_time = Column(DateTime(timezone=True), nullable=True)

    ticket_types = Column(JSON, nullable=False, default=list)
    seats = Column(JSON, nullable=False, default=list)
    next_hold_expiry = Column(DateTime(timezone=True), nullable=True)

    version = Column(Integer, nullable=False, default=1)
    deleted = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint(
            "seating_type IN ('RESERVED', 'GENERAL_ADMISSION')", name="check_event_seating_type"
        ),
        Index("ix_events_next_hold_expiry", "next_hold_expiry"),
    )

    @property
    def is_general_admission(self) -> bool:
        return self.seating_type == SeatingType.GENERAL_ADMISSION

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, version={self.version})>"
