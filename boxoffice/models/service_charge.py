from sqlalchemy import Boolean, Column, Integer, Numeric, String

from boxoffice.db.base import Base, TimestampMixin


class ServiceCharge(Base, TimestampMixin):
    __tablename__ = "service_charges"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    charge_type = Column(String(20), nullable=False, default="FIXED")  # FIXED, PERCENTAGE
    value = Column(Numeric(10, 2), nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<ServiceCharge(id={self.id}, name={self.name}, {self.charge_type}={self.value})>"
