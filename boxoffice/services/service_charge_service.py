"""
Service charge management.

Active charges are added to every quote: FIXED values as an amount, PERCENTAGE
values against the discounted subtotal (see pricing.service_fee_for).
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.exceptions import ServiceChargeNotFoundError
from boxoffice.core.logging import get_logger
from boxoffice.models.service_charge import ServiceCharge
from boxoffice.schemas.service_charge import ServiceChargeCreate, ServiceChargeUpdate

logger = get_logger(__name__)


async def create_charge(db: AsyncSession, data: ServiceChargeCreate) -> ServiceCharge:
    charge = ServiceCharge(**data.model_dump())
    db.add(charge)
    await db.flush()

    logger.info("service_charge_created", charge_id=charge.id, charge_type=charge.charge_type, value=charge.value)
    return charge


async def get_charge(db: AsyncSession, charge_id: int) -> ServiceCharge:
    charge = await db.get(ServiceCharge, charge_id)
    if charge is None:
        raise ServiceChargeNotFoundError(charge_id)
    return charge


async def list_charges(db: AsyncSession, active: Optional[bool] = None) -> list[ServiceCharge]:
    query = select(ServiceCharge)
    if active is not None:
        query = query.where(ServiceCharge.active.is_(active))
    result = await db.execute(query.order_by(ServiceCharge.id))
    return list(result.scalars().all())


async def update_charge(db: AsyncSession, charge_id: int, data: ServiceChargeUpdate) -> ServiceCharge:
    charge = await get_charge(db, charge_id)
    changes = data.model_dump(exclude_unset=True)
    for key, value in changes.items():
        setattr(charge, key, value)
    await db.flush()

    logger.info("service_charge_updated", charge_id=charge.id, fields=sorted(changes))
    return charge


async def delete_charge(db: AsyncSession, charge_id: int) -> None:
    charge = await get_charge(db, charge_id)
    await db.delete(charge)
    await db.flush()
    logger.info("service_charge_deleted", charge_id=charge_id, name=charge.name)
