"""
Checkout, order reads and ticket check-in.
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.db.session import get_db
from boxoffice.schemas.order import (
    CheckInRequest,
    CheckInResponse,
    OrderCreate,
    OrderResponse,
    QuoteRequest,
    QuoteResponse,
    TicketResponse,
    TicketVerifyRequest,
    TicketVerifyResponse,
)
from boxoffice.services import order_service
from boxoffice.services.interfaces.notifier import Notifier
from boxoffice.services.interfaces.payment_gateway import PaymentGateway
from boxoffice.services.notification_service import build_order_notification, dispatch_order_confirmation
from boxoffice.services.strategy_factory import get_notifier, get_payment_gateway

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("/", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order_endpoint(
    order_data: OrderCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Finalize a sale.

    Seats are re-checked and sold in one versioned write; if any seat is
    taken the whole order fails with 409 and the conflicting seat ids.
    The confirmation is sent after the response and never fails the order.
    """
    order, event = await order_service.create_order(db, order_data, gateway)
    background_tasks.add_task(dispatch_order_confirmation, notifier, build_order_notification(order, event))
    return order


@router.post("/quote", response_model=QuoteResponse)
async def quote_endpoint(
    body: QuoteRequest,
    db: AsyncSession = Depends(get_db),
):
    """Price a cart with discount and service charges. Writes nothing."""
    return await order_service.quote_order(db, body)


@router.get("/", response_model=list[OrderResponse])
async def list_orders_endpoint(
    event_id: Optional[int] = Query(None),
    customer_email: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await order_service.list_orders(db, event_id=event_id, customer_email=customer_email)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order_endpoint(
    order_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await order_service.get_order(db, order_id)


@router.post("/tickets/verify", response_model=TicketVerifyResponse)
async def verify_ticket_endpoint(
    body: TicketVerifyRequest,
    db: AsyncSession = Depends(get_db),
):
    ticket, order = await order_service.verify_ticket(db, body.qr_code)
    return TicketVerifyResponse(
        ticket=TicketResponse.model_validate(ticket),
        order=OrderResponse.model_validate(order),
    )


@router.post("/tickets/check-in", response_model=CheckInResponse)
async def check_in_endpoint(
    body: CheckInRequest,
    db: AsyncSession = Depends(get_db),
):
    ticket = await order_service.check_in_ticket(db, body.ticket_id, body.checked_in)
    return CheckInResponse(ticket=TicketResponse.model_validate(ticket))
