"""
StripBooth Backend — Order Routes
==================================

What:  Cashier order endpoints: intake, queue listing, patches, the bulk
       status update used by the To-Print screen, and delivery hand-off.
"""

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from stripbooth.database import get_db_session
from stripbooth.schemas.common import ErrorResponse
from stripbooth.schemas.order import (
    BulkOrderUpdate,
    BulkUpdateResponse,
    DeliverRequest,
    OrderCreate,
    OrderCreateResponse,
    OrderResponse,
)
from stripbooth.services.order_service import order_service
from stripbooth.services.payloads import parse_list

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Orders"])


@router.get("/orders", response_model=list[OrderResponse], summary="List orders")
async def list_orders(
    response: Response,
    ids: Optional[str] = Query(default=None, description="Comma-separated order ids"),
    status: Optional[str] = Query(default=None),
    statuses: Optional[str] = Query(default=None, description="Comma-separated order statuses"),
    order_by: Optional[str] = Query(default=None, alias="orderBy"),
    order_dir: Optional[str] = Query(default=None, alias="orderDir"),
    db: AsyncSession = Depends(get_db_session),
) -> list[OrderResponse]:
    orders = await order_service.list_orders(
        db,
        ids=parse_list(ids),
        status=status,
        statuses=parse_list(statuses),
        order_by=order_by,
        order_dir=order_dir,
    )
    response.headers["X-Total-Count"] = str(len(orders))
    return orders


@router.post(
    "/orders",
    status_code=201,
    response_model=OrderCreateResponse,
    responses={400: {"description": "Invalid order", "model": ErrorResponse}},
    summary="Create an order with its project and raffle entries",
)
async def create_order(
    data: OrderCreate,
    db: AsyncSession = Depends(get_db_session),
) -> OrderCreateResponse:
    return await order_service.create_order(db, data)


@router.post("/orders/bulk-update", response_model=BulkUpdateResponse, summary="Patch many orders at once")
async def bulk_update_orders(
    data: BulkOrderUpdate,
    db: AsyncSession = Depends(get_db_session),
) -> BulkUpdateResponse:
    return await order_service.bulk_update_orders(db, data.ids, data.patch)


@router.get(
    "/orders/{order_id}",
    response_model=OrderResponse,
    responses={404: {"description": "Order not found", "model": ErrorResponse}},
)
async def get_order(order_id: UUID, db: AsyncSession = Depends(get_db_session)) -> OrderResponse:
    return OrderResponse.model_validate(await order_service.get_order(db, order_id))


@router.patch("/orders/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: UUID,
    payload: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db_session),
) -> OrderResponse:
    return await order_service.update_order(db, order_id, payload)


@router.post(
    "/orders/{order_id}/deliver",
    response_model=OrderResponse,
    responses={409: {"description": "Order is not packed", "model": ErrorResponse}},
)
async def deliver_order(
    order_id: UUID,
    data: Optional[DeliverRequest] = None,
    db: AsyncSession = Depends(get_db_session),
) -> OrderResponse:
    data = data or DeliverRequest()
    return await order_service.mark_delivered(db, order_id, data.recipient, data.notes)
