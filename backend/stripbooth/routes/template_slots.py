"""
StripBooth Backend — Template Slot Routes
==========================================

What:  Direct slot access for the Templated screen: listing, explicit
       reassignment (bulk upsert / delete) and per-order printed progress.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from stripbooth.database import get_db_session
from stripbooth.exceptions import ValidationError
from stripbooth.schemas.common import ErrorResponse
from stripbooth.schemas.print_template import (
    PrintedSummaryItem,
    SlotBulkRequest,
    SlotDeleteResponse,
    TemplateSlotResponse,
)
from stripbooth.services.payloads import parse_list, parse_uuid_list
from stripbooth.services.print_template_service import print_template_service
from stripbooth.services.template_lifecycle import template_lifecycle

router = APIRouter(prefix="/api", tags=["Template Slots"])


@router.get("/template-slots", response_model=List[TemplateSlotResponse])
async def list_slots(
    response: Response,
    template_ids: Optional[str] = Query(default=None, alias="templateIds"),
    order_ids: Optional[str] = Query(default=None, alias="orderIds"),
    order_by: Optional[str] = Query(default=None, alias="orderBy"),
    order_dir: Optional[str] = Query(default=None, alias="orderDir"),
    db: AsyncSession = Depends(get_db_session),
) -> List[TemplateSlotResponse]:
    slots = await print_template_service.list_slots(
        db, parse_list(template_ids), parse_list(order_ids), order_by, order_dir
    )
    response.headers["X-Total-Count"] = str(len(slots))
    return slots


@router.get("/template-slots/printed-summary", response_model=List[PrintedSummaryItem])
async def printed_summary(
    order_ids: Optional[str] = Query(default=None, alias="orderIds"),
    db: AsyncSession = Depends(get_db_session),
) -> List[PrintedSummaryItem]:
    ids = parse_uuid_list(parse_list(order_ids), "orderIds")
    return await template_lifecycle.printed_summary(db, ids)


@router.post(
    "/template-slots/bulk",
    response_model=List[TemplateSlotResponse],
    responses={400: {"description": "Invalid slot payload", "model": ErrorResponse}},
)
async def bulk_upsert_slots(
    data: SlotBulkRequest,
    db: AsyncSession = Depends(get_db_session),
) -> List[TemplateSlotResponse]:
    return await print_template_service.bulk_upsert_slots(db, data.slots)


@router.delete("/template-slots", response_model=SlotDeleteResponse)
async def delete_slots(
    ids: Optional[str] = Query(default=None, description="Comma-separated slot ids"),
    db: AsyncSession = Depends(get_db_session),
) -> SlotDeleteResponse:
    slot_ids = parse_list(ids)
    if not slot_ids:
        raise ValidationError(message="ids is required", field="ids")
    return await print_template_service.delete_slots(db, slot_ids)
