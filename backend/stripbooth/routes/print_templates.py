"""
StripBooth Backend — Print Template Routes
===========================================

What:  Print sheets: listing for the Templated/To-Print screens, manual
       creation, patches, explicit allocation and the two operator
       transitions (download, print) with their order cascades.

Static paths (/count, /allocate) are declared before /{template_id}.
"""

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from stripbooth.database import get_db_session
from stripbooth.schemas.common import CountResponse, ErrorResponse
from stripbooth.schemas.print_template import (
    AllocateRequest,
    DownloadRequest,
    PrintTemplateResponse,
    TemplateSlotResponse,
    TransitionResponse,
)
from stripbooth.services.payloads import parse_list
from stripbooth.services.print_template_service import print_template_service
from stripbooth.services.template_lifecycle import template_lifecycle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Print Templates"])

_TRANSITION_ERRORS = {
    404: {"description": "Print template not found", "model": ErrorResponse},
    409: {"description": "Transition not allowed from the current status", "model": ErrorResponse},
}


@router.get("/print-templates", response_model=list[PrintTemplateResponse])
async def list_print_templates(
    response: Response,
    status: Optional[str] = Query(default=None, description="Case-insensitive; unknown values match nothing"),
    statuses: Optional[str] = Query(default=None, description="Comma-separated statuses"),
    order_by: Optional[str] = Query(default=None, alias="orderBy"),
    order_dir: Optional[str] = Query(default=None, alias="orderDir"),
    db: AsyncSession = Depends(get_db_session),
) -> List[PrintTemplateResponse]:
    templates = await print_template_service.list_templates(
        db, status, parse_list(statuses), order_by, order_dir
    )
    response.headers["X-Total-Count"] = str(len(templates))
    return templates


@router.get("/print-templates/count", response_model=CountResponse)
async def count_print_templates(
    status: Optional[str] = Query(default=None),
    statuses: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> CountResponse:
    count = await print_template_service.count_templates(db, status, parse_list(statuses))
    return CountResponse(count=count)


@router.post("/print-templates", status_code=201, response_model=PrintTemplateResponse)
async def create_print_template(
    payload: Optional[Dict[str, Any]] = Body(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> PrintTemplateResponse:
    return await print_template_service.create_template(db, payload or {})


@router.post(
    "/print-templates/allocate",
    response_model=List[TemplateSlotResponse],
    summary="Place an order's photo strip into print-template slots",
)
async def allocate(
    data: AllocateRequest,
    db: AsyncSession = Depends(get_db_session),
) -> List[TemplateSlotResponse]:
    return await print_template_service.allocate(db, data)


@router.patch(
    "/print-templates/{template_id}",
    response_model=PrintTemplateResponse,
    responses=_TRANSITION_ERRORS,
)
async def update_print_template(
    template_id: UUID,
    payload: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db_session),
) -> PrintTemplateResponse:
    return await print_template_service.update_template(db, template_id, payload)


@router.post(
    "/print-templates/{template_id}/download",
    response_model=TransitionResponse,
    responses=_TRANSITION_ERRORS,
    summary="Mark a complete sheet downloaded; its orders move to to_print",
)
async def download_print_template(
    template_id: UUID,
    data: Optional[DownloadRequest] = None,
    db: AsyncSession = Depends(get_db_session),
) -> TransitionResponse:
    final_image_url = data.final_image_url if data else None
    return await template_lifecycle.mark_downloaded(db, template_id, final_image_url)


@router.post(
    "/print-templates/{template_id}/print",
    response_model=TransitionResponse,
    responses=_TRANSITION_ERRORS,
    summary="Confirm a sheet printed; fully printed orders are packed",
)
async def print_print_template(
    template_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> TransitionResponse:
    return await template_lifecycle.mark_printed(db, template_id)
