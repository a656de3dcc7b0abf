"""
StripBooth Backend — Design Template Routes
============================================

What:  The standard frame catalog (`templates` table) offered at intake.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stripbooth.database import get_db_session
from stripbooth.schemas.print_template import DesignTemplateResponse
from stripbooth.services.print_template_service import print_template_service

router = APIRouter(prefix="/api", tags=["Design Templates"])


@router.get("/templates", response_model=list[DesignTemplateResponse])
async def list_design_templates(
    order_by: Optional[str] = Query(default=None, alias="orderBy"),
    order_dir: Optional[str] = Query(default=None, alias="orderDir"),
    db: AsyncSession = Depends(get_db_session),
) -> list[DesignTemplateResponse]:
    return await print_template_service.list_design_templates(db, order_by, order_dir)


@router.post("/templates", status_code=201, response_model=DesignTemplateResponse)
async def create_design_template(
    payload: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db_session),
) -> DesignTemplateResponse:
    return await print_template_service.create_design_template(db, payload)
