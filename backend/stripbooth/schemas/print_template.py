"""
StripBooth Backend — Print Template & Slot Schemas
===================================================

What:  Contracts for print sheets, their slots, the allocator endpoint,
       lifecycle transitions and the per-order printed summary.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class PrintTemplateResponse(BaseModel):
    id: uuid.UUID
    template_number: str
    status: str
    slots_used: int
    total_slots: int
    final_image_url: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    downloaded_at: Optional[datetime] = None
    printed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TemplateSlotResponse(BaseModel):
    id: uuid.UUID
    template_id: uuid.UUID
    position: int
    order_id: Optional[uuid.UUID] = None
    project_id: Optional[uuid.UUID] = None
    photo_url: Optional[str] = None
    student_name: Optional[str] = None
    grade: Optional[str] = None
    section: Optional[str] = None
    package_type: Optional[int] = None
    inserted_at: datetime

    model_config = {"from_attributes": True}


class DesignTemplateResponse(BaseModel):
    id: uuid.UUID
    name: str
    preview_url: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class TransitionResponse(BaseModel):
    """Outcome of an operator transition, including the order cascade."""
    template: PrintTemplateResponse
    orders_updated: int = Field(description="Orders whose status the cascade changed")
    order_ids: List[uuid.UUID] = Field(default_factory=list)


class PrintedSummaryItem(BaseModel):
    """
    Printed progress of one order.

    printed_count is capped at the order's package_type so historical
    duplicate slot rows never overcount.
    """
    order_id: uuid.UUID
    printed_count: int
    template_numbers: List[str] = Field(default_factory=list)
    printed_at: Optional[datetime] = None


class SlotDeleteResponse(BaseModel):
    deleted: int
    template_ids: List[uuid.UUID] = Field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class AllocateRequest(BaseModel):
    order_id: uuid.UUID
    project_id: Optional[uuid.UUID] = None
    photo_url: str = Field(min_length=1)
    student_name: str = Field(min_length=1, max_length=200)
    grade: Optional[str] = None
    section: Optional[str] = None
    package_type: int = 2


class DownloadRequest(BaseModel):
    final_image_url: Optional[str] = Field(default=None, description="Exported print-ready sheet")


class SlotBulkRequest(BaseModel):
    # Raw dicts: each entry is validated and allow-listed by the service so
    # errors can name the offending index.
    slots: List[Dict[str, Any]] = Field(default_factory=list)
