"""
StripBooth Backend — Order Schemas
===================================

What:  Request/response contracts for the cashier's order endpoints.
How:   Intake is a typed model (pricing is derived server-side); patches
       arrive as plain dicts and are allow-listed in OrderService.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from stripbooth.schemas.project import ProjectResponse
from stripbooth.schemas.raffle import RaffleEntryResponse


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class OrderResponse(BaseModel):
    id: uuid.UUID
    customer_name: str
    grade: str
    section: str
    package_type: int
    design_type: str
    standard_design_id: Optional[uuid.UUID] = None

    included_raffles: int
    additional_raffles: int
    total_raffles: int
    raffle_cost: float
    package_base_cost: float
    total_amount: float
    payment_method: str
    gcash_reference: Optional[str] = None

    order_status: str
    photo_status: str

    order_date: datetime
    photo_uploaded_date: Optional[datetime] = None
    project_completed_date: Optional[datetime] = None
    packed_date: Optional[datetime] = None
    delivery_date: Optional[datetime] = None
    delivery_recipient: Optional[str] = None
    delivery_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrderCreateResponse(BaseModel):
    """
    Everything intake creates in one transaction: the order, its editing
    project and its numbered raffle tickets.
    """
    order: OrderResponse
    project: ProjectResponse
    raffle_entries: List[RaffleEntryResponse]


class BulkUpdateResponse(BaseModel):
    updated: int = Field(description="Number of orders the UPDATE touched")


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class OrderCreate(BaseModel):
    """
    New order from the cashier screen.

    Pricing fields are never accepted from the client:
        package_base_cost = 50 (2-strip) or 100 (4-strip)
        raffle_cost       = additional_raffles × raffle price
        total_amount      = package_base_cost + raffle_cost
    """
    customer_name: str = Field(min_length=1, max_length=200)
    grade: str = Field(default="", max_length=50)
    section: str = Field(default="", max_length=50)
    package_type: int = Field(description="2 or 4 photo-strip copies")
    design_type: str = Field(default="standard", description="standard or custom")
    standard_design_id: Optional[uuid.UUID] = None
    additional_raffles: int = Field(default=0, ge=0)
    payment_method: str = Field(default="cash", description="cash or gcash")
    gcash_reference: Optional[str] = Field(default=None, max_length=100)


class BulkOrderUpdate(BaseModel):
    ids: List[uuid.UUID] = Field(default_factory=list)
    patch: Dict[str, Any] = Field(default_factory=dict)


class DeliverRequest(BaseModel):
    recipient: Optional[str] = Field(default=None, max_length=200)
    notes: Optional[str] = None
