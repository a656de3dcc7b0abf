"""
StripBooth Backend — Raffle Schemas
====================================
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class RaffleEntryResponse(BaseModel):
    id: uuid.UUID
    order_id: uuid.UUID
    customer_name: str
    grade: Optional[str] = None
    section: Optional[str] = None
    raffle_number: int
    is_winner: bool
    won_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class RaffleWinnerResponse(BaseModel):
    id: uuid.UUID
    entry_id: uuid.UUID
    order_id: uuid.UUID
    customer_name: str
    grade: Optional[str] = None
    section: Optional[str] = None
    won_at: datetime
    prize_details: Optional[str] = None

    model_config = {"from_attributes": True}


class RaffleDrawResponse(BaseModel):
    """
    The drawn ticket. The client spins its animation toward `entry`;
    the winner is already persisted when this is returned.
    """
    winner: RaffleWinnerResponse
    entry: RaffleEntryResponse
    remaining: int = Field(description="Entries still eligible after this draw")


class RaffleEntryBulkRequest(BaseModel):
    entries: List[Dict[str, Any]] = Field(default_factory=list)


class DrawRequest(BaseModel):
    prize_details: Optional[str] = None
