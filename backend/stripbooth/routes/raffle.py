"""
StripBooth Backend — Raffle Routes
===================================
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from stripbooth.database import get_db_session
from stripbooth.schemas.common import ErrorResponse
from stripbooth.schemas.raffle import (
    DrawRequest,
    RaffleDrawResponse,
    RaffleEntryBulkRequest,
    RaffleEntryResponse,
    RaffleWinnerResponse,
)
from stripbooth.services.raffle_service import raffle_service

router = APIRouter(prefix="/api", tags=["Raffle"])


@router.get("/raffle-entries", response_model=List[RaffleEntryResponse])
async def list_entries(
    response: Response,
    is_winner: Optional[bool] = Query(default=None, alias="isWinner"),
    order_by: Optional[str] = Query(default=None, alias="orderBy"),
    order_dir: Optional[str] = Query(default=None, alias="orderDir"),
    db: AsyncSession = Depends(get_db_session),
) -> List[RaffleEntryResponse]:
    entries = await raffle_service.list_entries(db, is_winner, order_by, order_dir)
    response.headers["X-Total-Count"] = str(len(entries))
    return entries


@router.post("/raffle-entries/bulk", status_code=201, response_model=List[RaffleEntryResponse])
async def bulk_create_entries(
    data: RaffleEntryBulkRequest,
    db: AsyncSession = Depends(get_db_session),
) -> List[RaffleEntryResponse]:
    return await raffle_service.bulk_create_entries(db, data.entries)


@router.post(
    "/raffle/draw",
    response_model=RaffleDrawResponse,
    responses={409: {"description": "No entries left to draw", "model": ErrorResponse}},
    summary="Draw one winner among un-drawn entries",
)
async def draw(
    data: Optional[DrawRequest] = None,
    db: AsyncSession = Depends(get_db_session),
) -> RaffleDrawResponse:
    return await raffle_service.draw(db, data.prize_details if data else None)


@router.get("/raffle-winners", response_model=List[RaffleWinnerResponse])
async def list_winners(db: AsyncSession = Depends(get_db_session)) -> List[RaffleWinnerResponse]:
    return await raffle_service.list_winners(db)
