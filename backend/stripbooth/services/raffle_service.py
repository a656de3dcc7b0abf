"""
StripBooth Backend — Raffle Draw Engine
========================================

What:  Raffle ticket issuance, listing, and the prize draw.
How:   draw() picks uniformly among un-drawn entries, then claims the pick
       with a guarded UPDATE:

           UPDATE raffle_entries SET is_winner = true, won_at = :now
           WHERE id = :id AND is_winner = false

       Exactly one row must change. Zero rows means another request drew
       the same ticket first; the draw is retried with tenacity (bounded
       attempts, exponential backoff with jitter) against a fresh pool.
       The RaffleWinner snapshot is inserted in the same transaction.
Who:   POST /api/raffle/draw (the cashier's wheel animates toward the
       returned entry; the winner is already recorded).

Invariant: an entry is drawn at most once; K draws from N ≥ K entries
leave exactly K winners with K distinct entry_ids.
"""

import logging
import random
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from stripbooth.config import settings
from stripbooth.database import utcnow
from stripbooth.exceptions import DatabaseError, RaffleExhaustedError, StripBoothError, ValidationError
from stripbooth.models.order import Order
from stripbooth.models.raffle import RaffleEntry, RaffleWinner
from stripbooth.schemas.raffle import (
    RaffleDrawResponse,
    RaffleEntryResponse,
    RaffleWinnerResponse,
)
from stripbooth.services.payloads import (
    RAFFLE_ENTRY_COLUMNS,
    parse_optional_int,
    parse_uuid,
    resolve_ordering,
    sanitize_payload,
)

logger = logging.getLogger(__name__)


class DrawConflictError(StripBoothError):
    """The picked entry was claimed by a concurrent draw; retried internally."""

    def __init__(self, entry_id: uuid.UUID):
        super().__init__(
            message="Raffle entry was drawn concurrently",
            context={"entry_id": str(entry_id)},
        )


class RaffleService:
    """
    Raffle tickets and the draw.

    The random source is injectable so tests can fix the sequence; the
    default is the OS entropy pool.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.SystemRandom()

    # ── Entries ───────────────────────────────────────────────────────────

    async def create_entries_for_order(self, db: AsyncSession, order: Order) -> List[RaffleEntry]:
        """One ticket per raffle the order paid for, numbered 1..total_raffles."""
        entries = [
            RaffleEntry(
                order_id=order.id,
                customer_name=order.customer_name,
                grade=order.grade,
                section=order.section,
                raffle_number=number,
                created_at=utcnow(),
            )
            for number in range(1, order.total_raffles + 1)
        ]
        db.add_all(entries)
        await db.flush()
        return entries

    async def bulk_create_entries(
        self, db: AsyncSession, entries: List[Dict[str, Any]]
    ) -> List[RaffleEntryResponse]:
        if not entries:
            return []

        rows = []
        for index, raw in enumerate(entries):
            clean = sanitize_payload(raw, RAFFLE_ENTRY_COLUMNS)
            raffle_number = parse_optional_int(clean.get("raffle_number"))
            if raffle_number is None or raffle_number < 1:
                raise ValidationError(
                    message=f"Invalid raffle entry at index {index}: raffle_number must be a positive integer",
                    field="raffle_number",
                    context={"index": index},
                )
            if not clean.get("customer_name"):
                raise ValidationError(
                    message=f"Invalid raffle entry at index {index}: customer_name is required",
                    field="customer_name",
                    context={"index": index},
                )
            rows.append(
                RaffleEntry(
                    order_id=parse_uuid(clean.get("order_id"), "order_id"),
                    customer_name=str(clean["customer_name"]),
                    grade=clean.get("grade"),
                    section=clean.get("section"),
                    raffle_number=raffle_number,
                    created_at=utcnow(),
                )
            )

        db.add_all(rows)
        try:
            await db.flush()
        except IntegrityError as e:
            logger.warning("Rejected raffle entry batch: %s", str(e.orig))
            raise ValidationError(
                message="Raffle entries must reference existing orders and use unique numbers per order",
                context={"error_type": type(e).__name__},
            )
        return [RaffleEntryResponse.model_validate(row) for row in rows]

    async def list_entries(
        self,
        db: AsyncSession,
        is_winner: Optional[bool] = None,
        order_by: Optional[str] = None,
        order_dir: Optional[str] = None,
    ) -> List[RaffleEntryResponse]:
        query = select(RaffleEntry)
        if is_winner is not None:
            query = query.where(RaffleEntry.is_winner.is_(is_winner))
        query = query.order_by(
            resolve_ordering(RaffleEntry, "raffle_entries", order_by, order_dir, "created_at", "asc"),
            RaffleEntry.raffle_number,
        )
        result = await db.execute(query)
        return [RaffleEntryResponse.model_validate(row) for row in result.scalars().all()]

    async def list_winners(self, db: AsyncSession) -> List[RaffleWinnerResponse]:
        result = await db.execute(select(RaffleWinner).order_by(RaffleWinner.won_at.desc()))
        return [RaffleWinnerResponse.model_validate(row) for row in result.scalars().all()]

    # ── Draw ──────────────────────────────────────────────────────────────

    async def draw(self, db: AsyncSession, prize_details: Optional[str] = None) -> RaffleDrawResponse:
        """
        Draws one winner among entries with is_winner = false.

        Raises:
            RaffleExhaustedError: no un-drawn entries remain
            DatabaseError: the store failed, or every attempt lost a race
        """
        try:
            return await self._draw_once(db, prize_details)
        except DrawConflictError as e:
            logger.error("Raffle draw gave up after %d attempts", settings.raffle_draw_attempts)
            raise DatabaseError(
                message="The raffle draw could not be completed. Please try again.",
                context=e.context,
            )
        except SQLAlchemyError as e:
            logger.error("Raffle draw failed: %s", str(e))
            raise DatabaseError(context={"error_type": type(e).__name__})

    @retry(
        retry=retry_if_exception_type(DrawConflictError),
        stop=stop_after_attempt(settings.raffle_draw_attempts),
        wait=wait_exponential_jitter(multiplier=0.05, max=1.0),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _draw_once(self, db: AsyncSession, prize_details: Optional[str]) -> RaffleDrawResponse:
        result = await db.execute(
            select(RaffleEntry.id)
            .where(RaffleEntry.is_winner.is_(False))
            .order_by(RaffleEntry.created_at, RaffleEntry.raffle_number, RaffleEntry.id)
        )
        candidates = list(result.scalars().all())
        if not candidates:
            raise RaffleExhaustedError()

        entry_id = self._rng.choice(candidates)
        now = utcnow()

        claimed = await db.execute(
            update(RaffleEntry)
            .where(RaffleEntry.id == entry_id, RaffleEntry.is_winner.is_(False))
            .values(is_winner=True, won_at=now)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            raise DrawConflictError(entry_id)

        entry = await db.get(RaffleEntry, entry_id, populate_existing=True)
        winner = RaffleWinner(
            entry_id=entry.id,
            order_id=entry.order_id,
            customer_name=entry.customer_name,
            grade=entry.grade,
            section=entry.section,
            won_at=now,
            prize_details=prize_details,
        )
        db.add(winner)
        await db.flush()

        remaining = await db.scalar(
            select(func.count(RaffleEntry.id)).where(RaffleEntry.is_winner.is_(False))
        )
        logger.info(
            "Raffle winner: %s (order %s, ticket #%d); %d entries left",
            entry.customer_name,
            entry.order_id,
            entry.raffle_number,
            remaining,
        )
        return RaffleDrawResponse(
            winner=RaffleWinnerResponse.model_validate(winner),
            entry=RaffleEntryResponse.model_validate(entry),
            remaining=remaining or 0,
        )


# ── Singleton Instance ────────────────────────────────────────────────────
raffle_service = RaffleService()
