"""
StripBooth Backend — Template Allocator
========================================

What:  Places a finished photo strip into print-template slots for an order.
How:   Two passes, both inside the caller's transaction:

       1. reconcile_existing_slots()
          The order's slots on active (filling/complete) templates are the
          upsert target. Up to `slots_needed` of them are rewritten in place
          with the new photo/identity; surplus slots (package downgraded
          from 4 to 2, historical duplicates) are deleted. Touched templates
          get their occupancy recomputed.

       2. Allocation loop for the shortfall
          ┌─────────────────────┐   ┌──────────────────────┐   ┌───────────┐
          │ fetch-or-create the │──▶│ free positions from a │──▶│ fill the  │
          │ newest filling sheet│   │ fresh slot query      │   │ lowest N  │
          └─────────────────────┘   └──────────────────────┘   └───────────┘
          A sheet with no free position (stale status) or more occupied
          positions than total_slots (corrupt) is forced to `complete` and
          the loop moves on to a new sheet.

Who:   ProjectService.save_edit and POST /api/print-templates/allocate.

Occupancy rule (holds after every call):
    status == complete  ⇔  live slot count >= total_slots
    completed_at is set on the first transition to complete, cleared otherwise.
Only filling/complete templates are recomputed; downloaded/printed sheets
have left the packing stage and are never touched here.
"""

import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stripbooth.config import settings
from stripbooth.database import utcnow
from stripbooth.exceptions import DatabaseError
from stripbooth.lifecycle import ACTIVE_TEMPLATE_STATUSES, TemplateStatus, occupancy_status
from stripbooth.models.print_template import PrintTemplate, TemplateSlot
from stripbooth.services.template_numbering import next_template_number

logger = logging.getLogger(__name__)

_ACTIVE_STATUS_VALUES = [status.value for status in ACTIVE_TEMPLATE_STATUSES]


def slots_needed(package_type: Optional[int]) -> int:
    """A 4-strip package takes four slots; anything else takes two."""
    return 4 if package_type == 4 else 2


class TemplateAllocator:
    """Packs photo strips into fixed-capacity print templates."""

    def __init__(self, total_slots: Optional[int] = None):
        self.total_slots = total_slots or settings.template_total_slots

    async def allocate(
        self,
        db: AsyncSession,
        order_id: uuid.UUID,
        project_id: Optional[uuid.UUID],
        photo_url: str,
        student_name: str,
        grade: Optional[str],
        section: Optional[str],
        package_type: Optional[int],
    ) -> List[TemplateSlot]:
        """
        Ensures the order occupies exactly slots_needed(package_type) slots,
        all carrying `photo_url`. Calling it again with the same arguments
        rewrites the same slots instead of growing the order's footprint.

        Returns:
            The order's slots after the call, reused ones first.

        Raises:
            DatabaseError: any store failure; the caller decides whether it
                           is fatal (the editor save treats it as partial).
        """
        needed = slots_needed(package_type)
        content = {
            "project_id": project_id,
            "photo_url": photo_url,
            "student_name": student_name,
            "grade": grade,
            "section": section,
            "package_type": package_type,
        }

        try:
            assigned = await self.reconcile_existing_slots(db, order_id, needed, content)
            remaining = needed - len(assigned)

            while remaining > 0:
                template = await self._get_or_create_filling_template(db)
                occupied = await self._occupied_positions(db, template.id)
                free = [
                    position
                    for position in range(1, template.total_slots + 1)
                    if position not in occupied
                ]

                if not free or len(occupied) > template.total_slots:
                    logger.warning(
                        "Template %s reports status '%s' with %d/%d occupied; forcing complete",
                        template.template_number,
                        template.status,
                        len(occupied),
                        template.total_slots,
                    )
                    self._apply_occupancy(template, len(occupied), force_complete=True)
                    await db.flush()
                    continue

                for position in free[:remaining]:
                    slot = TemplateSlot(
                        template_id=template.id,
                        position=position,
                        order_id=order_id,
                        inserted_at=utcnow(),
                        **content,
                    )
                    db.add(slot)
                    assigned.append(slot)

                filled = min(remaining, len(free))
                await db.flush()
                await self.recompute_occupancy(db, [template.id])
                remaining -= filled

                logger.info(
                    "Order %s: placed %d slot(s) on %s (%d remaining)",
                    order_id,
                    filled,
                    template.template_number,
                    remaining,
                )

            return assigned

        except SQLAlchemyError as e:
            logger.error("Template allocation failed for order %s: %s", order_id, str(e))
            raise DatabaseError(
                message="Could not place the photo strip into a print template.",
                context={"order_id": str(order_id), "error_type": type(e).__name__},
            )

    async def reconcile_existing_slots(
        self,
        db: AsyncSession,
        order_id: uuid.UUID,
        needed: int,
        content: Dict[str, Any],
    ) -> List[TemplateSlot]:
        """
        Upserts the order's slot set on active templates.

        Slots are ranked by template age then position; the first `needed`
        are rewritten with `content`, the rest are deleted.
        """
        result = await db.execute(
            select(TemplateSlot)
            .join(PrintTemplate, PrintTemplate.id == TemplateSlot.template_id)
            .where(
                TemplateSlot.order_id == order_id,
                PrintTemplate.status.in_(_ACTIVE_STATUS_VALUES),
            )
            .order_by(
                PrintTemplate.created_at,
                PrintTemplate.template_number,
                TemplateSlot.position,
            )
        )

        unique: Dict[tuple, TemplateSlot] = {}
        for slot in result.scalars():
            unique.setdefault((slot.template_id, slot.position), slot)
        existing = list(unique.values())
        if not existing:
            return []

        touched = {slot.template_id for slot in existing}
        keep = existing[:needed]
        surplus = existing[needed:]
        now = utcnow()

        for slot in keep:
            for field, value in content.items():
                setattr(slot, field, value)
            slot.inserted_at = now

        for slot in surplus:
            await db.delete(slot)

        await db.flush()
        await self.recompute_occupancy(db, touched)

        if surplus:
            logger.info(
                "Order %s: released %d surplus slot(s), kept %d",
                order_id,
                len(surplus),
                len(keep),
            )
        return keep

    async def recompute_occupancy(
        self, db: AsyncSession, template_ids: Iterable[uuid.UUID]
    ) -> None:
        """Recounts live slots and re-derives status for active templates."""
        ids: Set[uuid.UUID] = set(template_ids)
        if not ids:
            return

        result = await db.execute(
            select(PrintTemplate)
            .where(PrintTemplate.id.in_(ids))
            .execution_options(populate_existing=True)
        )
        templates = list(result.scalars().all())

        counts_result = await db.execute(
            select(TemplateSlot.template_id, func.count(TemplateSlot.id))
            .where(TemplateSlot.template_id.in_(ids))
            .group_by(TemplateSlot.template_id)
        )
        counts = {template_id: count for template_id, count in counts_result.all()}

        for template in templates:
            if template.status not in _ACTIVE_STATUS_VALUES:
                continue
            self._apply_occupancy(template, counts.get(template.id, 0))

        await db.flush()

    def _apply_occupancy(
        self, template: PrintTemplate, occupied: int, force_complete: bool = False
    ) -> None:
        target = TemplateStatus.COMPLETE if force_complete else occupancy_status(
            occupied, template.total_slots
        )
        previous = template.status
        template.slots_used = occupied

        if target == TemplateStatus.COMPLETE:
            if previous != TemplateStatus.COMPLETE.value or template.completed_at is None:
                template.completed_at = utcnow()
        else:
            template.completed_at = None
        template.status = target.value

        if previous != target.value:
            logger.info(
                "Template %s: %s → %s (%d/%d)",
                template.template_number,
                previous,
                target.value,
                occupied,
                template.total_slots,
            )

    async def _get_or_create_filling_template(self, db: AsyncSession) -> PrintTemplate:
        result = await db.execute(
            select(PrintTemplate)
            .where(PrintTemplate.status == TemplateStatus.FILLING.value)
            .order_by(PrintTemplate.created_at.desc(), PrintTemplate.template_number.desc())
            .limit(1)
        )
        template = result.scalar_one_or_none()
        if template is not None:
            return template

        template = PrintTemplate(
            template_number=await next_template_number(db),
            status=TemplateStatus.FILLING.value,
            slots_used=0,
            total_slots=self.total_slots,
            created_at=utcnow(),
        )
        db.add(template)
        await db.flush()
        logger.info("Created print template %s", template.template_number)
        return template

    async def _occupied_positions(self, db: AsyncSession, template_id: uuid.UUID) -> Set[int]:
        result = await db.execute(
            select(TemplateSlot.position).where(TemplateSlot.template_id == template_id)
        )
        return set(result.scalars().all())


# ── Singleton Instance ────────────────────────────────────────────────────
template_allocator = TemplateAllocator()
