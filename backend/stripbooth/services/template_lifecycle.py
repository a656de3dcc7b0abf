"""
StripBooth Backend — Template Lifecycle State Machine
======================================================

What:  Operator-driven transitions of a print template and the order
       status cascades they trigger.
How:   Each transition is validated against lifecycle.OPERATOR_TRANSITIONS,
       stamps its timestamp, then applies ONE set-based UPDATE to orders so
       an interrupted request never leaves a half-applied cascade.

Transitions:
    complete ──download──▶ downloaded
        every order with a slot on the sheet → order_status = to_print
    downloaded ──print──▶ printed
        every order on the sheet whose printed slot count (across all
        printed sheets, capped at package_type) reaches package_type
        → order_status = packed, packed_date = now
        orders split across a still-unprinted sheet keep their status

filling ↔ complete belongs to TemplateAllocator and is rejected here.
Orders already packed or delivered are never moved backwards by a cascade.
"""

import logging
import uuid
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stripbooth.database import utcnow
from stripbooth.exceptions import DatabaseError, InvalidTransitionError, NotFoundError
from stripbooth.lifecycle import (
    OrderStatus,
    TemplateStatus,
    ensure_operator_transition,
    parse_template_status,
)
from stripbooth.models.order import Order
from stripbooth.models.print_template import PrintTemplate, TemplateSlot
from stripbooth.schemas.print_template import (
    PrintedSummaryItem,
    PrintTemplateResponse,
    TransitionResponse,
)

logger = logging.getLogger(__name__)

# Cascades never regress these.
_FINAL_ORDER_STATUSES = [OrderStatus.PACKED.value, OrderStatus.DELIVERED.value]


class TemplateLifecycle:
    """Operator transitions: download and print confirmation."""

    async def mark_downloaded(
        self,
        db: AsyncSession,
        template_id: uuid.UUID,
        final_image_url: Optional[str] = None,
    ) -> TransitionResponse:
        """
        complete → downloaded, then cascade the sheet's orders to `to_print`.

        Raises:
            NotFoundError: unknown template
            InvalidTransitionError: template is not `complete`
        """
        template = await self._get_for_update(db, template_id)
        ensure_operator_transition(template.status, TemplateStatus.DOWNLOADED)

        now = utcnow()
        template.status = TemplateStatus.DOWNLOADED.value
        template.downloaded_at = now
        if final_image_url:
            template.final_image_url = final_image_url

        try:
            order_ids = await self._order_ids_on_template(db, template.id)
            updated = await self._bulk_set_order_status(
                db, order_ids, {"order_status": OrderStatus.TO_PRINT.value, "updated_at": now}
            )
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Download cascade failed for template %s: %s", template.template_number, str(e))
            raise DatabaseError(context={"template_id": str(template_id), "error_type": type(e).__name__})

        logger.info(
            "Template %s downloaded; %d order(s) moved to to_print",
            template.template_number,
            updated,
        )
        return TransitionResponse(
            template=PrintTemplateResponse.model_validate(template),
            orders_updated=updated,
            order_ids=order_ids,
        )

    async def mark_printed(self, db: AsyncSession, template_id: uuid.UUID) -> TransitionResponse:
        """
        downloaded → printed, then pack every order on the sheet whose
        printed slots now cover its whole package.
        """
        template = await self._get_for_update(db, template_id)
        ensure_operator_transition(template.status, TemplateStatus.PRINTED)

        now = utcnow()
        template.status = TemplateStatus.PRINTED.value
        template.printed_at = now

        try:
            await db.flush()
            order_ids = await self._order_ids_on_template(db, template.id)
            counts = await self._printed_counts(db, order_ids)
            ready = [
                order_id
                for order_id, (printed_count, package_type, _) in counts.items()
                if printed_count >= package_type
            ]
            updated = await self._bulk_set_order_status(
                db,
                ready,
                {
                    "order_status": OrderStatus.PACKED.value,
                    "packed_date": now,
                    "updated_at": now,
                },
            )
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Print cascade failed for template %s: %s", template.template_number, str(e))
            raise DatabaseError(context={"template_id": str(template_id), "error_type": type(e).__name__})

        logger.info(
            "Template %s printed; %d of %d order(s) packed",
            template.template_number,
            updated,
            len(order_ids),
        )
        return TransitionResponse(
            template=PrintTemplateResponse.model_validate(template),
            orders_updated=updated,
            order_ids=ready,
        )

    async def apply_status(
        self, db: AsyncSession, template_id: uuid.UUID, status: str
    ) -> Optional[TransitionResponse]:
        """
        Routes a requested status (from a PATCH) to the matching transition.

        Returns None when the template already has that status.
        """
        target = parse_template_status(status)
        if target is None:
            return None

        template = await self._get_for_update(db, template_id)
        if template.status == target.value:
            return None

        if target == TemplateStatus.DOWNLOADED:
            return await self.mark_downloaded(db, template_id)
        if target == TemplateStatus.PRINTED:
            return await self.mark_printed(db, template_id)

        # filling/complete are derived from occupancy by the allocator
        raise InvalidTransitionError("print template", template.status, target.value)

    async def printed_summary(
        self, db: AsyncSession, order_ids: Iterable[uuid.UUID]
    ) -> List[PrintedSummaryItem]:
        """Per-order printed progress across every printed template."""
        ids = list(dict.fromkeys(order_ids))
        if not ids:
            return []

        try:
            counts = await self._printed_counts(db, ids)

            numbers_result = await db.execute(
                select(TemplateSlot.order_id, PrintTemplate.template_number)
                .join(PrintTemplate, PrintTemplate.id == TemplateSlot.template_id)
                .where(
                    PrintTemplate.status == TemplateStatus.PRINTED.value,
                    TemplateSlot.order_id.in_(ids),
                )
                .distinct()
                .order_by(TemplateSlot.order_id, PrintTemplate.template_number)
            )
        except SQLAlchemyError as e:
            logger.error("Printed summary query failed: %s", str(e))
            raise DatabaseError(context={"error_type": type(e).__name__})

        numbers: Dict[uuid.UUID, List[str]] = defaultdict(list)
        for order_id, template_number in numbers_result.all():
            numbers[order_id].append(template_number)

        return [
            PrintedSummaryItem(
                order_id=order_id,
                printed_count=printed_count,
                template_numbers=numbers.get(order_id, []),
                printed_at=printed_at,
            )
            for order_id, (printed_count, _, printed_at) in counts.items()
        ]

    # ── Internals ─────────────────────────────────────────────────────────

    async def _get_for_update(self, db: AsyncSession, template_id: uuid.UUID) -> PrintTemplate:
        result = await db.execute(
            select(PrintTemplate).where(PrintTemplate.id == template_id).with_for_update()
        )
        template = result.scalar_one_or_none()
        if template is None:
            raise NotFoundError(resource="print template", resource_id=str(template_id))
        return template

    async def _order_ids_on_template(
        self, db: AsyncSession, template_id: uuid.UUID
    ) -> List[uuid.UUID]:
        result = await db.execute(
            select(TemplateSlot.order_id)
            .where(TemplateSlot.template_id == template_id, TemplateSlot.order_id.is_not(None))
            .distinct()
        )
        return list(result.scalars().all())

    async def _printed_counts(self, db: AsyncSession, order_ids: List[uuid.UUID]) -> Dict:
        """
        order_id → (printed_count, package_type, last printed_at).

        printed_count = min(slots on printed sheets, package_type); orders
        without a package_type use the raw count.
        """
        if not order_ids:
            return {}

        slot_count = func.count(TemplateSlot.id)
        package = func.coalesce(func.max(Order.package_type), slot_count)
        capped = case((slot_count < package, slot_count), else_=package)

        result = await db.execute(
            select(
                TemplateSlot.order_id,
                capped.label("printed_count"),
                package.label("package_type"),
                func.max(PrintTemplate.printed_at).label("printed_at"),
            )
            .join(PrintTemplate, PrintTemplate.id == TemplateSlot.template_id)
            .outerjoin(Order, Order.id == TemplateSlot.order_id)
            .where(
                PrintTemplate.status == TemplateStatus.PRINTED.value,
                TemplateSlot.order_id.in_(order_ids),
            )
            .group_by(TemplateSlot.order_id)
        )
        return {
            row.order_id: (int(row.printed_count), int(row.package_type), row.printed_at)
            for row in result.all()
        }

    async def _bulk_set_order_status(
        self, db: AsyncSession, order_ids: List[uuid.UUID], values: Dict
    ) -> int:
        if not order_ids:
            return 0
        result = await db.execute(
            update(Order)
            .where(
                Order.id.in_(order_ids),
                Order.order_status.not_in(_FINAL_ORDER_STATUSES),
            )
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0


# ── Singleton Instance ────────────────────────────────────────────────────
template_lifecycle = TemplateLifecycle()
