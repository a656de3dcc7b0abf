"""
StripBooth Backend — Print Template, Slot & Design Template Service
====================================================================

What:  The operator-facing surface over print sheets: listing, counting,
       creation, patches, explicit slot reassignment, the printed summary
       and the design-template catalog.
How:   Status changes never go straight to the column. A PATCH carrying a
       status is routed through TemplateLifecycle so download/print
       cascades fire; any direct slot write (bulk upsert, delete) is
       followed by TemplateAllocator.recompute_occupancy so the
       complete ⇔ full invariant holds afterwards.
Who:   routes/print_templates.py, routes/template_slots.py,
       routes/design_templates.py.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stripbooth.config import settings
from stripbooth.database import utcnow
from stripbooth.exceptions import NotFoundError, ValidationError
from stripbooth.lifecycle import TemplateStatus, parse_template_status, parse_template_statuses
from stripbooth.models.design_template import DesignTemplate
from stripbooth.models.print_template import PrintTemplate, TemplateSlot
from stripbooth.schemas.print_template import (
    AllocateRequest,
    DesignTemplateResponse,
    PrintTemplateResponse,
    SlotDeleteResponse,
    TemplateSlotResponse,
)
from stripbooth.services.payloads import (
    DESIGN_TEMPLATE_COLUMNS,
    PRINT_TEMPLATE_COLUMNS,
    TEMPLATE_SLOT_COLUMNS,
    coerce_datetime_fields,
    parse_optional_int,
    parse_optional_uuid,
    parse_uuid,
    resolve_ordering,
    sanitize_payload,
)
from stripbooth.services.template_allocator import template_allocator
from stripbooth.services.template_lifecycle import template_lifecycle
from stripbooth.services.template_numbering import next_template_number, register_template_number

logger = logging.getLogger(__name__)

TEMPLATE_DATETIME_FIELDS = ("completed_at", "downloaded_at", "printed_at")


class PrintTemplateService:

    # ── Print Templates ───────────────────────────────────────────────────

    def _filtered(self, query, status: Optional[str], statuses: Optional[List[str]]):
        """
        Applies status filters. Unknown status strings are dropped; a
        filter that ends up empty matches nothing rather than everything.
        """
        requested = ([status] if status else []) + list(statuses or [])
        if not requested:
            return query
        parsed = [s.value for s in parse_template_statuses(requested)]
        return query.where(func.lower(PrintTemplate.status).in_(parsed))

    async def list_templates(
        self,
        db: AsyncSession,
        status: Optional[str] = None,
        statuses: Optional[List[str]] = None,
        order_by: Optional[str] = None,
        order_dir: Optional[str] = None,
    ) -> List[PrintTemplateResponse]:
        query = self._filtered(select(PrintTemplate), status, statuses)
        query = query.order_by(
            resolve_ordering(PrintTemplate, "print_templates", order_by, order_dir, "created_at")
        )
        result = await db.execute(query)
        return [PrintTemplateResponse.model_validate(t) for t in result.scalars().all()]

    async def count_templates(
        self,
        db: AsyncSession,
        status: Optional[str] = None,
        statuses: Optional[List[str]] = None,
    ) -> int:
        query = self._filtered(select(func.count(PrintTemplate.id)), status, statuses)
        return (await db.scalar(query)) or 0

    async def get_template(self, db: AsyncSession, template_id: uuid.UUID) -> PrintTemplate:
        template = await db.get(PrintTemplate, template_id)
        if template is None:
            raise NotFoundError(resource="print template", resource_id=str(template_id))
        return template

    async def create_template(self, db: AsyncSession, payload: Dict[str, Any]) -> PrintTemplateResponse:
        """
        Creates an empty sheet by hand. Without an explicit template_number
        the next number in the current year's sequence is issued.

        A new sheet has no slots, so it always starts `filling`; any other
        requested status is rejected.
        """
        changes = self._clean_template_payload(payload)
        status = changes.pop("status", None)
        if status is not None and status != TemplateStatus.FILLING:
            raise ValidationError(
                message=f"A new print template starts as 'filling', not '{status.value}'",
                field="status",
            )

        number = str(changes.pop("template_number", "") or "").strip()
        if number:
            await register_template_number(db, number)
        else:
            number = await next_template_number(db)

        template = PrintTemplate(
            template_number=number,
            status=TemplateStatus.FILLING.value,
            slots_used=0,
            total_slots=changes.pop("total_slots", settings.template_total_slots),
            created_at=utcnow(),
            **changes,
        )
        db.add(template)
        try:
            await db.flush()
        except IntegrityError as e:
            logger.warning("Rejected print template %s: %s", number, str(e.orig))
            raise ValidationError(
                message=f"Template number '{number}' already exists",
                field="template_number",
            )
        logger.info("Print template %s created manually", template.template_number)
        return PrintTemplateResponse.model_validate(template)

    async def update_template(
        self, db: AsyncSession, template_id: uuid.UUID, payload: Dict[str, Any]
    ) -> PrintTemplateResponse:
        """
        Patches a sheet. A status in the payload goes through the lifecycle
        (so downloaded/printed cascade to orders); other columns are written
        directly, then occupancy is re-derived for sheets still being packed.

        Raises:
            ValidationError: bad status, or total_slots below an occupied position
            InvalidTransitionError: status change the lifecycle does not allow
        """
        changes = self._clean_template_payload(payload)
        status = changes.pop("status", None)

        template = await self.get_template(db, template_id)
        if "total_slots" in changes:
            highest = await db.scalar(
                select(func.max(TemplateSlot.position)).where(TemplateSlot.template_id == template_id)
            )
            if highest and changes["total_slots"] < highest:
                raise ValidationError(
                    message=f"total_slots cannot be below occupied position {highest}",
                    field="total_slots",
                    context={"occupied_position": highest},
                )

        if status is not None:
            await template_lifecycle.apply_status(db, template_id, status.value)

        for field, value in changes.items():
            setattr(template, field, value)
        await db.flush()

        if template.status in (TemplateStatus.FILLING.value, TemplateStatus.COMPLETE.value):
            await template_allocator.recompute_occupancy(db, [template_id])
        return PrintTemplateResponse.model_validate(template)

    def _clean_template_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        changes = sanitize_payload(payload, PRINT_TEMPLATE_COLUMNS)
        if "status" in changes:
            status = parse_template_status(changes["status"])
            if status is None:
                del changes["status"]
            else:
                changes["status"] = status
        if "total_slots" in changes:
            value = parse_optional_int(changes["total_slots"])
            limit = settings.template_total_slots
            if value is None or value < 1 or value > limit:
                raise ValidationError(
                    message=f"total_slots must be between 1 and {limit}",
                    field="total_slots",
                )
            changes["total_slots"] = value
        coerce_datetime_fields(changes, TEMPLATE_DATETIME_FIELDS)
        return changes

    # ── Allocation ────────────────────────────────────────────────────────

    async def allocate(self, db: AsyncSession, data: AllocateRequest) -> List[TemplateSlotResponse]:
        slots = await template_allocator.allocate(
            db,
            order_id=data.order_id,
            project_id=data.project_id,
            photo_url=data.photo_url,
            student_name=data.student_name,
            grade=data.grade,
            section=data.section,
            package_type=data.package_type,
        )
        return [TemplateSlotResponse.model_validate(slot) for slot in slots]

    # ── Slots ─────────────────────────────────────────────────────────────

    async def list_slots(
        self,
        db: AsyncSession,
        template_ids: Optional[List[str]] = None,
        order_ids: Optional[List[str]] = None,
        order_by: Optional[str] = None,
        order_dir: Optional[str] = None,
    ) -> List[TemplateSlotResponse]:
        query = select(TemplateSlot)
        if template_ids:
            query = query.where(
                TemplateSlot.template_id.in_([parse_uuid(v, "templateIds") for v in template_ids])
            )
        if order_ids:
            query = query.where(
                TemplateSlot.order_id.in_([parse_uuid(v, "orderIds") for v in order_ids])
            )
        query = query.order_by(
            TemplateSlot.template_id,
            resolve_ordering(TemplateSlot, "template_slots", order_by, order_dir, "position", "asc"),
        )
        result = await db.execute(query)
        return [TemplateSlotResponse.model_validate(slot) for slot in result.scalars().all()]

    def validate_slot_payload(self, slots: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Validates and normalises a bulk slot payload.

        Every entry needs a UUID template_id and a position within
        1..total_slots; order_id/project_id that are not UUIDs become null.
        Entries sharing (template_id, position) collapse to the last one.

        Raises:
            ValidationError: naming the index of the first offending entry
        """
        total = settings.template_total_slots
        rows: Dict[Tuple[uuid.UUID, int], Dict[str, Any]] = {}

        for index, raw in enumerate(slots):
            if not isinstance(raw, dict):
                raise ValidationError(
                    message=f"Invalid slot payload at index {index}: expected an object",
                    context={"index": index},
                )
            clean = sanitize_payload(raw, TEMPLATE_SLOT_COLUMNS)
            template_id = parse_optional_uuid(clean.get("template_id"))
            if template_id is None:
                raise ValidationError(
                    message=f"Invalid slot payload at index {index}: template_id must be a UUID",
                    field="template_id",
                    context={"index": index},
                )
            position = parse_optional_int(clean.get("position"))
            if position is None or position < 1 or position > total:
                raise ValidationError(
                    message=f"Invalid slot payload at index {index}: position must be between 1 and {total}",
                    field="position",
                    context={"index": index},
                )

            rows[(template_id, position)] = {
                "template_id": template_id,
                "position": position,
                "order_id": parse_optional_uuid(clean.get("order_id")),
                "project_id": parse_optional_uuid(clean.get("project_id")),
                "photo_url": self._optional_str(clean.get("photo_url")),
                "student_name": self._optional_str(clean.get("student_name")),
                "grade": self._optional_str(clean.get("grade")),
                "section": self._optional_str(clean.get("section")),
                "package_type": parse_optional_int(clean.get("package_type")),
            }

        return list(rows.values())

    async def bulk_upsert_slots(
        self, db: AsyncSession, slots: List[Dict[str, Any]]
    ) -> List[TemplateSlotResponse]:
        """
        Upserts slots keyed on (template_id, position). An existing slot at
        the key is overwritten and its inserted_at reset.

        Raises:
            NotFoundError: a template_id that does not exist
            ValidationError: a position beyond that template's total_slots
        """
        rows = self.validate_slot_payload(slots)
        if not rows:
            return []

        result = await db.execute(
            select(PrintTemplate.id, PrintTemplate.total_slots).where(
                PrintTemplate.id.in_({row["template_id"] for row in rows})
            )
        )
        capacity = dict(result.all())
        for row in rows:
            total = capacity.get(row["template_id"])
            if total is None:
                raise NotFoundError(resource="print template", resource_id=str(row["template_id"]))
            if row["position"] > total:
                raise ValidationError(
                    message=f"Position {row['position']} exceeds the {total} slots of template {row['template_id']}",
                    field="position",
                )

        now = utcnow()
        saved: List[TemplateSlot] = []
        for row in rows:
            result = await db.execute(
                select(TemplateSlot).where(
                    TemplateSlot.template_id == row["template_id"],
                    TemplateSlot.position == row["position"],
                )
            )
            slot = result.scalar_one_or_none()
            if slot is None:
                slot = TemplateSlot(inserted_at=now, **row)
                db.add(slot)
            else:
                for field, value in row.items():
                    setattr(slot, field, value)
                slot.inserted_at = now
            saved.append(slot)

        try:
            await db.flush()
        except IntegrityError as e:
            logger.warning("Rejected slot batch: %s", str(e.orig))
            raise ValidationError(
                message="Slots must reference existing print templates",
                context={"error_type": type(e).__name__},
            )

        await template_allocator.recompute_occupancy(db, {row["template_id"] for row in rows})
        logger.info("Upserted %d slot(s)", len(saved))
        return [TemplateSlotResponse.model_validate(slot) for slot in saved]

    async def delete_slots(self, db: AsyncSession, ids: List[str]) -> SlotDeleteResponse:
        """Deletes slots by id and recounts the templates they were on."""
        slot_ids = [parse_uuid(value, "ids") for value in ids]
        if not slot_ids:
            raise ValidationError(message="ids is required", field="ids")

        result = await db.execute(
            select(TemplateSlot.template_id).where(TemplateSlot.id.in_(slot_ids)).distinct()
        )
        template_ids = list(result.scalars().all())

        deleted = await db.execute(
            delete(TemplateSlot)
            .where(TemplateSlot.id.in_(slot_ids))
            .execution_options(synchronize_session="fetch")
        )
        await template_allocator.recompute_occupancy(db, template_ids)

        count = deleted.rowcount or 0
        logger.info("Deleted %d slot(s) from %d template(s)", count, len(template_ids))
        return SlotDeleteResponse(deleted=count, template_ids=template_ids)

    @staticmethod
    def _optional_str(value: Any) -> Optional[str]:
        if value is None or value == "":
            return None
        return str(value)

    # ── Design Templates ──────────────────────────────────────────────────

    async def list_design_templates(
        self,
        db: AsyncSession,
        order_by: Optional[str] = None,
        order_dir: Optional[str] = None,
    ) -> List[DesignTemplateResponse]:
        result = await db.execute(
            select(DesignTemplate).order_by(
                resolve_ordering(DesignTemplate, "templates", order_by, order_dir, "created_at")
            )
        )
        return [DesignTemplateResponse.model_validate(t) for t in result.scalars().all()]

    async def create_design_template(
        self, db: AsyncSession, payload: Dict[str, Any]
    ) -> DesignTemplateResponse:
        changes = sanitize_payload(payload, DESIGN_TEMPLATE_COLUMNS)
        name = str(changes.get("name") or "").strip()
        if not name:
            raise ValidationError(message="Design template name is required", field="name")

        design = DesignTemplate(name=name, preview_url=changes.get("preview_url"), created_at=utcnow())
        db.add(design)
        await db.flush()
        logger.info("Design template created: '%s'", design.name)
        return DesignTemplateResponse.model_validate(design)


# ── Singleton Instance ────────────────────────────────────────────────────
print_template_service = PrintTemplateService()
