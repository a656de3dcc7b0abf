"""
StripBooth Backend — Order Service
===================================

What:  Cashier-side order workflow: intake with server-side pricing,
       listing, patching, bulk status updates and delivery hand-off.
How:   Intake writes the order, its editing project and its raffle tickets
       through one session, so the request's transaction commits all three
       or none (get_db_session rolls back on any exception).
Who:   routes/orders.py.

Intake Flow:
    ┌──────────────┐    ┌───────────────┐    ┌──────────────┐    ┌───────────────┐
    │ validate +   │───▶│ INSERT order  │───▶│ INSERT       │───▶│ INSERT raffle │
    │ price order  │    │ (pending)     │    │ project      │    │ entries 1..N  │
    └──────────────┘    └───────────────┘    └──────────────┘    └───────────────┘
"""

import logging
import re
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stripbooth.config import settings
from stripbooth.database import utcnow
from stripbooth.exceptions import DatabaseError, InvalidTransitionError, NotFoundError, ValidationError
from stripbooth.lifecycle import OrderStatus, PhotoStatus, ProjectStatus, parse_enum
from stripbooth.models.order import Order
from stripbooth.models.project import Project
from stripbooth.schemas.order import (
    BulkUpdateResponse,
    OrderCreate,
    OrderCreateResponse,
    OrderResponse,
)
from stripbooth.schemas.project import ProjectResponse
from stripbooth.schemas.raffle import RaffleEntryResponse
from stripbooth.services.payloads import (
    ORDER_COLUMNS,
    coerce_datetime_fields,
    parse_uuid,
    resolve_ordering,
    sanitize_payload,
)
from stripbooth.services.raffle_service import raffle_service

logger = logging.getLogger(__name__)

PACKAGE_TYPES = (2, 4)
DESIGN_TYPES = ("standard", "custom")
PAYMENT_METHODS = ("cash", "gcash")

# Raffles an order may buy on top of the included one, per package.
MAX_ADDITIONAL_RAFFLES = {2: 1, 4: 3}
INCLUDED_RAFFLES = 1

ORDER_DATETIME_FIELDS = (
    "order_date",
    "photo_uploaded_date",
    "project_completed_date",
    "packed_date",
    "delivery_date",
)


def normalize_section(value: str) -> str:
    """'hope  4' → 'HOPE-4'; runs of dashes collapse to one."""
    section = re.sub(r"\s+", "-", (value or "").strip().upper())
    return re.sub(r"-{2,}", "-", section)


def price_order(package_type: int, additional_raffles: int) -> Dict[str, Any]:
    """
    Derives every money/raffle column from the package choice.

    additional_raffles is clamped to what the package allows.
    """
    if package_type not in PACKAGE_TYPES:
        raise ValidationError(
            message=f"Unsupported package type {package_type}",
            field="package_type",
            context={"allowed": list(PACKAGE_TYPES)},
        )
    additional = max(0, min(int(additional_raffles or 0), MAX_ADDITIONAL_RAFFLES[package_type]))
    base_cost = settings.package_4_base_cost if package_type == 4 else settings.package_2_base_cost
    raffle_cost = additional * settings.raffle_price
    return {
        "included_raffles": INCLUDED_RAFFLES,
        "additional_raffles": additional,
        "total_raffles": INCLUDED_RAFFLES + additional,
        "raffle_cost": Decimal(raffle_cost),
        "package_base_cost": Decimal(base_cost),
        "total_amount": Decimal(base_cost + raffle_cost),
    }


class OrderService:
    """
    Business logic for orders.

    Status columns written through update_order/bulk_update_orders are
    validated against OrderStatus/PhotoStatus; every other allow-listed
    column is written as given.
    """

    async def create_order(self, db: AsyncSession, data: OrderCreate) -> OrderCreateResponse:
        customer_name = data.customer_name.strip()
        grade = data.grade.strip()
        section = normalize_section(data.section)
        if not customer_name or not grade or not section:
            raise ValidationError(
                message="Customer name, grade and section are required",
                context={"customer_name": bool(customer_name), "grade": bool(grade), "section": bool(section)},
            )
        if data.design_type not in DESIGN_TYPES:
            raise ValidationError(
                message=f"Unsupported design type '{data.design_type}'",
                field="design_type",
                context={"allowed": list(DESIGN_TYPES)},
            )
        if data.payment_method not in PAYMENT_METHODS:
            raise ValidationError(
                message=f"Unsupported payment method '{data.payment_method}'",
                field="payment_method",
                context={"allowed": list(PAYMENT_METHODS)},
            )

        pricing = price_order(data.package_type, data.additional_raffles)
        now = utcnow()

        try:
            order = Order(
                customer_name=customer_name,
                grade=grade,
                section=section,
                package_type=data.package_type,
                design_type=data.design_type,
                standard_design_id=data.standard_design_id if data.design_type == "standard" else None,
                payment_method=data.payment_method,
                gcash_reference=(data.gcash_reference or None) if data.payment_method == "gcash" else None,
                order_status=OrderStatus.PENDING.value,
                photo_status=PhotoStatus.PENDING.value,
                order_date=now,
                created_at=now,
                updated_at=now,
                **pricing,
            )
            db.add(order)
            await db.flush()

            project = Project(
                name=f"{customer_name} - {grade} {section}",
                order_id=order.id,
                customer_name=customer_name,
                grade=grade,
                section=section,
                package_type=data.package_type,
                design_type=data.design_type,
                status=ProjectStatus.AWAITING_PHOTO.value,
                created_at=now,
                updated_at=now,
            )
            db.add(project)
            await db.flush()

            entries = await raffle_service.create_entries_for_order(db, order)
        except SQLAlchemyError as e:
            logger.error("Order intake failed for %s: %s", customer_name, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the order. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info(
            "Order %s created: package %d, %d raffle(s), total %s",
            order.id,
            order.package_type,
            order.total_raffles,
            order.total_amount,
        )
        return OrderCreateResponse(
            order=OrderResponse.model_validate(order),
            project=ProjectResponse.model_validate(project),
            raffle_entries=[RaffleEntryResponse.model_validate(entry) for entry in entries],
        )

    async def list_orders(
        self,
        db: AsyncSession,
        ids: Optional[List[str]] = None,
        status: Optional[str] = None,
        statuses: Optional[List[str]] = None,
        order_by: Optional[str] = None,
        order_dir: Optional[str] = None,
    ) -> List[OrderResponse]:
        query = select(Order)
        if ids:
            query = query.where(Order.id.in_([parse_uuid(value, "ids") for value in ids]))
        if status:
            query = query.where(Order.order_status == status)
        if statuses:
            query = query.where(Order.order_status.in_(statuses))
        query = query.order_by(resolve_ordering(Order, "orders", order_by, order_dir, "order_date"))

        result = await db.execute(query)
        return [OrderResponse.model_validate(order) for order in result.scalars().all()]

    async def get_order(self, db: AsyncSession, order_id: uuid.UUID) -> Order:
        order = await db.get(Order, order_id)
        if order is None:
            raise NotFoundError(resource="order", resource_id=str(order_id))
        return order

    async def update_order(
        self, db: AsyncSession, order_id: uuid.UUID, payload: Dict[str, Any]
    ) -> OrderResponse:
        order = await self.get_order(db, order_id)
        changes = self._clean_patch(payload)
        for field, value in changes.items():
            setattr(order, field, value)
        if changes:
            order.updated_at = utcnow()
            await db.flush()
            logger.info("Order %s updated: %s", order.id, sorted(changes))
        return OrderResponse.model_validate(order)

    async def bulk_update_orders(
        self, db: AsyncSession, ids: List[uuid.UUID], patch: Dict[str, Any]
    ) -> BulkUpdateResponse:
        """One set-based UPDATE over `ids`; returns how many rows changed."""
        changes = self._clean_patch(patch)
        if not ids or not changes:
            return BulkUpdateResponse(updated=0)

        changes["updated_at"] = utcnow()
        result = await db.execute(
            update(Order)
            .where(Order.id.in_(ids))
            .values(**changes)
            .execution_options(synchronize_session="fetch")
        )
        logger.info("Bulk order update: %d row(s), fields %s", result.rowcount, sorted(changes))
        return BulkUpdateResponse(updated=result.rowcount or 0)

    async def mark_delivered(
        self,
        db: AsyncSession,
        order_id: uuid.UUID,
        recipient: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> OrderResponse:
        """packed → delivered; any other current status is a conflict."""
        order = await self.get_order(db, order_id)
        if order.order_status != OrderStatus.PACKED.value:
            raise InvalidTransitionError("order", order.order_status, OrderStatus.DELIVERED.value)

        now = utcnow()
        order.order_status = OrderStatus.DELIVERED.value
        order.delivery_date = now
        order.delivery_recipient = recipient or None
        order.delivery_notes = notes or None
        order.updated_at = now
        await db.flush()
        logger.info("Order %s delivered", order.id)
        return OrderResponse.model_validate(order)

    def _clean_patch(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        changes = sanitize_payload(payload, ORDER_COLUMNS)
        if "order_status" in changes:
            changes["order_status"] = parse_enum(OrderStatus, changes["order_status"], "order_status").value
        if "photo_status" in changes:
            changes["photo_status"] = parse_enum(PhotoStatus, changes["photo_status"], "photo_status").value
        if "package_type" in changes and changes["package_type"] not in PACKAGE_TYPES:
            raise ValidationError(
                message=f"Unsupported package type {changes['package_type']}",
                field="package_type",
                context={"allowed": list(PACKAGE_TYPES)},
            )
        if "section" in changes and changes["section"] is not None:
            changes["section"] = normalize_section(str(changes["section"]))
        if changes.get("standard_design_id"):
            changes["standard_design_id"] = parse_uuid(changes["standard_design_id"], "standard_design_id")
        coerce_datetime_fields(changes, ORDER_DATETIME_FIELDS)
        return changes


# ── Singleton Instance ────────────────────────────────────────────────────
order_service = OrderService()
