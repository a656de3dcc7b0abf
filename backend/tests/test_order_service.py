"""
StripBooth Backend — Order Service Tests
=========================================

What we test:
    ✅ server-side pricing and raffle clamping
    ✅ section normalisation
    ✅ intake creates order + project + raffle tickets together
    ✅ intake validation (identity, design type, payment method)
    ✅ patch/bulk update status validation
    ✅ delivery only from packed
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from stripbooth.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from stripbooth.models.project import Project
from stripbooth.models.raffle import RaffleEntry
from stripbooth.schemas.order import OrderCreate
from stripbooth.services.order_service import OrderService, normalize_section, price_order


class TestPricing:

    def test_two_strip_package(self):
        pricing = price_order(2, 0)
        assert pricing["package_base_cost"] == Decimal(50)
        assert pricing["total_amount"] == Decimal(50)
        assert pricing["total_raffles"] == 1

    def test_four_strip_with_raffles(self):
        pricing = price_order(4, 2)
        assert pricing["raffle_cost"] == Decimal(10)
        assert pricing["total_amount"] == Decimal(110)
        assert pricing["total_raffles"] == 3

    @pytest.mark.parametrize("package_type,requested,allowed", [(2, 5, 1), (4, 9, 3), (4, -2, 0)])
    def test_additional_raffles_are_clamped(self, package_type, requested, allowed):
        assert price_order(package_type, requested)["additional_raffles"] == allowed

    def test_unknown_package_rejected(self):
        with pytest.raises(ValidationError, match="Unsupported package type"):
            price_order(3, 0)


class TestSectionNormalisation:

    @pytest.mark.parametrize("raw,expected", [
        ("hope", "HOPE"),
        ("  hope  4 ", "HOPE-4"),
        ("st. luke -- a", "ST.-LUKE-A"),
        ("", ""),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_section(raw) == expected


class TestIntake:

    def setup_method(self):
        self.service = OrderService()

    @pytest.mark.asyncio
    async def test_creates_order_project_and_raffles(self, db_session):
        data = OrderCreate(
            customer_name="  Maria Santos ",
            grade="12",
            section="faith",
            package_type=4,
            additional_raffles=2,
            payment_method="gcash",
            gcash_reference="GC-123",
        )

        result = await self.service.create_order(db_session, data)

        assert result.order.customer_name == "Maria Santos"
        assert result.order.section == "FAITH"
        assert result.order.order_status == "pending"
        assert result.order.total_amount == 110
        assert result.order.gcash_reference == "GC-123"
        assert result.project.order_id == result.order.id
        assert result.project.status == "awaiting_photo"
        assert result.project.name == "Maria Santos - 12 FAITH"
        assert [entry.raffle_number for entry in result.raffle_entries] == [1, 2, 3]

        stored = await db_session.scalar(
            select(func.count(RaffleEntry.id)).where(RaffleEntry.order_id == result.order.id)
        )
        assert stored == 3

    @pytest.mark.asyncio
    async def test_cash_orders_drop_gcash_reference(self, db_session):
        data = OrderCreate(
            customer_name="Ana", grade="10", section="HOPE", package_type=2,
            payment_method="cash", gcash_reference="ignored",
        )
        result = await self.service.create_order(db_session, data)
        assert result.order.gcash_reference is None

    @pytest.mark.asyncio
    async def test_missing_section_is_rejected(self, db_session):
        data = OrderCreate(customer_name="Ana", grade="10", section="  ", package_type=2)

        with pytest.raises(ValidationError, match="required"):
            await self.service.create_order(db_session, data)

        assert await db_session.scalar(select(func.count(Project.id))) == 0

    @pytest.mark.asyncio
    async def test_unknown_payment_method_is_rejected(self, db_session):
        data = OrderCreate(
            customer_name="Ana", grade="10", section="HOPE", package_type=2, payment_method="card",
        )
        with pytest.raises(ValidationError) as exc_info:
            await self.service.create_order(db_session, data)
        assert exc_info.value.field == "payment_method"


class TestUpdates:

    def setup_method(self):
        self.service = OrderService()

    @pytest.mark.asyncio
    async def test_patch_ignores_unknown_columns(self, db_session, make_order):
        order, _ = await make_order()

        updated = await self.service.update_order(
            db_session, order.id, {"section": "new  hope", "id": str(uuid4()), "bogus": 1}
        )

        assert updated.id == order.id
        assert updated.section == "NEW-HOPE"

    @pytest.mark.asyncio
    async def test_patch_rejects_unknown_status(self, db_session, make_order):
        order, _ = await make_order()
        with pytest.raises(ValidationError):
            await self.service.update_order(db_session, order.id, {"order_status": "lost"})

    @pytest.mark.asyncio
    async def test_patch_unknown_order(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.update_order(db_session, uuid4(), {"section": "A"})

    @pytest.mark.asyncio
    async def test_bulk_update(self, db_session, make_order):
        first, _ = await make_order(customer_name="Ana")
        second, _ = await make_order(customer_name="Ben")
        untouched, _ = await make_order(customer_name="Cy")

        result = await self.service.bulk_update_orders(
            db_session, [first.id, second.id], {"order_status": "packed"}
        )

        assert result.updated == 2
        packed = await self.service.list_orders(db_session, status="packed")
        assert {order.id for order in packed} == {first.id, second.id}
        assert untouched.id not in {order.id for order in packed}

    @pytest.mark.asyncio
    async def test_bulk_update_with_nothing_to_do(self, db_session, make_order):
        order, _ = await make_order()
        result = await self.service.bulk_update_orders(db_session, [order.id], {"bogus": 1})
        assert result.updated == 0

    @pytest.mark.asyncio
    async def test_list_by_ids(self, db_session, make_order):
        first, _ = await make_order(customer_name="Ana")
        await make_order(customer_name="Ben")

        listed = await self.service.list_orders(db_session, ids=[str(first.id)])

        assert [order.id for order in listed] == [first.id]


class TestDelivery:

    def setup_method(self):
        self.service = OrderService()

    @pytest.mark.asyncio
    async def test_packed_order_is_delivered(self, db_session, make_order):
        order, _ = await make_order(order_status="packed")

        delivered = await self.service.mark_delivered(db_session, order.id, recipient="Mother", notes="")

        assert delivered.order_status == "delivered"
        assert delivered.delivery_recipient == "Mother"
        assert delivered.delivery_notes is None
        assert delivered.delivery_date is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["pending", "to_print", "delivered"])
    async def test_other_statuses_conflict(self, db_session, make_order, status):
        order, _ = await make_order(order_status=status)
        with pytest.raises(InvalidTransitionError):
            await self.service.mark_delivered(db_session, order.id)
