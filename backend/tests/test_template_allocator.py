"""
StripBooth Backend — Template Allocator Tests
==============================================

What:  Packing photo strips into six-slot print templates.

What we test:
    ✅ slots_needed per package type
    ✅ a 4-strip order on an empty store opens one filling template
    ✅ a second 4-strip order completes that template and spills into a new one
    ✅ re-allocating the same order reuses its slots (idempotence)
    ✅ downgrading 4 → 2 releases surplus slots and reopens the template
    ✅ a template reporting filling while full is forced complete
    ✅ printed templates are never reused by reconciliation
    ✅ store failures surface as DatabaseError
"""

from collections import Counter
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from stripbooth.database import utcnow
from stripbooth.exceptions import DatabaseError
from stripbooth.models.print_template import PrintTemplate, TemplateSlot
from stripbooth.services.template_allocator import TemplateAllocator, slots_needed


async def _templates(db):
    result = await db.execute(select(PrintTemplate).order_by(PrintTemplate.template_number))
    return list(result.scalars().all())


async def _slots_for(db, order_id):
    result = await db.execute(
        select(TemplateSlot).where(TemplateSlot.order_id == order_id).order_by(TemplateSlot.position)
    )
    return list(result.scalars().all())


async def _allocate(allocator, db, order, photo_url="strip-v1.png", package_type=None):
    return await allocator.allocate(
        db,
        order_id=order.id,
        project_id=None,
        photo_url=photo_url,
        student_name=order.customer_name,
        grade=order.grade,
        section=order.section,
        package_type=package_type if package_type is not None else order.package_type,
    )


class TestSlotsNeeded:

    def test_four_strip_package(self):
        assert slots_needed(4) == 4

    def test_two_strip_package(self):
        assert slots_needed(2) == 2

    @pytest.mark.parametrize("package_type", [None, 0, 3, 6])
    def test_unknown_package_defaults_to_two(self, package_type):
        assert slots_needed(package_type) == 2


class TestAllocation:

    def setup_method(self):
        self.allocator = TemplateAllocator(total_slots=6)

    @pytest.mark.asyncio
    async def test_first_order_opens_filling_template(self, db_session, make_order):
        order, _ = await make_order(package_type=4)

        slots = await _allocate(self.allocator, db_session, order)

        templates = await _templates(db_session)
        assert len(templates) == 1
        assert templates[0].status == "filling"
        assert templates[0].slots_used == 4
        assert templates[0].completed_at is None
        assert sorted(slot.position for slot in slots) == [1, 2, 3, 4]
        assert templates[0].template_number.startswith(f"TMPL-{utcnow().year}-")

    @pytest.mark.asyncio
    async def test_second_order_completes_template_and_spills(self, db_session, make_order):
        first, _ = await make_order(customer_name="Ana", package_type=4)
        second, _ = await make_order(customer_name="Ben", package_type=4)

        await _allocate(self.allocator, db_session, first)
        await _allocate(self.allocator, db_session, second)

        templates = await _templates(db_session)
        assert [t.status for t in templates] == ["complete", "filling"]
        assert [t.slots_used for t in templates] == [6, 2]
        assert templates[0].completed_at is not None

        placement = Counter(slot.template_id for slot in await _slots_for(db_session, second.id))
        assert placement == {templates[0].id: 2, templates[1].id: 2}

    @pytest.mark.asyncio
    async def test_order_gets_exactly_package_type_slots(self, db_session, make_order):
        orders = []
        for i, package_type in enumerate([2, 4, 4, 2, 4]):
            order, _ = await make_order(customer_name=f"Student {i}", package_type=package_type)
            orders.append(order)

        for order in orders:
            await _allocate(self.allocator, db_session, order)

        for order in orders:
            slots = await _slots_for(db_session, order.id)
            assert len(slots) == order.package_type
            assert len({(s.template_id, s.position) for s in slots}) == order.package_type

        for template in await _templates(db_session):
            count = await db_session.scalar(
                select(func.count(TemplateSlot.id)).where(TemplateSlot.template_id == template.id)
            )
            assert template.slots_used == count
            assert (template.status == "complete") == (count == template.total_slots)

    @pytest.mark.asyncio
    async def test_reallocation_is_idempotent(self, db_session, make_order):
        order, _ = await make_order(package_type=4)
        before = await _allocate(self.allocator, db_session, order, photo_url="strip-v1.png")
        before_keys = {(s.template_id, s.position) for s in before}

        await _allocate(self.allocator, db_session, order, photo_url="strip-v2.png")

        slots = await _slots_for(db_session, order.id)
        assert len(slots) == 4
        assert {(s.template_id, s.position) for s in slots} == before_keys
        assert {s.photo_url for s in slots} == {"strip-v2.png"}
        assert len(await _templates(db_session)) == 1

    @pytest.mark.asyncio
    async def test_downgrade_releases_surplus_and_reopens_template(self, db_session, make_order):
        big, _ = await make_order(customer_name="Ana", package_type=4)
        small, _ = await make_order(customer_name="Ben", package_type=2)
        await _allocate(self.allocator, db_session, big)
        await _allocate(self.allocator, db_session, small)
        template = (await _templates(db_session))[0]
        assert template.status == "complete"

        await _allocate(self.allocator, db_session, big, package_type=2)

        slots = await _slots_for(db_session, big.id)
        assert [s.position for s in slots] == [1, 2]
        await db_session.refresh(template)
        assert template.slots_used == 4
        assert template.status == "filling"
        assert template.completed_at is None

    @pytest.mark.asyncio
    async def test_stale_full_template_is_forced_complete(self, db_session, make_order):
        stale = PrintTemplate(
            template_number=f"TMPL-{utcnow().year}-0001",
            status="filling",
            slots_used=3,
            total_slots=6,
            created_at=utcnow(),
        )
        db_session.add(stale)
        await db_session.flush()
        for position in range(1, 7):
            db_session.add(TemplateSlot(template_id=stale.id, position=position, inserted_at=utcnow()))
        await db_session.flush()

        order, _ = await make_order(package_type=2)
        slots = await _allocate(self.allocator, db_session, order)

        await db_session.refresh(stale)
        assert stale.status == "complete"
        assert stale.slots_used == 6
        assert all(slot.template_id != stale.id for slot in slots)
        assert len(await _templates(db_session)) == 2

    @pytest.mark.asyncio
    async def test_printed_slots_are_not_reused(self, db_session, make_order):
        order, _ = await make_order(package_type=2)
        await _allocate(self.allocator, db_session, order)
        printed = (await _templates(db_session))[0]
        printed.status = "printed"
        await db_session.flush()

        await _allocate(self.allocator, db_session, order, photo_url="reprint.png")

        slots = await _slots_for(db_session, order.id)
        assert len(slots) == 4
        fresh = [s for s in slots if s.template_id != printed.id]
        assert {s.photo_url for s in fresh} == {"reprint.png"}

    @pytest.mark.asyncio
    async def test_store_failure_raises_database_error(self, mock_db_session):
        mock_db_session.execute.side_effect = OperationalError("SELECT", {}, Exception("db down"))
        order = MagicMock(id=uuid4(), customer_name="Ana", grade="10", section="HOPE", package_type=2)

        with pytest.raises(DatabaseError):
            await _allocate(self.allocator, mock_db_session, order)
