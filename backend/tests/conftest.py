"""
StripBooth Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the whole suite.
How:   Environment variables are set BEFORE any stripbooth import so the
       settings singleton, the engine and the storage singleton all pick
       up the test values.

Fixture Hierarchy (all function-scoped):
    ├── db_engine:        fresh in-memory SQLite database with every table
    ├── session_factory:  async_sessionmaker bound to db_engine
    ├── db_session:       one AsyncSession for service-level tests
    ├── make_order:       factory inserting an Order (+ optional Project)
    ├── mock_db_session:  AsyncMock session for failure injection
    ├── temp_storage:     temporary blob store root
    └── test_client:      httpx AsyncClient over the ASGI app, with
                          get_db_session pointed at db_engine
"""

import os
import tempfile

# Override settings for testing BEFORE any stripbooth imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="stripbooth_test_")
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["PUBLIC_BASE_URL"] = ""

from decimal import Decimal
from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import stripbooth.models  # noqa: F401
from stripbooth.database import Base, get_db_session, utcnow
from stripbooth.models.order import Order
from stripbooth.models.project import Project


# ══════════════════════════════════════════════════════════════════════════
# Database Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    """
    In-memory SQLite shared by every connection of one test.

    StaticPool keeps a single connection so the schema created here is the
    one every session sees.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_order(db_session):
    """
    Factory inserting an order (and its project unless with_project=False).

    Usage:
        order, project = await make_order(package_type=4)
    """

    async def _make(
        customer_name: str = "Juan Dela Cruz",
        grade: str = "10",
        section: str = "HOPE",
        package_type: int = 2,
        order_status: str = "pending",
        with_project: bool = True,
        photo_url: Optional[str] = None,
    ):
        now = utcnow()
        order = Order(
            customer_name=customer_name,
            grade=grade,
            section=section,
            package_type=package_type,
            design_type="standard",
            included_raffles=1,
            additional_raffles=0,
            total_raffles=1,
            raffle_cost=Decimal("0"),
            package_base_cost=Decimal("100" if package_type == 4 else "50"),
            total_amount=Decimal("100" if package_type == 4 else "50"),
            payment_method="cash",
            order_status=order_status,
            photo_status="pending",
            order_date=now,
            created_at=now,
            updated_at=now,
        )
        db_session.add(order)
        await db_session.flush()

        project = None
        if with_project:
            project = Project(
                name=f"{customer_name} - {grade} {section}",
                order_id=order.id,
                customer_name=customer_name,
                grade=grade,
                section=section,
                package_type=package_type,
                photo_url=photo_url,
                status="in_progress" if photo_url else "awaiting_photo",
                created_at=now,
                updated_at=now,
            )
            db_session.add(project)
            await db_session.flush()
        return order, project

    return _make


@pytest.fixture
def mock_db_session():
    """
    A mock AsyncSession for tests that inject store failures.

    Usage:
        mock_db_session.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    session.add_all = MagicMock()
    return session


@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def sample_image_bytes():
    """Minimal JPEG: SOI + JFIF header + EOI."""
    return (
        b'\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00'
        b'\xff\xd9'
    )


# ══════════════════════════════════════════════════════════════════════════
# HTTP Client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(session_factory):
    """
    httpx AsyncClient talking to the ASGI app in-process.

    Each request gets its own session on the test database, committed on
    success and rolled back on error like the real dependency.
    """
    from stripbooth.main import app

    async def override_get_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
