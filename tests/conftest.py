"""
Pytest configuration and fixtures for tests.

This file is automatically loaded by pytest and provides shared fixtures
and configuration for all tests.
"""

import os
import sys
import tempfile
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

# Add parent directory to Python path so tests can import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# config reads the environment once at import, so test defaults go in first
_scratch = tempfile.mkdtemp(prefix="marketplace-tests-")
os.environ.setdefault("RUNTIME_ENVIRONMENT", "TEST")
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PROMPTPAY_ID", "0812345678")
os.environ.setdefault("BLOB_STORE_ROOT", os.path.join(_scratch, "storage"))
os.environ.setdefault("DOWNLOAD_TEMP_DIR", os.path.join(_scratch, "temp"))
os.environ.setdefault("DB_RETRY_DELAY_BASE", "0.001")

from enums.item_status import ItemStatus
from models.base import Base
from models.bundle_discount import BundleDiscountTier
from models.item import Item
from models.user import User, RequesterDTO
import db  # noqa: F401  registers every model on Base.metadata


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def engine():
    """Create in-memory SQLite database."""
    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    """Create database session."""
    session = Session(engine)
    yield session
    session.rollback()
    session.close()


@pytest_asyncio.fixture
async def async_engine():
    """In-memory SQLite behind aiosqlite, one shared connection."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def async_session(async_engine):
    maker = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    async with maker() as session:
        yield session
        await session.rollback()


# ============================================================================
# Catalog Fixtures
# ============================================================================

def build_users() -> dict[str, User]:
    return {
        "buyer": User(name="Jane Buyer", email="buyer@example.com"),
        "other": User(name="Tom Other", email="other@example.com"),
        "staff": User(name="Sam Staff", email="staff@example.com", is_staff=True),
        "creator": User(name="Cleo Creator", email="creator@example.com", is_seller=True),
    }


def build_items(creator_id: int) -> dict[str, Item]:
    return {
        "guide": Item(title="Thai Cooking Guide", price=Decimal("100.00"), status=ItemStatus.ACTIVE,
                      storage_path="items/guide.pdf", creator_id=creator_id,
                      bonus_links=["https://example.com/video"]),
        "course": Item(title="Course Notes", price=Decimal("150.00"), status=ItemStatus.ACTIVE,
                       storage_path="items/course.pdf", creator_id=creator_id),
        "ebook": Item(title="Ebook", price=Decimal("250.00"), status=ItemStatus.ACTIVE,
                      storage_path="items/ebook.pdf", creator_id=creator_id),
        "premium": Item(title="Premium Pack", price=Decimal("99.00"), status=ItemStatus.ACTIVE,
                        storage_path="items/premium.pdf", creator_id=creator_id),
        "free": Item(title="Free Sampler", price=Decimal("0.00"), status=ItemStatus.ACTIVE,
                     storage_path="items/free.pdf", creator_id=creator_id,
                     bonus_links=["https://example.com/sampler-extras"]),
        "retired": Item(title="Retired Title", price=Decimal("80.00"), status=ItemStatus.DEACTIVATED,
                        storage_path="items/retired.pdf", creator_id=creator_id),
    }


@pytest.fixture
def users(session) -> dict[str, int]:
    users = build_users()
    session.add_all(users.values())
    session.commit()
    return {key: user.id for key, user in users.items()}


@pytest.fixture
def items(session, users) -> dict[str, int]:
    items = build_items(users["creator"])
    session.add_all(items.values())
    session.commit()
    return {key: item.id for key, item in items.items()}


@pytest.fixture
def tiers(session) -> None:
    session.add_all([
        BundleDiscountTier(min_items=2, discount_percentage=Decimal("5")),
        BundleDiscountTier(min_items=3, discount_percentage=Decimal("10")),
    ])
    session.commit()


@pytest_asyncio.fixture
async def async_catalog(async_session) -> tuple[dict[str, int], dict[str, int]]:
    """Users and items committed through the AsyncSession."""
    users = build_users()
    async_session.add_all(users.values())
    await async_session.commit()
    items = build_items(users["creator"].id)
    async_session.add_all(items.values())
    await async_session.commit()
    return {key: user.id for key, user in users.items()}, {key: item.id for key, item in items.items()}


@pytest.fixture
def buyer(users) -> RequesterDTO:
    return RequesterDTO(user_id=users["buyer"], name="Jane Buyer", email="buyer@example.com")


@pytest.fixture
def other_buyer(users) -> RequesterDTO:
    return RequesterDTO(user_id=users["other"], name="Tom Other", email="other@example.com")


@pytest.fixture
def staff_id(users) -> int:
    return users["staff"]


# ============================================================================
# File Fixtures
# ============================================================================

def make_pdf(pages: int = 1, text: str = "Sample content") -> bytes:
    import fitz  # PyMuPDF

    doc = fitz.open()
    for number in range(pages):
        page = doc.new_page(width=595, height=842)
        page.insert_text((72, 72), f"{text} {number + 1}", fontsize=12)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def pdf_bytes() -> bytes:
    return make_pdf(pages=2)
