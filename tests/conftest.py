"""
Pytest configuration for Bunkhouse tests
"""
import os
import sys
from datetime import date, datetime
from pathlib import Path
from types import SimpleNamespace

# Must be set before bunkhouse.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENABLE_SCHEDULER", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Ensure bunkhouse is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from bunkhouse.database import Base, enable_sqlite_foreign_keys
from bunkhouse.models import BedType, MemberRole, RoomType
from bunkhouse.schemas.house import HouseSettings
from bunkhouse.schemas.room import BedCreate, RoomCreate
from bunkhouse.services.membership_service import MembershipService
from bunkhouse.services.room_service import RoomService
from bunkhouse.services.window_service import WindowService

# A Friday, and the Monday before it
WEEKEND_FRIDAY = date(2026, 11, 6)
OPENS_AT = datetime(2026, 11, 2, 9, 30)
AFTER_OPENING = datetime(2026, 11, 2, 10, 0)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    Session = async_sessionmaker(engine, expire_on_commit=False)
    async with Session() as session:
        yield session


@pytest_asyncio.fixture
async def house(session):
    """House with an admin, three members and one outsider. Only ids are exposed."""
    admin = await MembershipService.get_or_create_user(session, "admin@example.com", "Admin")
    alice = await MembershipService.get_or_create_user(session, "alice@example.com", "Alice")
    bob = await MembershipService.get_or_create_user(session, "bob@example.com", "Bob")
    carol = await MembershipService.get_or_create_user(session, "carol@example.com", "Carol")
    outsider = await MembershipService.get_or_create_user(session, "out@example.com", "Outsider")

    created = await MembershipService.create_house(
        session, admin.id, "Lake House", HouseSettings(bed_signup_enabled=True)
    )
    for user in (alice, bob, carol):
        await MembershipService.add_member(session, created.id, admin.id, user.id, MemberRole.MEMBER)

    return SimpleNamespace(
        id=created.id,
        admin_id=admin.id,
        alice_id=alice.id,
        bob_id=bob.id,
        carol_id=carol.id,
        outsider_id=outsider.id,
    )


@pytest.fixture
def build_beds(session):
    """build_beds(house, {"Room": [("Bed", BedType, is_premium), ...]}) -> list of bed ids"""

    async def _build(house, layout):
        bed_ids = []
        for room_name, beds in layout.items():
            room_type = RoomType.BUNK_ROOM if "bunk" in room_name.lower() else RoomType.BEDROOM
            room = await RoomService.create_room(
                session, house.id, house.admin_id, RoomCreate(name=room_name, room_type=room_type)
            )
            room_id = room.id
            for bed_name, bed_type, is_premium in beds:
                bed = await RoomService.create_bed(
                    session,
                    room_id,
                    house.id,
                    house.admin_id,
                    BedCreate(name=bed_name, bed_type=bed_type, is_premium=is_premium),
                )
                bed_ids.append(bed.id)
        return bed_ids

    return _build


@pytest_asyncio.fixture
async def two_beds(house, build_beds):
    """One room with beds A and B"""
    return await build_beds(
        house,
        {"Master": [("A", BedType.QUEEN, True), ("B", BedType.TWIN, False)]},
    )


@pytest.fixture
def open_window(session):
    """open_window(house, friday=WEEKEND_FRIDAY) -> id of an open window"""

    async def _open(house, friday=WEEKEND_FRIDAY):
        window = await WindowService.create_window(
            session, house.id, house.admin_id, friday, OPENS_AT
        )
        window = await WindowService.open_window_if_due(session, window, now=AFTER_OPENING)
        return window.id

    return _open
