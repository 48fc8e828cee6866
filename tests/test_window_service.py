import random
from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import select

from bunkhouse.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PreconditionError,
)
from bunkhouse.jobs.window_opener_job import open_due_windows
from bunkhouse.models import SignupWindow, WindowStatus
from bunkhouse.schemas.house import HouseSettings
from bunkhouse.services.claim_service import ClaimService
from bunkhouse.services.membership_service import MembershipService
from bunkhouse.services.window_service import CloseReason, WindowService
from conftest import AFTER_OPENING, OPENS_AT, WEEKEND_FRIDAY


def test_transitions_only_move_forward():
    assert WindowService.can_transition(WindowStatus.SCHEDULED, WindowStatus.OPEN)
    assert WindowService.can_transition(WindowStatus.OPEN, WindowStatus.CLOSED)
    assert not WindowService.can_transition(WindowStatus.SCHEDULED, WindowStatus.CLOSED)
    assert not WindowService.can_transition(WindowStatus.CLOSED, WindowStatus.OPEN)
    assert not WindowService.can_transition(WindowStatus.OPEN, WindowStatus.SCHEDULED)


@pytest.mark.asyncio
async def test_create_window_is_scheduled(session, house):
    window = await WindowService.create_window(
        session, house.id, house.admin_id, WEEKEND_FRIDAY, OPENS_AT
    )

    assert window.status == WindowStatus.SCHEDULED
    assert window.target_weekend_start == WEEKEND_FRIDAY
    assert window.target_weekend_end == WEEKEND_FRIDAY + timedelta(days=2)
    assert window.closed_at is None


@pytest.mark.asyncio
async def test_create_window_validation(session, house):
    with pytest.raises(AuthorizationError):
        await WindowService.create_window(
            session, house.id, house.alice_id, WEEKEND_FRIDAY, OPENS_AT
        )

    with pytest.raises(PreconditionError):
        await WindowService.create_window(
            session, house.id, house.admin_id, WEEKEND_FRIDAY + timedelta(days=1), OPENS_AT
        )

    await WindowService.create_window(session, house.id, house.admin_id, WEEKEND_FRIDAY, OPENS_AT)
    with pytest.raises(ConflictError):
        await WindowService.create_window(
            session, house.id, house.admin_id, WEEKEND_FRIDAY, OPENS_AT
        )


@pytest.mark.asyncio
async def test_open_window_if_due_respects_opens_at(session, house):
    window = await WindowService.create_window(
        session, house.id, house.admin_id, WEEKEND_FRIDAY, OPENS_AT
    )

    await WindowService.open_window_if_due(session, window, now=OPENS_AT - timedelta(minutes=1))
    assert window.status == WindowStatus.SCHEDULED

    await WindowService.open_window_if_due(session, window, now=OPENS_AT)
    assert window.status == WindowStatus.OPEN


@pytest.mark.asyncio
async def test_open_window_if_due_ignores_closed(session, house, open_window):
    window_id = await open_window(house)
    window = await WindowService.close_window_as_admin(session, window_id, house.admin_id)

    await WindowService.open_window_if_due(session, window, now=AFTER_OPENING)
    assert window.status == WindowStatus.CLOSED


@pytest.mark.asyncio
async def test_admin_open_override(session, house):
    window = await WindowService.create_window(
        session, house.id, house.admin_id, WEEKEND_FRIDAY, datetime(2030, 1, 1)
    )
    window_id = window.id

    with pytest.raises(AuthorizationError):
        await WindowService.open_window(session, window_id, house.alice_id)

    window = await WindowService.open_window(session, window_id, house.admin_id)
    assert window.status == WindowStatus.OPEN
    assert window.opens_at < datetime(2030, 1, 1)

    with pytest.raises(PreconditionError):
        await WindowService.open_window(session, window_id, house.admin_id)


@pytest.mark.asyncio
async def test_only_one_open_window_per_house(session, house, open_window):
    await open_window(house)
    second = await WindowService.create_window(
        session, house.id, house.admin_id, WEEKEND_FRIDAY + timedelta(days=7), OPENS_AT
    )
    second_id = second.id

    with pytest.raises(ConflictError):
        await WindowService.open_window_if_due(session, second, now=AFTER_OPENING)

    second = await session.get(SignupWindow, second_id, populate_existing=True)
    assert second.status == WindowStatus.SCHEDULED


@pytest.mark.asyncio
async def test_close_window(session, house, open_window):
    window_id = await open_window(house)

    with pytest.raises(AuthorizationError):
        await WindowService.close_window_as_admin(session, window_id, house.bob_id)

    window = await WindowService.close_window_as_admin(session, window_id, house.admin_id)
    assert window.status == WindowStatus.CLOSED
    closed_at = window.closed_at
    assert closed_at is not None

    # already closed: nothing changes
    window = await WindowService.close_window(session, window, CloseReason.ADMIN)
    assert window.closed_at == closed_at


@pytest.mark.asyncio
async def test_scheduled_window_cannot_be_closed(session, house):
    window = await WindowService.create_window(
        session, house.id, house.admin_id, WEEKEND_FRIDAY, OPENS_AT
    )
    with pytest.raises(PreconditionError):
        await WindowService.close_window(session, window, CloseReason.ADMIN)


@pytest.mark.asyncio
async def test_active_and_next_windows(session, house, open_window):
    assert await WindowService.get_active_window(session, house.id) is None
    assert await WindowService.get_next_scheduled_window(session, house.id) is None

    window_id = await open_window(house)
    later = await WindowService.create_window(
        session, house.id, house.admin_id, WEEKEND_FRIDAY + timedelta(days=7), OPENS_AT + timedelta(days=7)
    )

    active = await WindowService.get_active_window(session, house.id)
    upcoming = await WindowService.get_next_scheduled_window(session, house.id)
    assert active.id == window_id
    assert upcoming.id == later.id


@pytest.mark.asyncio
async def test_is_window_open_for_dates(session, house, open_window):
    window_id = await open_window(house)

    overlapping = await WindowService.is_window_open_for_dates(
        session, house.id, WEEKEND_FRIDAY - timedelta(days=2), WEEKEND_FRIDAY
    )
    assert overlapping.is_open
    assert overlapping.window.id == window_id

    before = await WindowService.is_window_open_for_dates(
        session, house.id, WEEKEND_FRIDAY - timedelta(days=5), WEEKEND_FRIDAY - timedelta(days=1)
    )
    assert not before.is_open
    assert before.window is None

    after = await WindowService.is_window_open_for_dates(
        session, house.id, WEEKEND_FRIDAY + timedelta(days=3), WEEKEND_FRIDAY + timedelta(days=5)
    )
    assert not after.is_open


@pytest.mark.asyncio
async def test_window_board_and_status(session, house, two_beds, open_window):
    window_id = await open_window(house)
    await ClaimService.claim_bed(session, window_id, two_beds[0], house.alice_id)

    window = await WindowService.get_window(session, window_id)
    board = await WindowService.get_window_board(session, window)
    assert board.total_beds == 2
    assert board.claimed_beds == 1
    beds = board.rooms[0].beds
    assert [b.name for b in beds] == ["A", "B"]
    assert beds[0].claim.user_id == house.alice_id
    assert beds[1].claim is None

    status = await WindowService.get_window_status(session, house.id)
    assert status.has_rooms
    assert status.active_window.id == window_id
    assert status.next_scheduled_window is None


@pytest.mark.asyncio
async def test_get_window_missing(session):
    with pytest.raises(NotFoundError):
        await WindowService.get_window(session, 404)


@pytest.mark.asyncio
async def test_open_due_windows(session, house):
    window = await WindowService.create_window(
        session, house.id, house.admin_id, WEEKEND_FRIDAY, OPENS_AT
    )
    window_id = window.id

    assert await open_due_windows(session, now=OPENS_AT - timedelta(hours=1)) == 0
    assert await open_due_windows(session, now=AFTER_OPENING) == 1

    window = await session.get(SignupWindow, window_id, populate_existing=True)
    assert window.status == WindowStatus.OPEN


@pytest.mark.asyncio
async def test_schedule_weekend_windows(session, house, two_beds):
    # Wednesday 2026-10-21: next Friday is the 23rd, the target is the 30th
    today = date(2026, 10, 21)

    # a house with sign-up enabled but no beds is skipped
    await MembershipService.create_house(
        session, house.admin_id, "Empty", HouseSettings(bed_signup_enabled=True)
    )
    # and so is one with sign-up disabled
    await MembershipService.create_house(session, house.admin_id, "Disabled")

    created = await WindowService.schedule_weekend_windows(session, today, random.Random(7))
    assert len(created) == 1
    window = created[0]
    assert window.house_id == house.id
    assert window.target_weekend_start == date(2026, 10, 30)
    assert window.status == WindowStatus.SCHEDULED
    # Monday 26th or Tuesday 27th, 08:00-19:59
    assert window.opens_at.date() in (date(2026, 10, 26), date(2026, 10, 27))
    assert 8 <= window.opens_at.hour < 20

    again = await WindowService.schedule_weekend_windows(session, today, random.Random(7))
    assert again == []

    result = await session.execute(select(SignupWindow).where(SignupWindow.house_id == house.id))
    assert len(result.scalars().all()) == 1
