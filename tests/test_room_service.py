import pytest
from sqlalchemy import select

from bunkhouse.core.exceptions import AuthorizationError, NotFoundError, PreconditionError
from bunkhouse.models import Bed, BedClaim, BedType, RoomType, Stay
from bunkhouse.schemas.room import BedCreate, BedUpdate, RoomCreate, RoomUpdate
from bunkhouse.schemas.stay import StayCreate
from bunkhouse.services.claim_service import ClaimService
from bunkhouse.services.membership_service import MembershipService
from bunkhouse.services.room_service import RoomService
from bunkhouse.services.stay_service import StayService
from conftest import WEEKEND_FRIDAY


@pytest.mark.asyncio
async def test_rooms_and_beds_are_ordered(session, house):
    bunk = await RoomService.create_room(
        session, house.id, house.admin_id, RoomCreate(name="Bunk room", room_type=RoomType.BUNK_ROOM)
    )
    master = await RoomService.create_room(
        session, house.id, house.admin_id, RoomCreate(name="Master")
    )
    assert bunk.display_order == 0
    assert master.display_order == 1

    top = await RoomService.create_bed(
        session, bunk.id, house.id, house.admin_id, BedCreate(name="Top")
    )
    bottom = await RoomService.create_bed(
        session, bunk.id, house.id, house.admin_id, BedCreate(name="Bottom")
    )
    assert (top.display_order, bottom.display_order) == (0, 1)
    assert top.bed_type == BedType.TWIN

    await RoomService.reorder_rooms(session, house.id, house.admin_id, [master.id, bunk.id])
    room = await RoomService.reorder_beds(session, bunk.id, house.admin_id, [bottom.id, top.id])
    assert [b.name for b in room.beds] == ["Bottom", "Top"]

    rooms = await RoomService.list_rooms_with_beds(session, house.id)
    assert [r.name for r in rooms] == ["Master", "Bunk room"]
    assert [b.name for b in rooms[1].beds] == ["Bottom", "Top"]
    assert rooms[0].beds == []


@pytest.mark.asyncio
async def test_catalog_changes_need_admin(session, house, two_beds):
    with pytest.raises(AuthorizationError):
        await RoomService.create_room(session, house.id, house.alice_id, RoomCreate(name="Attic"))

    rooms = await RoomService.list_rooms_with_beds(session, house.id)
    room_id = rooms[0].id

    with pytest.raises(AuthorizationError):
        await RoomService.update_room(session, room_id, house.alice_id, RoomUpdate(name="Mine"))
    with pytest.raises(AuthorizationError):
        await RoomService.delete_bed(session, two_beds[0], house.bob_id)
    with pytest.raises(AuthorizationError):
        await RoomService.create_bed(session, room_id, house.id, house.bob_id, BedCreate(name="C"))

    assert len(await RoomService.list_rooms_with_beds(session, house.id)) == 1


@pytest.mark.asyncio
async def test_update_room_and_bed(session, house, two_beds):
    rooms = await RoomService.list_rooms_with_beds(session, house.id)

    room = await RoomService.update_room(
        session, rooms[0].id, house.admin_id, RoomUpdate(name="Primary")
    )
    assert room.name == "Primary"
    assert room.room_type == RoomType.BEDROOM

    bed = await RoomService.update_bed(
        session, two_beds[1], house.admin_id, BedUpdate(bed_type=BedType.FULL, is_premium=True)
    )
    assert bed.bed_type == BedType.FULL
    assert bed.is_premium
    assert bed.name == "B"


@pytest.mark.asyncio
async def test_bed_must_be_added_to_room_of_same_house(session, house, two_beds):
    other = await MembershipService.create_house(session, house.admin_id, "Cabin")
    rooms = await RoomService.list_rooms_with_beds(session, house.id)

    with pytest.raises(PreconditionError):
        await RoomService.create_bed(
            session, rooms[0].id, other.id, house.admin_id, BedCreate(name="Sneaky")
        )
    with pytest.raises(NotFoundError):
        await RoomService.create_bed(session, 999, house.id, house.admin_id, BedCreate(name="X"))


@pytest.mark.asyncio
async def test_delete_room_cascades_claims_but_keeps_stays(session, house, two_beds, open_window):
    window_id = await open_window(house)
    claim = await ClaimService.claim_bed(session, window_id, two_beds[0], house.alice_id)
    stay = await StayService.create_stay(
        session,
        house.id,
        house.alice_id,
        StayCreate(check_in=WEEKEND_FRIDAY, check_out=WEEKEND_FRIDAY, bed_claim_id=claim.id),
    )
    stay_id = stay.id
    rooms = await RoomService.list_rooms_with_beds(session, house.id)

    await RoomService.delete_room(session, rooms[0].id, house.admin_id)

    assert await RoomService.list_rooms_with_beds(session, house.id) == []
    beds = await session.execute(select(Bed).where(Bed.house_id == house.id))
    assert beds.scalars().all() == []
    claims = await session.execute(select(BedClaim))
    assert claims.scalars().all() == []

    stay = await session.get(Stay, stay_id, populate_existing=True)
    assert stay is not None
    assert stay.bed_claim_id is None


@pytest.mark.asyncio
async def test_delete_bed_drops_its_claims(session, house, two_beds, open_window):
    window_id = await open_window(house)
    await ClaimService.claim_bed(session, window_id, two_beds[0], house.alice_id)

    await RoomService.delete_bed(session, two_beds[0], house.admin_id)

    assert await ClaimService.get_user_claim(session, window_id, house.alice_id) is None
    with pytest.raises(NotFoundError):
        await RoomService.get_bed(session, two_beds[0])
