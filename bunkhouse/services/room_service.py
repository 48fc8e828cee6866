import logging
from typing import List

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bunkhouse.core.exceptions import NotFoundError, PreconditionError
from bunkhouse.models import Bed, BedClaim, Room, Stay
from bunkhouse.schemas.room import BedCreate, BedUpdate, RoomCreate, RoomUpdate
from bunkhouse.services.membership_service import MembershipService

logger = logging.getLogger(__name__)


class RoomService:
    """Каталог комнат и кроватей. Все изменения только для админов дома."""

    @staticmethod
    async def list_rooms_with_beds(db: AsyncSession, house_id: int) -> List[Room]:
        # Room.beds is ordered by display_order on the relationship itself
        result = await db.execute(
            select(Room)
            .options(selectinload(Room.beds))
            .where(Room.house_id == house_id)
            .order_by(Room.display_order, Room.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_room(db: AsyncSession, room_id: int) -> Room:
        result = await db.execute(
            select(Room)
            .options(selectinload(Room.beds))
            .where(Room.id == room_id)
            .execution_options(populate_existing=True)
        )
        room = result.scalar_one_or_none()
        if not room:
            raise NotFoundError(f"Room {room_id} not found")
        return room

    @staticmethod
    async def get_bed(db: AsyncSession, bed_id: int) -> Bed:
        bed = await db.get(Bed, bed_id)
        if not bed:
            raise NotFoundError(f"Bed {bed_id} not found")
        return bed

    @staticmethod
    async def count_beds(db: AsyncSession, house_id: int) -> int:
        result = await db.execute(
            select(func.count(Bed.id)).where(Bed.house_id == house_id)
        )
        return result.scalar_one()

    @staticmethod
    async def _next_room_order(db: AsyncSession, house_id: int) -> int:
        result = await db.execute(
            select(func.max(Room.display_order)).where(Room.house_id == house_id)
        )
        current = result.scalar_one_or_none()
        return 0 if current is None else current + 1

    @staticmethod
    async def _next_bed_order(db: AsyncSession, room_id: int) -> int:
        result = await db.execute(
            select(func.max(Bed.display_order)).where(Bed.room_id == room_id)
        )
        current = result.scalar_one_or_none()
        return 0 if current is None else current + 1

    @staticmethod
    async def create_room(
        db: AsyncSession, house_id: int, actor_id: int, room_in: RoomCreate
    ) -> Room:
        await MembershipService.require_admin(db, house_id, actor_id)

        display_order = room_in.display_order
        if display_order is None:
            display_order = await RoomService._next_room_order(db, house_id)

        room = Room(
            house_id=house_id,
            name=room_in.name,
            room_type=room_in.room_type,
            display_order=display_order,
        )
        db.add(room)
        await db.commit()
        await db.refresh(room)
        logger.info("Room %s (%s) created in house %s", room.id, room.name, house_id)
        return room

    @staticmethod
    async def update_room(
        db: AsyncSession, room_id: int, actor_id: int, room_in: RoomUpdate
    ) -> Room:
        room = await RoomService.get_room(db, room_id)
        await MembershipService.require_admin(db, room.house_id, actor_id)

        for key, value in room_in.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(room, key, value)

        await db.commit()
        await db.refresh(room)
        return room

    @staticmethod
    async def delete_room(db: AsyncSession, room_id: int, actor_id: int) -> None:
        """Deletes the room, its beds and every claim on those beds.

        Stays linked to those claims survive with their bed reference cleared.
        """
        room = await RoomService.get_room(db, room_id)
        await MembershipService.require_admin(db, room.house_id, actor_id)

        bed_ids = select(Bed.id).where(Bed.room_id == room_id)
        await RoomService._drop_claims_for_beds(db, bed_ids)
        await db.execute(delete(Bed).where(Bed.room_id == room_id))
        await db.execute(delete(Room).where(Room.id == room_id))
        await db.commit()
        logger.info("Room %s deleted from house %s", room_id, room.house_id)

    @staticmethod
    async def reorder_rooms(
        db: AsyncSession, house_id: int, actor_id: int, room_ids: List[int]
    ) -> List[Room]:
        await MembershipService.require_admin(db, house_id, actor_id)

        for index, room_id in enumerate(room_ids):
            await db.execute(
                update(Room)
                .where(Room.id == room_id, Room.house_id == house_id)
                .values(display_order=index)
            )
        await db.commit()
        return await RoomService.list_rooms_with_beds(db, house_id)

    @staticmethod
    async def create_bed(
        db: AsyncSession, room_id: int, house_id: int, actor_id: int, bed_in: BedCreate
    ) -> Bed:
        await MembershipService.require_admin(db, house_id, actor_id)

        room = await db.get(Room, room_id)
        if not room:
            raise NotFoundError(f"Room {room_id} not found")
        if room.house_id != house_id:
            raise PreconditionError(
                f"Room {room_id} does not belong to house {house_id}",
                code="wrong_house",
            )

        display_order = bed_in.display_order
        if display_order is None:
            display_order = await RoomService._next_bed_order(db, room_id)

        bed = Bed(
            room_id=room_id,
            house_id=house_id,
            name=bed_in.name,
            bed_type=bed_in.bed_type,
            is_premium=bed_in.is_premium,
            display_order=display_order,
        )
        db.add(bed)
        await db.commit()
        await db.refresh(bed)
        logger.info("Bed %s (%s) created in room %s", bed.id, bed.name, room_id)
        return bed

    @staticmethod
    async def update_bed(
        db: AsyncSession, bed_id: int, actor_id: int, bed_in: BedUpdate
    ) -> Bed:
        bed = await RoomService.get_bed(db, bed_id)
        await MembershipService.require_admin(db, bed.house_id, actor_id)

        for key, value in bed_in.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(bed, key, value)

        await db.commit()
        await db.refresh(bed)
        return bed

    @staticmethod
    async def delete_bed(db: AsyncSession, bed_id: int, actor_id: int) -> None:
        bed = await RoomService.get_bed(db, bed_id)
        await MembershipService.require_admin(db, bed.house_id, actor_id)

        await RoomService._drop_claims_for_beds(db, select(Bed.id).where(Bed.id == bed_id))
        await db.execute(delete(Bed).where(Bed.id == bed_id))
        await db.commit()
        logger.info("Bed %s deleted", bed_id)

    @staticmethod
    async def reorder_beds(
        db: AsyncSession, room_id: int, actor_id: int, bed_ids: List[int]
    ) -> Room:
        room = await RoomService.get_room(db, room_id)
        await MembershipService.require_admin(db, room.house_id, actor_id)

        for index, bed_id in enumerate(bed_ids):
            await db.execute(
                update(Bed)
                .where(Bed.id == bed_id, Bed.room_id == room_id)
                .values(display_order=index)
            )
        await db.commit()
        return await RoomService.get_room(db, room_id)

    @staticmethod
    async def _drop_claims_for_beds(db: AsyncSession, bed_ids) -> None:
        claim_ids = select(BedClaim.id).where(BedClaim.bed_id.in_(bed_ids))
        await db.execute(
            update(Stay)
            .where(Stay.bed_claim_id.in_(claim_ids))
            .values(bed_claim_id=None)
        )
        await db.execute(delete(BedClaim).where(BedClaim.bed_id.in_(bed_ids)))
