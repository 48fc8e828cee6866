import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bunkhouse.core.exceptions import AuthorizationError, ConflictError, NotFoundError
from bunkhouse.models import House, HouseMember, MemberRole, User
from bunkhouse.schemas.house import HouseSettings

logger = logging.getLogger(__name__)


class MembershipService:
    """Houses, members and the admin role check used by every other service."""

    @staticmethod
    async def get_or_create_user(
        db: AsyncSession, email: str, display_name: Optional[str] = None
    ) -> User:
        """Mirror an identity from the auth provider into the users table."""
        result = await db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user:
            return user

        user = User(email=email, display_name=display_name)
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    @staticmethod
    async def get_house(db: AsyncSession, house_id: int) -> House:
        house = await db.get(House, house_id)
        if not house:
            raise NotFoundError(f"House {house_id} not found")
        return house

    @staticmethod
    async def create_house(
        db: AsyncSession,
        owner_id: int,
        name: str,
        house_settings: Optional[HouseSettings] = None,
    ) -> House:
        """Создание дома. Создатель становится администратором."""
        house_settings = house_settings or HouseSettings()
        house = House(name=name, settings=house_settings.model_dump(mode="json"))
        db.add(house)
        await db.flush()

        db.add(HouseMember(house_id=house.id, user_id=owner_id, role=MemberRole.ADMIN))
        await db.commit()
        await db.refresh(house)
        logger.info("House %s created by user %s", house.id, owner_id)
        return house

    @staticmethod
    async def get_house_settings(db: AsyncSession, house_id: int) -> HouseSettings:
        house = await MembershipService.get_house(db, house_id)
        return HouseSettings.model_validate(house.settings or {})

    @staticmethod
    async def update_house_settings(
        db: AsyncSession, house_id: int, actor_id: int, house_settings: HouseSettings
    ) -> House:
        await MembershipService.require_admin(db, house_id, actor_id)
        house = await MembershipService.get_house(db, house_id)
        house.settings = house_settings.model_dump(mode="json")
        await db.commit()
        await db.refresh(house)
        return house

    @staticmethod
    async def add_member(
        db: AsyncSession,
        house_id: int,
        actor_id: int,
        user_id: int,
        role: MemberRole = MemberRole.MEMBER,
    ) -> HouseMember:
        await MembershipService.require_admin(db, house_id, actor_id)

        member = HouseMember(house_id=house_id, user_id=user_id, role=role)
        db.add(member)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(f"User {user_id} is already a member of house {house_id}")

        await db.refresh(member)
        return member

    @staticmethod
    async def get_member(
        db: AsyncSession, house_id: int, user_id: int
    ) -> Optional[HouseMember]:
        result = await db.execute(
            select(HouseMember).where(
                HouseMember.house_id == house_id, HouseMember.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def is_admin(db: AsyncSession, house_id: int, user_id: int) -> bool:
        member = await MembershipService.get_member(db, house_id, user_id)
        return member is not None and member.role == MemberRole.ADMIN

    @staticmethod
    async def require_admin(db: AsyncSession, house_id: int, user_id: int) -> None:
        if not await MembershipService.is_admin(db, house_id, user_id):
            logger.warning("User %s is not an admin of house %s", user_id, house_id)
            raise AuthorizationError(f"Admin role required in house {house_id}")

    @staticmethod
    async def require_member(db: AsyncSession, house_id: int, user_id: int) -> HouseMember:
        member = await MembershipService.get_member(db, house_id, user_id)
        if member is None:
            raise AuthorizationError(f"User {user_id} is not a member of house {house_id}")
        return member

    @staticmethod
    async def list_members(db: AsyncSession, house_id: int) -> List[HouseMember]:
        result = await db.execute(
            select(HouseMember)
            .options(selectinload(HouseMember.user))
            .where(HouseMember.house_id == house_id)
            .order_by(HouseMember.joined_at, HouseMember.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_first_admin_id(db: AsyncSession, house_id: int) -> Optional[int]:
        result = await db.execute(
            select(HouseMember.user_id)
            .where(
                HouseMember.house_id == house_id,
                HouseMember.role == MemberRole.ADMIN,
            )
            .order_by(HouseMember.joined_at, HouseMember.id)
            .limit(1)
        )
        return result.scalar_one_or_none()
