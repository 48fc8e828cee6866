from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bunkhouse.database import Base


class MemberRole(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"


class RoomType(str, Enum):
    BEDROOM = "bedroom"
    BUNK_ROOM = "bunk_room"


class BedType(str, Enum):
    KING = "king"
    QUEEN = "queen"
    FULL = "full"
    TWIN = "twin"


class WindowStatus(str, Enum):
    SCHEDULED = "scheduled"
    OPEN = "open"
    CLOSED = "closed"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String, unique=True, index=True)
    display_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class House(Base):
    __tablename__ = "houses"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String)
    # Validated through schemas.house.HouseSettings before every write
    settings: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    members: Mapped[list["HouseMember"]] = relationship(
        back_populates="house", cascade="all, delete-orphan", passive_deletes=True
    )


class HouseMember(Base):
    __tablename__ = "house_members"
    __table_args__ = (
        UniqueConstraint("house_id", "user_id", name="uq_house_members_house_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    house_id: Mapped[int] = mapped_column(
        ForeignKey("houses.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    role: Mapped[MemberRole] = mapped_column(
        SQLEnum(MemberRole), default=MemberRole.MEMBER
    )
    joined_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    house: Mapped["House"] = relationship(back_populates="members")
    user: Mapped["User"] = relationship()


class Room(Base):
    __tablename__ = "rooms"

    id: Mapped[int] = mapped_column(primary_key=True)
    house_id: Mapped[int] = mapped_column(
        ForeignKey("houses.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String)
    room_type: Mapped[RoomType] = mapped_column(
        SQLEnum(RoomType), default=RoomType.BEDROOM
    )
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    beds: Mapped[list["Bed"]] = relationship(
        back_populates="room",
        order_by="Bed.display_order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Bed(Base):
    __tablename__ = "beds"

    id: Mapped[int] = mapped_column(primary_key=True)
    room_id: Mapped[int] = mapped_column(
        ForeignKey("rooms.id", ondelete="CASCADE"), index=True
    )
    # Denormalized from the room so bed counts per house are a single query
    house_id: Mapped[int] = mapped_column(
        ForeignKey("houses.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String)
    bed_type: Mapped[BedType] = mapped_column(SQLEnum(BedType), default=BedType.TWIN)
    is_premium: Mapped[bool] = mapped_column(Boolean, default=False)
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    room: Mapped["Room"] = relationship(back_populates="beds")


class SignupWindow(Base):
    __tablename__ = "signup_windows"
    __table_args__ = (
        UniqueConstraint(
            "house_id", "target_weekend_start", name="uq_signup_windows_house_weekend"
        ),
        # At most one open window per house. Enum columns store member names.
        Index(
            "uq_signup_windows_one_open_per_house",
            "house_id",
            unique=True,
            sqlite_where=text("status = 'OPEN'"),
            postgresql_where=text("status = 'OPEN'"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    house_id: Mapped[int] = mapped_column(
        ForeignKey("houses.id", ondelete="CASCADE"), index=True
    )
    target_weekend_start: Mapped[date] = mapped_column(Date)  # Friday
    target_weekend_end: Mapped[date] = mapped_column(Date)  # Sunday
    opens_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    status: Mapped[WindowStatus] = mapped_column(
        SQLEnum(WindowStatus), default=WindowStatus.SCHEDULED, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class BedClaim(Base):
    __tablename__ = "bed_claims"
    __table_args__ = (
        UniqueConstraint("signup_window_id", "bed_id", name="uq_bed_claims_window_bed"),
        UniqueConstraint("signup_window_id", "user_id", name="uq_bed_claims_window_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    signup_window_id: Mapped[int] = mapped_column(
        ForeignKey("signup_windows.id", ondelete="CASCADE"), index=True
    )
    bed_id: Mapped[int] = mapped_column(
        ForeignKey("beds.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    co_claimer_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"), nullable=True, index=True
    )
    claimed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    bed: Mapped["Bed"] = relationship()
    window: Mapped["SignupWindow"] = relationship()
    user: Mapped["User"] = relationship(foreign_keys=[user_id])
    co_claimer: Mapped[Optional["User"]] = relationship(foreign_keys=[co_claimer_id])
    stay: Mapped[Optional["Stay"]] = relationship(
        back_populates="bed_claim", uselist=False, passive_deletes=True
    )


class Expense(Base):
    __tablename__ = "expenses"

    id: Mapped[int] = mapped_column(primary_key=True)
    house_id: Mapped[int] = mapped_column(
        ForeignKey("houses.id", ondelete="CASCADE"), index=True
    )
    paid_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    created_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    title: Mapped[str] = mapped_column(String)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    description: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    category: Mapped[str] = mapped_column(String, default="other")
    spent_on: Mapped[date] = mapped_column(Date)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    splits: Mapped[list["ExpenseSplit"]] = relationship(
        back_populates="expense", cascade="all, delete-orphan", passive_deletes=True
    )


class ExpenseSplit(Base):
    __tablename__ = "expense_splits"

    id: Mapped[int] = mapped_column(primary_key=True)
    expense_id: Mapped[int] = mapped_column(
        ForeignKey("expenses.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    settled: Mapped[bool] = mapped_column(Boolean, default=False)
    settled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    expense: Mapped["Expense"] = relationship(back_populates="splits")


class Stay(Base):
    __tablename__ = "stays"

    id: Mapped[int] = mapped_column(primary_key=True)
    house_id: Mapped[int] = mapped_column(
        ForeignKey("houses.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    co_booker_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )

    check_in: Mapped[date] = mapped_column(Date)
    check_out: Mapped[date] = mapped_column(Date)
    guest_count: Mapped[int] = mapped_column(Integer, default=0)
    notes: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    linked_expense_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("expenses.id", ondelete="SET NULL"), nullable=True
    )
    # The claim is the source of truth for the co-party; the stay only points at it
    bed_claim_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("bed_claims.id", ondelete="SET NULL"), nullable=True, unique=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    bed_claim: Mapped[Optional["BedClaim"]] = relationship(back_populates="stay")
