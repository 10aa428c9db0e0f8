"""Group, GroupMember, MembershipDeparture and Ban ORM models."""
import enum
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum as SAEnum, Index

from groupvault.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored here is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_now(now: Optional[datetime] = None) -> datetime:
    """Caller-supplied clock converted to UTC, or the current time."""
    return as_utc(now) if now is not None else utcnow()


class GroupKind(str, enum.Enum):
    open = "open"
    private = "private"


class DepartureReason(str, enum.Enum):
    left = "left"
    banished = "banished"


class Group(Base):
    __tablename__ = "groups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(150), nullable=False)
    owner_id = Column(Integer, nullable=False, index=True)
    kind = Column(SAEnum(GroupKind), nullable=False)
    max_members = Column(Integer, nullable=False, default=100)
    # Written once at creation; never rotated
    wrapped_key = Column(Text, nullable=False)
    wrap_nonce = Column(String(32), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    deleted_at = Column(DateTime(timezone=True), nullable=True)


class GroupMember(Base):
    """Current membership: the row exists exactly while the user is a member."""

    __tablename__ = "group_members"

    group_id = Column(Integer, ForeignKey("groups.id"), primary_key=True)
    user_id = Column(Integer, primary_key=True)
    joined_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)



class MembershipDeparture(Base):
    """Append-only departure log; the latest row per pair drives the cooldown."""

    __tablename__ = "membership_departures"
    __table_args__ = (Index("ix_departures_group_user", "group_id", "user_id", "left_at"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    group_id = Column(Integer, ForeignKey("groups.id"), nullable=False)
    user_id = Column(Integer, nullable=False)
    left_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    reason = Column(SAEnum(DepartureReason), nullable=False, default=DepartureReason.left)


class Ban(Base):
    __tablename__ = "bans"

    group_id = Column(Integer, ForeignKey("groups.id"), primary_key=True)
    user_id = Column(Integer, primary_key=True)
    reason = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
