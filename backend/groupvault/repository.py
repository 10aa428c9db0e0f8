"""Group repository — every query and write against groups, memberships,
bans, join requests and messages.

Methods only stage changes on the session (``flush``); committing is the
caller's unit of work (see ``groupvault.database.transactional``).
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from groupvault.models.group import (
    Ban,
    DepartureReason,
    Group,
    GroupKind,
    GroupMember,
    MembershipDeparture,
    as_utc,
)
from groupvault.models.join_request import JoinRequest, JoinRequestStatus
from groupvault.models.message import Message


class GroupRepository:
    def __init__(self, db: Session):
        self.db = db

    # --- groups ---

    def create_group(
        self,
        name: str,
        owner_id: int,
        kind: GroupKind,
        max_members: int,
        wrapped_key: str,
        wrap_nonce: str,
        now: datetime,
    ) -> Group:
        group = Group(
            name=name,
            owner_id=owner_id,
            kind=kind,
            max_members=max_members,
            wrapped_key=wrapped_key,
            wrap_nonce=wrap_nonce,
            created_at=now,
        )
        self.db.add(group)
        self.db.flush()
        return group

    def get_live_group(self, group_id: int, for_update: bool = False) -> Optional[Group]:
        """Fetch a non-deleted group; ``for_update`` row-locks it for the transaction."""
        query = self.db.query(Group).filter(Group.id == group_id, Group.deleted_at.is_(None))
        if for_update:
            query = query.with_for_update()
        return query.first()

    def list_public_groups(self, limit: int) -> list[Group]:
        return (
            self.db.query(Group)
            .filter(Group.kind == GroupKind.open, Group.deleted_at.is_(None))
            .order_by(Group.id.desc())
            .limit(limit)
            .all()
        )

    def list_owned_groups(self, owner_id: int) -> list[Group]:
        return (
            self.db.query(Group)
            .filter(Group.owner_id == owner_id, Group.deleted_at.is_(None))
            .order_by(Group.id.desc())
            .all()
        )

    def set_owner(self, group: Group, new_owner_id: int) -> None:
        group.owner_id = new_owner_id
        self.db.flush()

    def soft_delete(self, group: Group, now: datetime) -> None:
        group.deleted_at = now
        self.db.flush()

    # --- memberships ---

    def count_members(self, group_id: int) -> int:
        return (
            self.db.query(func.count(GroupMember.user_id))
            .filter(GroupMember.group_id == group_id)
            .scalar()
        )

    def is_member(self, group_id: int, user_id: int) -> bool:
        return self.db.get(GroupMember, (group_id, user_id)) is not None

    def add_member(self, group_id: int, user_id: int, now: datetime) -> bool:
        """Insert a membership row; returns False when it already existed."""
        if self.is_member(group_id, user_id):
            return False
        self.db.add(GroupMember(group_id=group_id, user_id=user_id, joined_at=now))
        self.db.flush()
        return True

    def remove_member(self, group_id: int, user_id: int) -> bool:
        member = self.db.get(GroupMember, (group_id, user_id))
        if member is None:
            return False
        self.db.delete(member)
        self.db.flush()
        return True

    def record_departure(
        self, group_id: int, user_id: int, reason: DepartureReason, now: datetime
    ) -> MembershipDeparture:
        departure = MembershipDeparture(group_id=group_id, user_id=user_id, reason=reason, left_at=now)
        self.db.add(departure)
        self.db.flush()
        return departure

    def last_left_at(self, group_id: int, user_id: int) -> Optional[datetime]:
        last = (
            self.db.query(func.max(MembershipDeparture.left_at))
            .filter(MembershipDeparture.group_id == group_id, MembershipDeparture.user_id == user_id)
            .scalar()
        )
        return as_utc(last) if last is not None else None

    # --- bans ---

    def is_banned(self, group_id: int, user_id: int) -> bool:
        return self.db.get(Ban, (group_id, user_id)) is not None

    def add_ban(self, group_id: int, user_id: int, reason: Optional[str], now: datetime) -> bool:
        """Insert a ban; an existing ban for the pair is left untouched."""
        if self.is_banned(group_id, user_id):
            return False
        self.db.add(Ban(group_id=group_id, user_id=user_id, reason=reason, created_at=now))
        self.db.flush()
        return True

    # --- join requests ---

    def create_join_request(self, group_id: int, requester_id: int, now: datetime) -> JoinRequest:
        jr = JoinRequest(
            group_id=group_id,
            requester_id=requester_id,
            status=JoinRequestStatus.pending,
            created_at=now,
        )
        self.db.add(jr)
        self.db.flush()
        return jr

    def get_join_request(self, request_id: int, for_update: bool = False) -> Optional[JoinRequest]:
        query = self.db.query(JoinRequest).filter(JoinRequest.id == request_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def find_pending_request(self, group_id: int, requester_id: int) -> Optional[JoinRequest]:
        return (
            self.db.query(JoinRequest)
            .filter(
                JoinRequest.group_id == group_id,
                JoinRequest.requester_id == requester_id,
                JoinRequest.status == JoinRequestStatus.pending,
            )
            .order_by(JoinRequest.id)
            .first()
        )

    def list_pending_requests(self, group_id: int) -> list[JoinRequest]:
        return (
            self.db.query(JoinRequest)
            .filter(JoinRequest.group_id == group_id, JoinRequest.status == JoinRequestStatus.pending)
            .order_by(JoinRequest.created_at.asc(), JoinRequest.id.asc())
            .all()
        )

    def set_request_status(self, jr: JoinRequest, new_status: JoinRequestStatus) -> None:
        jr.status = new_status
        self.db.flush()

    def decline_pending_requests(self, group_id: int, requester_id: int) -> int:
        declined = 0
        pending = (
            self.db.query(JoinRequest)
            .filter(
                JoinRequest.group_id == group_id,
                JoinRequest.requester_id == requester_id,
                JoinRequest.status == JoinRequestStatus.pending,
            )
            .all()
        )
        for jr in pending:
            jr.status = JoinRequestStatus.declined
            declined += 1
        self.db.flush()
        return declined

    # --- messages ---

    def add_message(
        self, group_id: int, sender_id: int, ciphertext: str, nonce: str, now: datetime
    ) -> Message:
        message = Message(
            group_id=group_id,
            sender_id=sender_id,
            ciphertext=ciphertext,
            nonce=nonce,
            created_at=now,
        )
        self.db.add(message)
        self.db.flush()
        return message

    def list_messages(self, group_id: int, limit: int, before: Optional[datetime] = None) -> list[Message]:
        """Newest first; ``before`` is exclusive."""
        query = self.db.query(Message).filter(Message.group_id == group_id)
        if before is not None:
            query = query.filter(Message.created_at < as_utc(before))
        return query.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit).all()
