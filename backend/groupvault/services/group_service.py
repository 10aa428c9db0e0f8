"""Group access-control engine.

Responsibilities:
- Creation: validate input, seal a fresh group key, owner becomes first member
- Join: bans first, then idempotent membership, then open-vs-private admission
- Private groups: cooldown after a voluntary leave, otherwise a pending JoinRequest
- Owner-only actions: transfer, delete (soft, sole member only), banish
- Every public function runs as one unit of work with the group row locked
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from groupvault.config import settings
from groupvault.crypto import KeyEnvelope
from groupvault.database import transactional
from groupvault.errors import (
    Banned,
    CannotBanishOwner,
    CooldownActive,
    Forbidden,
    GroupFull,
    NotAMember,
    NotFound,
    NotSoleMember,
    OwnerCannotLeave,
    ValidationError,
)
from groupvault.models.group import DepartureReason, Group, GroupKind, resolve_now
from groupvault.repository import GroupRepository
from groupvault.schemas.group import JoinResult, JoinStatus

logger = logging.getLogger(__name__)

DEFAULT_MAX_MEMBERS = 100
MAX_MEMBERS_LIMIT = 1000
DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 100
MAX_NAME_LENGTH = 150


def clamp_limit(limit: Optional[int]) -> int:
    """Page size in (0, 100]; anything else falls back to the default."""
    if limit is None or limit <= 0 or limit > MAX_LIST_LIMIT:
        return DEFAULT_LIST_LIMIT
    return limit


def cooldown_period() -> timedelta:
    return timedelta(hours=settings.JOIN_COOLDOWN_HOURS)


def require_live_group(repo: GroupRepository, group_id: int, for_update: bool = False) -> Group:
    group = repo.get_live_group(group_id, for_update=for_update)
    if group is None:
        raise NotFound("Group not found")
    return group


def require_owner(group: Group, user_id: int, action: str) -> None:
    if group.owner_id != user_id:
        raise Forbidden(f"Only the group owner may {action}")


@transactional
def create_group(
    db: Session,
    envelope: KeyEnvelope,
    name: str,
    owner_id: int,
    kind: str = GroupKind.open.value,
    max_members: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Group:
    """Create a group with a freshly wrapped key; the owner is inserted as first member."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Group name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Group name must be at most {MAX_NAME_LENGTH} characters")
    try:
        group_kind = GroupKind(kind)
    except ValueError:
        raise ValidationError("kind must be 'open' or 'private'")
    if max_members is None or not 0 < max_members <= MAX_MEMBERS_LIMIT:
        max_members = DEFAULT_MAX_MEMBERS

    wrapped_key, wrap_nonce = envelope.seal_new_group_key()
    now = resolve_now(now)

    repo = GroupRepository(db)
    group = repo.create_group(
        name=name,
        owner_id=owner_id,
        kind=group_kind,
        max_members=max_members,
        wrapped_key=wrapped_key,
        wrap_nonce=wrap_nonce,
        now=now,
    )
    repo.add_member(group.id, owner_id, now)
    logger.info("Created %s group %s (%r) owned by user %s", group_kind.value, group.id, name, owner_id)
    return group


@transactional
def get_group(db: Session, group_id: int) -> Group:
    return require_live_group(GroupRepository(db), group_id)


@transactional
def list_public_groups(db: Session, limit: Optional[int] = None) -> list[Group]:
    return GroupRepository(db).list_public_groups(clamp_limit(limit))


@transactional
def list_owned_groups(db: Session, owner_id: int) -> list[Group]:
    return GroupRepository(db).list_owned_groups(owner_id)


def _admit_to_open_group(repo: GroupRepository, group: Group, user_id: int, now: datetime) -> JoinResult:
    if repo.count_members(group.id) >= group.max_members:
        raise GroupFull(f"Group has reached its limit of {group.max_members} members")
    repo.add_member(group.id, user_id, now)
    logger.info("User %s joined open group %s", user_id, group.id)
    return JoinResult(status=JoinStatus.joined)


def _request_private_admission(
    repo: GroupRepository, group: Group, user_id: int, now: datetime
) -> JoinResult:
    last_left = repo.last_left_at(group.id, user_id)
    if last_left is not None:
        retry_after = last_left + cooldown_period()
        if now < retry_after:
            logger.info("User %s rejoin of group %s blocked until %s", user_id, group.id, retry_after)
            raise CooldownActive(retry_after)

    jr = repo.find_pending_request(group.id, user_id)
    if jr is None:
        jr = repo.create_join_request(group.id, user_id, now)
        logger.info("JoinRequest %s created for group %s by user %s", jr.id, group.id, user_id)
    return JoinResult(status=JoinStatus.requested, join_request_id=jr.id)


@transactional
def join(db: Session, group_id: int, user_id: int, now: Optional[datetime] = None) -> JoinResult:
    """Ban check, membership check, capacity check and insert under one group lock."""
    repo = GroupRepository(db)
    group = require_live_group(repo, group_id, for_update=True)

    if repo.is_banned(group.id, user_id):
        raise Banned("User is banned from this group")
    if repo.is_member(group.id, user_id):
        return JoinResult(status=JoinStatus.member)

    now = resolve_now(now)
    if group.kind == GroupKind.open:
        return _admit_to_open_group(repo, group, user_id, now)
    if group.kind == GroupKind.private:
        return _request_private_admission(repo, group, user_id, now)
    raise AssertionError(f"unhandled group kind {group.kind!r}")


@transactional
def leave(db: Session, group_id: int, user_id: int, now: Optional[datetime] = None) -> None:
    """Remove a membership and log the departure that starts the rejoin cooldown."""
    repo = GroupRepository(db)
    group = require_live_group(repo, group_id, for_update=True)

    if not repo.is_member(group.id, user_id):
        raise NotAMember("User is not a member of this group")
    if group.owner_id == user_id and repo.count_members(group.id) > 1:
        raise OwnerCannotLeave(
            "Owner cannot leave while other members remain; transfer ownership or delete the group"
        )

    repo.remove_member(group.id, user_id)
    repo.record_departure(group.id, user_id, DepartureReason.left, resolve_now(now))
    logger.info("User %s left group %s", user_id, group.id)


@transactional
def transfer_owner(db: Session, group_id: int, current_owner_id: int, new_owner_id: int) -> Group:
    repo = GroupRepository(db)
    group = require_live_group(repo, group_id, for_update=True)
    require_owner(group, current_owner_id, "transfer ownership")

    if not repo.is_member(group.id, new_owner_id):
        raise NotAMember("New owner must be a current member")

    repo.set_owner(group, new_owner_id)
    logger.info("Group %s ownership transferred from user %s to user %s", group.id, current_owner_id, new_owner_id)
    return group


@transactional
def delete_group(db: Session, group_id: int, owner_id: int, now: Optional[datetime] = None) -> None:
    """Soft delete; messages and membership history are kept."""
    repo = GroupRepository(db)
    group = require_live_group(repo, group_id, for_update=True)
    require_owner(group, owner_id, "delete the group")

    if repo.count_members(group.id) > 1:
        raise NotSoleMember("Group can only be deleted when the owner is the sole member")

    repo.soft_delete(group, resolve_now(now))
    logger.info("Group %s deleted by owner %s", group.id, owner_id)


@transactional
def banish(
    db: Session,
    group_id: int,
    owner_id: int,
    target_user_id: int,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> None:
    """Ban a user for good; works whether or not the target is currently a member."""
    repo = GroupRepository(db)
    group = require_live_group(repo, group_id, for_update=True)
    require_owner(group, owner_id, "banish members")

    if target_user_id == group.owner_id:
        raise CannotBanishOwner("The owner cannot be banished")

    now = resolve_now(now)
    repo.add_ban(group.id, target_user_id, reason, now)
    was_member = repo.remove_member(group.id, target_user_id)
    repo.record_departure(group.id, target_user_id, DepartureReason.banished, now)
    declined = repo.decline_pending_requests(group.id, target_user_id)
    logger.info(
        "User %s banished from group %s by owner %s (was_member=%s, declined_requests=%d)",
        target_user_id, group.id, owner_id, was_member, declined,
    )
