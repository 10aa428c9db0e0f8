"""Join-request workflow for private groups: list, approve, decline.

All three are owner-only. Requests move ``pending -> approved | declined``
exactly once; approving adds the membership in the same transaction.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from groupvault.database import transactional
from groupvault.errors import Banned, GroupFull, InvalidState, NotFound, RequestMismatch
from groupvault.models.group import Group, resolve_now
from groupvault.models.join_request import JoinRequest, JoinRequestStatus
from groupvault.repository import GroupRepository
from groupvault.services.group_service import require_live_group, require_owner

logger = logging.getLogger(__name__)


def _require_pending_request(repo: GroupRepository, group: Group, request_id: int) -> JoinRequest:
    jr = repo.get_join_request(request_id, for_update=True)
    if jr is None:
        raise NotFound("Join request not found")
    if jr.group_id != group.id:
        raise RequestMismatch("Join request does not belong to this group")
    if jr.status != JoinRequestStatus.pending:
        raise InvalidState(f"Join request is already {jr.status.value}")
    return jr


@transactional
def list_pending(db: Session, group_id: int, owner_id: int) -> list[JoinRequest]:
    """Pending requests, oldest first."""
    repo = GroupRepository(db)
    group = require_live_group(repo, group_id)
    require_owner(group, owner_id, "view join requests")
    return repo.list_pending_requests(group.id)


@transactional
def approve(
    db: Session,
    group_id: int,
    owner_id: int,
    request_id: int,
    now: Optional[datetime] = None,
) -> JoinRequest:
    """Mark a pending request approved and admit the requester."""
    repo = GroupRepository(db)
    group = require_live_group(repo, group_id, for_update=True)
    require_owner(group, owner_id, "approve join requests")
    jr = _require_pending_request(repo, group, request_id)

    if repo.is_banned(group.id, jr.requester_id):
        raise Banned("Requester has been banned from this group")
    if not repo.is_member(group.id, jr.requester_id) and repo.count_members(group.id) >= group.max_members:
        raise GroupFull(f"Group has reached its limit of {group.max_members} members")

    repo.set_request_status(jr, JoinRequestStatus.approved)
    repo.add_member(group.id, jr.requester_id, resolve_now(now))
    logger.info("JoinRequest %s approved; user %s joined group %s", jr.id, jr.requester_id, group.id)
    return jr


@transactional
def decline(db: Session, group_id: int, owner_id: int, request_id: int) -> JoinRequest:
    """Decline a pending request. No cooldown follows; the user may ask again."""
    repo = GroupRepository(db)
    group = require_live_group(repo, group_id, for_update=True)
    require_owner(group, owner_id, "decline join requests")
    jr = _require_pending_request(repo, group, request_id)

    repo.set_request_status(jr, JoinRequestStatus.declined)
    logger.info("JoinRequest %s declined for group %s", jr.id, group.id)
    return jr
