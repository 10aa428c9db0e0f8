"""Join-request API routes — owner-only admission for private groups."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from groupvault.database import get_db
from groupvault.deps import get_current_user_id
from groupvault.schemas.join_request import JoinRequestOut
from groupvault.services import join_request_service

router = APIRouter()


@router.get("/{group_id}/join-requests", response_model=list[JoinRequestOut])
def list_join_requests(
    group_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Pending requests, oldest first."""
    return join_request_service.list_pending(db, group_id, user_id)


@router.post("/{group_id}/join-requests/{request_id}/approve", response_model=JoinRequestOut)
def approve_join_request(
    group_id: int,
    request_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return join_request_service.approve(db, group_id, user_id, request_id)


@router.post("/{group_id}/join-requests/{request_id}/decline", response_model=JoinRequestOut)
def decline_join_request(
    group_id: int,
    request_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return join_request_service.decline(db, group_id, user_id, request_id)
