"""Group access-control API routes."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from groupvault.crypto import KeyEnvelope
from groupvault.database import get_db
from groupvault.deps import get_current_user_id, get_envelope, get_optional_user_id
from groupvault.schemas.group import (
    BanishRequest,
    GroupCreate,
    GroupListOut,
    GroupOut,
    JoinResult,
    TransferOwnerRequest,
)
from groupvault.services import group_service

router = APIRouter()


@router.post("/", response_model=GroupOut, status_code=status.HTTP_201_CREATED)
def create_group(
    payload: GroupCreate,
    db: Session = Depends(get_db),
    envelope: KeyEnvelope = Depends(get_envelope),
    user_id: int = Depends(get_current_user_id),
):
    """Create a group. The caller becomes owner and first member."""
    return group_service.create_group(
        db,
        envelope,
        name=payload.name,
        owner_id=user_id,
        kind=payload.kind,
        max_members=payload.max_members,
    )


@router.get("/", response_model=GroupListOut)
def list_groups(
    limit: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user_id: Optional[int] = Depends(get_optional_user_id),
):
    """Public (open) groups, plus the caller's own groups when identified."""
    public = group_service.list_public_groups(db, limit)
    owned = group_service.list_owned_groups(db, user_id) if user_id else []
    return GroupListOut(
        public=[GroupOut.model_validate(g) for g in public],
        owned=[GroupOut.model_validate(g) for g in owned],
    )


@router.get("/{group_id}", response_model=GroupOut)
def get_group(group_id: int, db: Session = Depends(get_db)):
    return group_service.get_group(db, group_id)


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_group(
    group_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Soft-delete a group; only the owner, and only as sole member."""
    group_service.delete_group(db, group_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{group_id}/join", response_model=JoinResult)
def join_group(
    group_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Join an open group, or file a join request for a private one."""
    return group_service.join(db, group_id, user_id)


@router.post("/{group_id}/leave", status_code=status.HTTP_204_NO_CONTENT)
def leave_group(
    group_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    group_service.leave(db, group_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{group_id}/transfer-owner", response_model=GroupOut)
def transfer_owner(
    group_id: int,
    payload: TransferOwnerRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return group_service.transfer_owner(db, group_id, user_id, payload.new_owner_id)


@router.post("/{group_id}/banish", status_code=status.HTTP_204_NO_CONTENT)
def banish_user(
    group_id: int,
    payload: BanishRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Ban a user permanently and remove them if they are a member."""
    group_service.banish(db, group_id, user_id, payload.user_id, payload.reason)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
