"""Message API routes — plaintext in, plaintext out, ciphertext at rest."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from groupvault.crypto import KeyEnvelope
from groupvault.database import get_db
from groupvault.deps import get_current_user_id, get_envelope
from groupvault.schemas.message import MessageCreate, MessageOut
from groupvault.services import message_service

router = APIRouter()


@router.post("/{group_id}/messages", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
def send_message(
    group_id: int,
    payload: MessageCreate,
    db: Session = Depends(get_db),
    envelope: KeyEnvelope = Depends(get_envelope),
    user_id: int = Depends(get_current_user_id),
):
    return message_service.send_message(db, envelope, group_id, user_id, payload.text)


@router.get("/{group_id}/messages", response_model=list[MessageOut])
def list_messages(
    group_id: int,
    limit: Optional[int] = Query(None),
    before: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    envelope: KeyEnvelope = Depends(get_envelope),
    user_id: int = Depends(get_current_user_id),
):
    """Newest first; pass the oldest ``created_at`` seen as ``before`` to page back."""
    return message_service.list_messages(db, envelope, group_id, user_id, limit=limit, before=before)
