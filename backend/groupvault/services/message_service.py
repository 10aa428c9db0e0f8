"""Message pipeline: membership check, key unwrap, encrypt/decrypt, persist.

Plaintext exists only in the returned ``MessageOut`` objects; the database
sees ciphertext and nonce alone.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from groupvault.crypto import KeyEnvelope, decrypt_message, encrypt_message
from groupvault.database import transactional
from groupvault.errors import (
    AuthenticationFailed,
    DecryptionFailed,
    InvalidEncoding,
    NotAMember,
    ValidationError,
)
from groupvault.models.group import as_utc, resolve_now
from groupvault.models.message import Message
from groupvault.repository import GroupRepository
from groupvault.schemas.message import MessageOut
from groupvault.services.group_service import clamp_limit, require_live_group

logger = logging.getLogger(__name__)


def _ensure_member(repo: GroupRepository, group_id: int, user_id: int) -> None:
    if not repo.is_member(group_id, user_id):
        raise NotAMember("Not a group member")


def _group_key(repo: GroupRepository, envelope: KeyEnvelope, group_id: int) -> bytes:
    group = require_live_group(repo, group_id)
    return envelope.unwrap(group.wrapped_key, group.wrap_nonce)


def _to_out(message: Message, text: str) -> MessageOut:
    return MessageOut(
        id=message.id,
        group_id=message.group_id,
        sender_id=message.sender_id,
        text=text,
        created_at=as_utc(message.created_at),
    )


@transactional
def send_message(
    db: Session,
    envelope: KeyEnvelope,
    group_id: int,
    sender_id: int,
    text: str,
    now: Optional[datetime] = None,
) -> MessageOut:
    if not text:
        raise ValidationError("text required")

    repo = GroupRepository(db)
    _ensure_member(repo, group_id, sender_id)
    key = _group_key(repo, envelope, group_id)

    ciphertext, nonce = encrypt_message(key, text.encode("utf-8"))
    message = repo.add_message(group_id, sender_id, ciphertext, nonce, resolve_now(now))
    logger.info("Message %s sent to group %s by user %s", message.id, group_id, sender_id)
    return _to_out(message, text)


@transactional
def list_messages(
    db: Session,
    envelope: KeyEnvelope,
    group_id: int,
    requester_id: int,
    limit: Optional[int] = None,
    before: Optional[datetime] = None,
) -> list[MessageOut]:
    """Newest first. One undecryptable row fails the whole page."""
    repo = GroupRepository(db)
    _ensure_member(repo, group_id, requester_id)
    key = _group_key(repo, envelope, group_id)

    out = []
    for message in repo.list_messages(group_id, clamp_limit(limit), before):
        try:
            text = decrypt_message(key, message.ciphertext, message.nonce).decode("utf-8")
        except (AuthenticationFailed, InvalidEncoding, UnicodeDecodeError) as exc:
            logger.error("Message %s in group %s failed to decrypt", message.id, group_id)
            raise DecryptionFailed(message.id) from exc
        out.append(_to_out(message, text))
    return out
