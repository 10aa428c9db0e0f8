"""Message ORM model — ciphertext only, plaintext is never stored."""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index

from groupvault.database import Base
from groupvault.models.group import utcnow


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (Index("ix_messages_group_created", "group_id", "created_at", "id"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    group_id = Column(Integer, ForeignKey("groups.id"), nullable=False)
    sender_id = Column(Integer, nullable=False)
    ciphertext = Column(Text, nullable=False)
    nonce = Column(String(32), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
