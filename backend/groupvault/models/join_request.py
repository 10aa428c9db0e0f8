"""JoinRequest ORM model."""
import enum

from sqlalchemy import Column, Integer, DateTime, ForeignKey, Enum as SAEnum

from groupvault.database import Base
from groupvault.models.group import utcnow


class JoinRequestStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    declined = "declined"


class JoinRequest(Base):
    __tablename__ = "join_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    group_id = Column(Integer, ForeignKey("groups.id"), nullable=False, index=True)
    requester_id = Column(Integer, nullable=False)
    status = Column(SAEnum(JoinRequestStatus), nullable=False, default=JoinRequestStatus.pending)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
