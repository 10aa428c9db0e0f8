"""Pydantic schemas for JoinRequests."""
from datetime import datetime
from pydantic import BaseModel

from groupvault.models.join_request import JoinRequestStatus


class JoinRequestOut(BaseModel):
    id: int
    group_id: int
    requester_id: int
    status: JoinRequestStatus
    created_at: datetime

    model_config = {"from_attributes": True}
