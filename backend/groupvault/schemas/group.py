"""Pydantic schemas for Groups. Key material is deliberately absent."""
from __future__ import annotations
import enum
from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from groupvault.models.group import GroupKind


class GroupCreate(BaseModel):
    name: str
    kind: str = "open"
    max_members: Optional[int] = None


class GroupOut(BaseModel):
    id: int
    name: str
    owner_id: int
    kind: GroupKind
    max_members: int
    created_at: datetime

    model_config = {"from_attributes": True}


class GroupListOut(BaseModel):
    public: list[GroupOut] = []
    owned: list[GroupOut] = []


class JoinStatus(str, enum.Enum):
    member = "member"
    joined = "joined"
    requested = "requested"


class JoinResult(BaseModel):
    status: JoinStatus
    join_request_id: Optional[int] = None


class TransferOwnerRequest(BaseModel):
    new_owner_id: int


class BanishRequest(BaseModel):
    user_id: int
    reason: Optional[str] = None
