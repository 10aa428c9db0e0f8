"""Pydantic schemas for Messages — plaintext only ever lives in these."""
from datetime import datetime
from pydantic import BaseModel


class MessageCreate(BaseModel):
    text: str


class MessageOut(BaseModel):
    id: int
    group_id: int
    sender_id: int
    text: str
    created_at: datetime
