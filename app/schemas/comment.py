from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class CommentCreate(BaseModel):
    lead_id: Optional[int] = None
    content: Optional[str] = None


class CommentOut(BaseModel):
    id: int
    lead_id: Optional[int] = None
    client_base_id: Optional[int] = None
    user_id: int
    username: Optional[str] = None
    content: str
    created_at: Optional[datetime] = None
