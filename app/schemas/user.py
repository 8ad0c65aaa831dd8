# app/schemas/user.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UserCreate(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    allowed_ip: Optional[str] = None
    ip_restriction_enabled: bool = False


class UserUpdate(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    allowed_ip: Optional[str] = None
    ip_restriction_enabled: Optional[bool] = None


class UserOut(BaseModel):
    id: int
    username: str
    role: str
    allowed_ip: Optional[str] = None
    ip_restriction_enabled: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserLite(BaseModel):
    id: int
    username: str

    class Config:
        from_attributes = True
