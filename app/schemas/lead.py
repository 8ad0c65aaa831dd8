# app/schemas/lead.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class LeadCreate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    mobile_phone: Optional[str] = None
    address: Optional[str] = None
    status: Optional[str] = None
    assigned_to: Optional[int] = None


class LeadUpdate(LeadCreate):
    pass


class LeadOut(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    mobile_phone: Optional[str] = None
    address: Optional[str] = None
    status: str
    assigned_to: Optional[int] = None
    assigned_username: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LeadIdsIn(BaseModel):
    lead_ids: List[int] = Field(default_factory=list)


class LeadAssignIn(LeadIdsIn):
    user_id: Optional[int] = None
