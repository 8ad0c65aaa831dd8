# app/schemas/appointment.py
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class AppointmentCreate(BaseModel):
    lead_id: Optional[int] = None
    client_id: Optional[int] = None
    user_id: Optional[int] = None  # pris en compte pour un admin uniquement
    title: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None


class AppointmentUpdate(BaseModel):
    title: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None


class AppointmentOut(BaseModel):
    id: int
    lead_id: Optional[int] = None
    client_id: Optional[int] = None
    user_id: int
    username: Optional[str] = None
    title: str
    date: date
    time: str
    location: Optional[str] = None
    notes: Optional[str] = None
    # Nom affiché : "Prénom Nom" du lead ou société du client
    contact_name: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("time", mode="before")
    @classmethod
    def _hhmm(cls, v):
        return str(v)[:5] if v is not None else v
