# app/routers/appointments.py
from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_async_session
from app.db.models import Appointment, ClientBase, Lead, User
from app.core.roles import get_current_user
from app.schemas import Msg
from app.schemas.appointment import (
    AppointmentCreate,
    AppointmentUpdate,
    AppointmentOut,
)

router = APIRouter(prefix="/appointments", tags=["appointments"])


# =========================================================
#   Helpers date / heure
# =========================================================
def parse_date(value: str | None) -> date:
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="Date invalide (format attendu AAAA-MM-JJ)")


def parse_time(value: str | None) -> str:
    raw = str(value or "").strip()
    try:
        return datetime.strptime(raw[:5], "%H:%M").strftime("%H:%M")
    except ValueError:
        raise HTTPException(status_code=400, detail="Heure invalide (format attendu HH:MM)")


def appointments_query():
    """RDV + télépro + nom du contact (lead ou société), triés par date puis heure."""
    return (
        select(Appointment, User.username, Lead.first_name, Lead.last_name, ClientBase.societe)
        .join(User, User.id == Appointment.user_id)
        .outerjoin(Lead, Lead.id == Appointment.lead_id)
        .outerjoin(ClientBase, ClientBase.id == Appointment.client_base_id)
        .order_by(Appointment.date.asc(), Appointment.time.asc())
    )


def appointment_out(row) -> AppointmentOut:
    a, username, first_name, last_name, societe = row
    if first_name or last_name:
        contact = f"{first_name or ''} {last_name or ''}".strip()
    else:
        contact = societe
    return AppointmentOut(
        id=a.id,
        lead_id=a.lead_id,
        client_id=a.client_base_id,
        user_id=a.user_id,
        username=username,
        title=a.title,
        date=a.date,
        time=a.time,
        location=a.location,
        notes=a.notes,
        contact_name=contact,
        created_at=a.created_at,
    )


async def _load_one(session: AsyncSession, appointment_id: int) -> AppointmentOut:
    row = (await session.execute(appointments_query().where(Appointment.id == appointment_id))).one()
    return appointment_out(row)


async def _get_owned(session: AsyncSession, appointment_id: int, user: User) -> Appointment:
    appt = await session.get(Appointment, appointment_id)
    if not appt:
        raise HTTPException(status_code=404, detail="Rendez-vous introuvable")
    if appt.user_id != user.id and not user.is_admin:
        raise HTTPException(status_code=403, detail="Non autorisé")
    return appt


# =========================================================
#   GET /appointments
# =========================================================
@router.get("", response_model=List[AppointmentOut])
async def list_appointments(
    date_: Optional[str] = Query(None, alias="date"),
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    q = appointments_query()
    if not current_user.is_admin:
        q = q.where(Appointment.user_id == current_user.id)
    if date_:
        q = q.where(Appointment.date == parse_date(date_))
    return [appointment_out(r) for r in (await session.execute(q)).all()]


@router.get("/lead/{lead_id}", response_model=List[AppointmentOut])
async def list_lead_appointments(
    lead_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    q = appointments_query().where(Appointment.lead_id == lead_id)
    return [appointment_out(r) for r in (await session.execute(q)).all()]


# =========================================================
#   POST / PATCH / DELETE
# =========================================================
@router.post("", response_model=AppointmentOut, status_code=201)
async def create_appointment(
    body: AppointmentCreate,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    title = (body.title or "").strip()
    if (not body.lead_id and not body.client_id) or not title or not body.date or not body.time:
        raise HTTPException(status_code=400, detail="Données manquantes")

    if body.lead_id and not await session.get(Lead, body.lead_id):
        raise HTTPException(status_code=404, detail="Lead introuvable")
    if body.client_id and not await session.get(ClientBase, body.client_id):
        raise HTTPException(status_code=404, detail="Client introuvable")

    # Un télépro ne crée des RDV que pour lui-même
    user_id = current_user.id
    if current_user.is_admin and body.user_id:
        if not await session.get(User, body.user_id):
            raise HTTPException(status_code=404, detail="Utilisateur introuvable")
        user_id = body.user_id

    appt = Appointment(
        lead_id=body.lead_id or None,
        client_base_id=body.client_id or None,
        user_id=user_id,
        title=title,
        date=parse_date(body.date),
        time=parse_time(body.time),
        location=body.location,
        notes=body.notes,
    )
    session.add(appt)
    await session.commit()
    return await _load_one(session, appt.id)


@router.patch("/{appointment_id}", response_model=AppointmentOut)
async def update_appointment(
    appointment_id: int,
    body: AppointmentUpdate,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    appt = await _get_owned(session, appointment_id, current_user)

    data = body.model_dump(exclude_unset=True)
    if not any(v is not None for v in data.values()):
        raise HTTPException(status_code=400, detail="Aucune donnée à mettre à jour")

    if data.get("title"):
        appt.title = data["title"].strip()
    if data.get("date"):
        appt.date = parse_date(data["date"])
    if data.get("time"):
        appt.time = parse_time(data["time"])
    if "location" in data:
        appt.location = data["location"]
    if "notes" in data:
        appt.notes = data["notes"]

    await session.commit()
    return await _load_one(session, appt.id)


@router.delete("/{appointment_id}", response_model=Msg)
async def delete_appointment(
    appointment_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    appt = await _get_owned(session, appointment_id, current_user)
    await session.delete(appt)
    await session.commit()
    return {"message": "Rendez-vous supprimé"}
