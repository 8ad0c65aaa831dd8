# app/routers/leads.py
from __future__ import annotations

import logging
import math
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, File
from fastapi.responses import StreamingResponse
from sqlalchemy import select, func, or_, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_async_session
from app.db.models import Lead, LeadStatus, Comment, Appointment, User, utcnow
from app.core.roles import get_current_user, require_admin
from app.schemas import Msg, ImportResult
from app.schemas.lead import LeadCreate, LeadUpdate, LeadOut, LeadIdsIn, LeadAssignIn
from app.schemas.client import ConvertLeadIn
from app.services import clients as clients_service
from app.services.csv_import import parse_leads_csv
from app.services.excel_export import build_leads_excel

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/leads", tags=["leads"])


def lead_out(lead: Lead, assigned_username: Optional[str] = None) -> LeadOut:
    return LeadOut(
        id=lead.id,
        first_name=lead.first_name,
        last_name=lead.last_name,
        email=lead.email,
        phone=lead.phone,
        mobile_phone=lead.mobile_phone,
        address=lead.address,
        status=lead.status.value,
        assigned_to=lead.assigned_to,
        assigned_username=assigned_username,
        created_at=lead.created_at,
        updated_at=lead.updated_at,
    )


def _parse_status(value: str) -> LeadStatus:
    try:
        return LeadStatus(value)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Statut invalide. Valeurs acceptées: {', '.join(s.value for s in LeadStatus)}",
        )


def _ids_or_400(ids: List[int]) -> List[int]:
    if not ids:
        raise HTTPException(status_code=400, detail="IDs de leads manquants")
    return ids


def _leads_query():
    return (
        select(Lead, User.username)
        .outerjoin(User, User.id == Lead.assigned_to)
    )


# =========================================================
# LISTES
# =========================================================
@router.get("")
async def list_leads(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=500),
    status: Optional[str] = None,
    search: Optional[str] = None,
    assigned_to: Optional[int] = None,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    conds: list = []
    if not current_user.is_admin:
        conds.append(Lead.assigned_to == current_user.id)
    elif assigned_to:
        conds.append(Lead.assigned_to == assigned_to)

    if status:
        conds.append(Lead.status == _parse_status(status))
    if search:
        like = f"%{search.strip()}%"
        conds.append(or_(
            Lead.first_name.ilike(like),
            Lead.last_name.ilike(like),
            Lead.phone.ilike(like),
            Lead.mobile_phone.ilike(like),
            Lead.email.ilike(like),
            Lead.address.ilike(like),
        ))

    q = (
        _leads_query()
        .where(*conds)
        .order_by(Lead.updated_at.desc(), Lead.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    leads = [lead_out(l, u) for l, u in (await session.execute(q)).all()]

    if search:
        return leads

    total = (await session.execute(select(func.count(Lead.id)).where(*conds))).scalar_one()
    return {
        "leads": leads,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if total else 0,
        },
    }


@router.get("/unassigned")
async def list_unassigned_leads(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=500),
    session: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin),
):
    cond = Lead.assigned_to.is_(None)
    rows = (
        await session.execute(
            select(Lead).where(cond).order_by(Lead.created_at.desc(), Lead.id.desc())
            .limit(limit).offset((page - 1) * limit)
        )
    ).scalars().all()
    total = (await session.execute(select(func.count(Lead.id)).where(cond))).scalar_one()
    return {
        "leads": [lead_out(l) for l in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if total else 0,
        },
    }


# =========================================================
# CRUD
# =========================================================
@router.post("", response_model=LeadOut, status_code=201)
async def create_lead(
    body: LeadCreate,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    first_name = (body.first_name or "").strip()
    last_name = (body.last_name or "").strip()
    if not first_name or not last_name:
        raise HTTPException(status_code=400, detail="Nom et prénom requis")

    lead = Lead(
        first_name=first_name,
        last_name=last_name,
        email=body.email,
        phone=body.phone,
        mobile_phone=body.mobile_phone,
        address=body.address,
        status=_parse_status(body.status) if body.status else LeadStatus.nouveau,
        assigned_to=current_user.id,
    )
    session.add(lead)
    await session.commit()
    await session.refresh(lead)
    return lead_out(lead, current_user.username)


@router.patch("/{lead_id}", response_model=LeadOut)
async def update_lead(
    lead_id: int,
    body: LeadUpdate,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    lead = await session.get(Lead, lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead introuvable")

    data = {k: v for k, v in body.model_dump(exclude_unset=True).items() if k != "assigned_to"}
    if not data:
        raise HTTPException(status_code=400, detail="Aucune donnée à mettre à jour")

    if data.get("status"):
        lead.status = _parse_status(data.pop("status"))
    data.pop("status", None)

    for field in ("first_name", "last_name"):
        if field in data:
            value = (data.pop(field) or "").strip()
            if not value:
                raise HTTPException(status_code=400, detail="Nom et prénom requis")
            setattr(lead, field, value)

    for field, value in data.items():
        setattr(lead, field, value)
    lead.updated_at = utcnow()

    await session.commit()
    await session.refresh(lead)

    usernames = await clients_service.usernames_by_id(session, [lead.assigned_to])
    return lead_out(lead, usernames.get(lead.assigned_to))


# =========================================================
# ACTIONS GROUPÉES
# =========================================================
@router.post("/assign", response_model=Msg)
async def assign_leads(
    body: LeadAssignIn,
    session: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin),
):
    ids = _ids_or_400(body.lead_ids)
    if body.user_id and not await session.get(User, body.user_id):
        raise HTTPException(status_code=404, detail="Utilisateur introuvable")

    await session.execute(
        update(Lead).where(Lead.id.in_(ids)).values(assigned_to=body.user_id or None, updated_at=utcnow())
    )
    await session.commit()
    return {"message": f"{len(ids)} lead(s) attribué(s)"}


@router.post("/recycle", response_model=Msg)
async def recycle_leads(
    body: LeadIdsIn,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Supprime commentaires et RDV, remet le lead en 'nouveau' non attribué."""
    ids = _ids_or_400(body.lead_ids)

    await session.execute(delete(Comment).where(Comment.lead_id.in_(ids)))
    await session.execute(delete(Appointment).where(Appointment.lead_id.in_(ids)))
    await session.execute(
        update(Lead)
        .where(Lead.id.in_(ids))
        .values(status=LeadStatus.nouveau, assigned_to=None, updated_at=utcnow())
    )
    await session.commit()
    return {"message": f"{len(ids)} lead(s) recyclé(s)"}


@router.delete("/bulk", response_model=Msg)
async def bulk_delete_leads(
    body: LeadIdsIn,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    ids = _ids_or_400(body.lead_ids)
    await session.execute(delete(Lead).where(Lead.id.in_(ids)))
    await session.commit()
    logger.info("%s lead(s) supprimé(s) par %s", len(ids), current_user.username)
    return {"message": f"{len(ids)} lead(s) supprimé(s)"}


# =========================================================
# IMPORT / EXPORT
# =========================================================
@router.post("/import", response_model=ImportResult)
async def import_leads(
    file: UploadFile = File(...),
    session: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin),
):
    """
    CSV séparé par ',' : first_name,last_name,email,phone[,mobile_phone,address].
    Les lignes sans nom ou prénom sont signalées, pas bloquantes.
    """
    content = await file.read()
    try:
        rows, errors = parse_leads_csv(content)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    for row in rows:
        session.add(Lead(
            first_name=row["first_name"],
            last_name=row["last_name"],
            email=row.get("email"),
            phone=row.get("phone"),
            mobile_phone=row.get("mobile_phone"),
            address=row.get("address"),
            status=LeadStatus.nouveau,
        ))
    await session.commit()

    logger.info("[IMPORT LEADS] %s lead(s) importé(s), %s ligne(s) ignorée(s)", len(rows), len(errors))
    return {
        "message": f"{len(rows)} lead(s) importé(s)",
        "imported": len(rows),
        "errors": errors,
    }


@router.get("/export/excel")
async def export_leads_excel(
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    q = _leads_query().order_by(Lead.updated_at.desc(), Lead.id.desc())
    if not current_user.is_admin:
        q = q.where(Lead.assigned_to == current_user.id)

    rows = [lead_out(l, u).model_dump() for l, u in (await session.execute(q)).all()]

    buffer = build_leads_excel(rows)
    filename = f"leads_export_{date.today().isoformat()}.xlsx"
    return StreamingResponse(
        buffer,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# =========================================================
# CONVERSION EN CLIENT
# =========================================================
async def convert_lead_request(
    session: AsyncSession,
    lead_id: int,
    body: ConvertLeadIn,
    current_user: User,
) -> dict:
    if not body.type_produit:
        raise HTTPException(status_code=400, detail="type_produit requis")
    t = clients_service.validate_type(body.type_produit)
    if t is None:
        raise HTTPException(
            status_code=400,
            detail=f"Type de produit invalide. Valeurs acceptées: {clients_service.VALID_TYPES}",
        )

    lead = await session.get(Lead, lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead introuvable")

    return await clients_service.convert_lead(
        session,
        lead,
        t,
        current_user,
        donnees_techniques=body.donnees_techniques,
        societe=body.societe,
    )


@router.post("/{lead_id}/convert", status_code=201)
async def convert_lead(
    lead_id: int,
    body: ConvertLeadIn,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Crée un client + un produit, y déplace commentaires et RDV, puis supprime le lead."""
    return await convert_lead_request(session, lead_id, body, current_user)
