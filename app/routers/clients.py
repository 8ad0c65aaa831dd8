# app/routers/clients.py
from __future__ import annotations

import logging
import math
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, File, Form
from fastapi.responses import StreamingResponse
from sqlalchemy import select, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_async_session
from app.db.models import (
    ClientBase,
    ClientProduit,
    Comment,
    Appointment,
    User,
    TypeProduit,
    CLIENT_BASE_FIELDS,
    DEFAULT_STATUT,
    utcnow,
)
from app.core.roles import get_current_user, require_admin
from app.schemas.client import (
    ClientCreate,
    ClientUpdate,
    ProduitIn,
    ProduitUpdate,
    AssignIn,
    BulkAssignIn,
    BulkDeleteProduitsIn,
    DuplicateIn,
    ConvertLeadIn,
    ClientCommentIn,
    ClientAppointmentIn,
)
from app.schemas.comment import CommentOut
from app.schemas.appointment import AppointmentOut
from app.services import clients as clients_service
from app.services.csv_import import parse_clients_csv
from app.services.excel_export import build_clients_excel
from app.routers.comments import comment_out, comments_query
from app.routers.appointments import appointments_query, appointment_out, parse_date, parse_time
from app.routers.leads import convert_lead_request

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clients", tags=["clients"])


# =========================================================
# Helpers
# =========================================================
def _type_or_400(value: Any) -> TypeProduit:
    t = clients_service.validate_type(value)
    if t is None:
        raise HTTPException(
            status_code=400,
            detail=f"Type de produit invalide. Valeurs acceptées: {clients_service.VALID_TYPES}",
        )
    return t


async def _get_base_or_404(session: AsyncSession, client_id: int) -> ClientBase:
    base = await session.get(ClientBase, client_id)
    if not base:
        raise HTTPException(status_code=404, detail="Client non trouvé")
    return base


async def _get_produit_or_404(session: AsyncSession, produit_id: int) -> ClientProduit:
    produit = await session.get(ClientProduit, produit_id)
    if not produit:
        raise HTTPException(status_code=404, detail="Produit introuvable")
    return produit


async def _check_assignee(session: AsyncSession, user_id: Optional[int]) -> None:
    if user_id and not await session.get(User, user_id):
        raise HTTPException(status_code=404, detail="Utilisateur introuvable")


async def _touch_base(session: AsyncSession, client_id: int) -> None:
    await session.execute(update(ClientBase).where(ClientBase.id == client_id).values(updated_at=utcnow()))


def _list_row(base: ClientBase, p: ClientProduit, assigned_username: Optional[str]) -> Dict[str, Any]:
    row = clients_service.base_to_dict(base)
    row.update({
        "produit_id": p.id,
        "type_produit": p.type_produit.value,
        "donnees_techniques": p.donnees_techniques or {},
        "statut": p.statut,
        "assigned_to": p.assigned_to,
        "assigned_username": assigned_username,
    })
    return row


def _scoped_conditions(
    current_user: User,
    *,
    search: Optional[str] = None,
    statut: Optional[str] = None,
    type_produit: Optional[str] = None,
    code_naf: Optional[str] = None,
    code_postal: Optional[str] = None,
    assigned_to: Optional[int] = None,
) -> list:
    conds: list = []
    # Télépro : uniquement ses produits
    if not current_user.is_admin:
        conds.append(ClientProduit.assigned_to == current_user.id)
    elif assigned_to:
        conds.append(ClientProduit.assigned_to == assigned_to)

    if statut:
        conds.append(ClientProduit.statut == statut)
    if type_produit:
        conds.append(ClientProduit.type_produit == _type_or_400(type_produit))
    if code_naf:
        conds.append(ClientBase.code_naf.ilike(f"%{code_naf}%"))
    if code_postal:
        conds.append(ClientBase.code_postal.ilike(f"%{code_postal}%"))
    if search:
        like = f"%{search.strip()}%"
        conds.append(or_(
            ClientBase.societe.ilike(like),
            ClientBase.telephone.ilike(like),
            ClientBase.adresse.ilike(like),
            ClientBase.nom_signataire.ilike(like),
            ClientBase.siret.ilike(like),
        ))
    return conds


def _rows_query(conds: list):
    return (
        select(ClientBase, ClientProduit, User.username)
        .join(ClientProduit, ClientProduit.client_base_id == ClientBase.id)
        .outerjoin(User, User.id == ClientProduit.assigned_to)
        .where(*conds)
        .order_by(ClientBase.updated_at.desc(), ClientProduit.type_produit.asc(), ClientProduit.id.asc())
    )


# =========================================================
# LISTE
# GET /clients
# =========================================================
@router.get("")
async def list_clients(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=500),
    search: Optional[str] = None,
    statut: Optional[str] = None,
    type_produit: Optional[str] = None,
    code_naf: Optional[str] = None,
    code_postal: Optional[str] = None,
    assigned_to: Optional[int] = None,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """
    Une ligne par produit (id = id de la fiche client, produit_id = id du produit).
    Avec `search`, renvoie directement le tableau ; sinon {clients, pagination}
    où total compte les fiches distinctes.
    """
    conds = _scoped_conditions(
        current_user,
        search=search,
        statut=statut,
        type_produit=type_produit,
        code_naf=code_naf,
        code_postal=code_postal,
        assigned_to=assigned_to,
    )

    q = _rows_query(conds).limit(limit).offset((page - 1) * limit)
    clients = [_list_row(b, p, u) for b, p, u in (await session.execute(q)).all()]

    if search:
        return clients

    total = (
        await session.execute(
            select(func.count(func.distinct(ClientBase.id)))
            .select_from(ClientBase)
            .join(ClientProduit, ClientProduit.client_base_id == ClientBase.id)
            .where(*conds)
        )
    ).scalar_one()

    return {
        "clients": clients,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if total else 0,
        },
    }


# =========================================================
# CRÉATION
# POST /clients
# =========================================================
@router.post("", status_code=201)
async def create_client(
    body: ClientCreate,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    if body.produits:
        produits_in = body.produits
    elif body.type_produit:
        # Ancienne forme : champs techniques dans donnees_techniques ou à plat
        tech = dict(body.model_extra or {})
        tech.update(body.donnees_techniques or {})
        produits_in = [ProduitIn(
            type_produit=body.type_produit,
            donnees_techniques=tech,
            statut=body.statut,
            assigned_to=body.assigned_to,
        )]
    else:
        raise HTTPException(status_code=400, detail="Au moins un produit requis (produits[] ou type_produit)")

    societe = (body.societe or "").strip()
    if not societe:
        raise HTTPException(status_code=400, detail="Société requise")

    seen: set[TypeProduit] = set()
    produits: List[ClientProduit] = []
    for p in produits_in:
        t = _type_or_400(p.type_produit)
        if t in seen:
            raise HTTPException(status_code=400, detail=f"Produit en double dans la requête : {t.value}")
        seen.add(t)
        await _check_assignee(session, p.assigned_to)
        produits.append(ClientProduit(
            type_produit=t,
            donnees_techniques=clients_service.filter_technical(t, p.donnees_techniques),
            statut=p.statut or DEFAULT_STATUT,
            assigned_to=p.assigned_to or current_user.id,
        ))

    data = {f: getattr(body, f) for f in CLIENT_BASE_FIELDS}
    data["societe"] = societe
    base = ClientBase(**data)
    session.add(base)
    await session.flush()

    for p in produits:
        p.client_base_id = base.id
        session.add(p)
    await session.commit()

    return {
        "id": base.id,
        "client_base_id": base.id,
        "societe": base.societe,
        "produits": [{"id": p.id, "type_produit": p.type_produit.value} for p in produits],
    }


# =========================================================
# IMPORT CSV (admin)
# POST /clients/import/csv
# =========================================================
@router.post("/import/csv")
async def import_clients_csv(
    file: UploadFile = File(...),
    type_produit: Optional[str] = Form(None),
    session: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin),
):
    """
    CSV séparé par ';', une fiche + un produit du type choisi par ligne.
    Une ligne sans société est signalée dans errors, les autres continuent.
    """
    t = _type_or_400(type_produit)

    content = await file.read()
    try:
        rows, errors = parse_clients_csv(content, t)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    imported = 0
    for row in rows:
        try:
            base = ClientBase(**row["base"])
            base.produits.append(ClientProduit(
                type_produit=t,
                donnees_techniques=row["donnees_techniques"],
                statut=row["statut"] or DEFAULT_STATUT,
                assigned_to=admin.id,
            ))
        except (TypeError, ValueError) as e:
            logger.exception("[IMPORT CSV] ligne %s", row["line"])
            errors.append(f"Ligne {row['line']}: {e}")
            continue
        session.add(base)
        imported += 1
    await session.commit()

    logger.info("[IMPORT CSV] %s client(s) %s importé(s), %s erreur(s)", imported, t.value, len(errors))

    if imported == 0 and errors:
        raise HTTPException(
            status_code=400,
            detail={"message": "Aucun client importé", "errors": errors},
        )

    return {
        "message": f"{imported} client(s) importé(s) avec succès",
        "imported": imported,
        "type_produit": t.value,
        "total": imported + len(errors),
        "errors": errors,
    }


# =========================================================
# EXPORT EXCEL
# GET /clients/export/excel
# =========================================================
@router.get("/export/excel")
async def export_clients_excel(
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    rows = [
        _list_row(b, p, u)
        for b, p, u in (await session.execute(_rows_query(_scoped_conditions(current_user)))).all()
    ]

    buffer = build_clients_excel(rows)
    filename = f"clients_export_{date.today().isoformat()}.xlsx"
    return StreamingResponse(
        buffer,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# =========================================================
# ATTRIBUTION (admin)
# =========================================================
@router.post("/bulk-assign")
async def bulk_assign(
    body: BulkAssignIn,
    session: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin),
):
    """clientIds = ids de produits."""
    if not body.clientIds or not body.userId:
        raise HTTPException(status_code=400, detail="Liste de clients et utilisateur requis")

    user = await session.get(User, body.userId)
    if not user:
        raise HTTPException(status_code=404, detail="Utilisateur introuvable")

    res = await session.execute(
        update(ClientProduit)
        .where(ClientProduit.id.in_(body.clientIds))
        .values(assigned_to=user.id, updated_at=utcnow())
    )
    await session.commit()

    count = res.rowcount or 0
    return {
        "message": f"{count} produit(s) attribué(s) à {user.username}",
        "assignedTo": user.username,
        "count": count,
    }


# =========================================================
# PRODUITS
# =========================================================
@router.post("/produits/bulk-delete")
async def bulk_delete_produits(
    body: BulkDeleteProduitsIn,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    if not body.produitIds:
        raise HTTPException(status_code=400, detail="Liste de produits requise")

    result = await clients_service.bulk_delete_produits(session, body.produitIds)
    logger.info(
        "Suppression groupée par %s : %s produit(s), %s client(s)",
        current_user.username, result["produitsDeleted"], result["clientsDeleted"],
    )
    return {
        "message": f"{result['produitsDeleted']} produit(s) supprimé(s)",
        **result,
    }


@router.patch("/produits/{produit_id}")
async def update_produit(
    produit_id: int,
    body: ProduitUpdate,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    produit = await _get_produit_or_404(session, produit_id)

    data = body.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=400, detail="Aucune donnée à mettre à jour")
    if "assigned_to" in data:
        await _check_assignee(session, data["assigned_to"])

    if data.get("type_produit") is not None:
        t = _type_or_400(data["type_produit"])
        if t != produit.type_produit:
            clash = (
                await session.execute(
                    select(ClientProduit.id).where(
                        ClientProduit.client_base_id == produit.client_base_id,
                        ClientProduit.type_produit == t,
                        ClientProduit.id != produit.id,
                    )
                )
            ).first()
            if clash:
                raise HTTPException(status_code=400, detail="Ce client possède déjà ce produit")
            produit.type_produit = t

    if "donnees_techniques" in data:
        produit.donnees_techniques = clients_service.filter_technical(
            produit.type_produit, data["donnees_techniques"]
        )
    elif "type_produit" in data:
        produit.donnees_techniques = clients_service.filter_technical(
            produit.type_produit, produit.donnees_techniques
        )
    if data.get("statut"):
        produit.statut = data["statut"]
    if "assigned_to" in data:
        produit.assigned_to = data["assigned_to"] or None

    await _touch_base(session, produit.client_base_id)
    await session.commit()
    await session.refresh(produit)

    usernames = await clients_service.usernames_by_id(session, [produit.assigned_to])
    return clients_service.produit_to_dict(produit, usernames)


@router.delete("/produits/{produit_id}")
async def delete_produit(
    produit_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    produit = await _get_produit_or_404(session, produit_id)
    client_id = produit.client_base_id

    client_deleted = await clients_service.delete_produit(session, produit)
    if client_deleted:
        return {
            "message": "Dernier produit supprimé : client supprimé",
            "client_deleted": True,
            "client_base_id": client_id,
        }
    return {"message": "Produit supprimé", "client_deleted": False, "client_base_id": client_id}


@router.post("/produits/{produit_id}/duplicate", status_code=201)
async def duplicate_produit(
    produit_id: int,
    body: DuplicateIn,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    if not body.type_produit:
        raise HTTPException(status_code=400, detail="type_produit requis")
    t = _type_or_400(body.type_produit)

    produit = await session.get(ClientProduit, produit_id)
    if not produit:
        raise HTTPException(status_code=404, detail="Produit source non trouvé")

    return await clients_service.duplicate_produit(session, produit, t, current_user)


# =========================================================
# CONVERSION LEAD (alias de POST /leads/{id}/convert)
# =========================================================
@router.post("/convert-from-lead/{lead_id}", status_code=201)
async def convert_from_lead(
    lead_id: int,
    body: ConvertLeadIn,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    return await convert_lead_request(session, lead_id, body, current_user)


# =========================================================
# FICHE CLIENT
# =========================================================
@router.get("/{client_id}")
async def get_client(
    client_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    base = await _get_base_or_404(session, client_id)
    produits = (
        await session.execute(
            select(ClientProduit)
            .where(ClientProduit.client_base_id == base.id)
            .order_by(ClientProduit.type_produit.asc())
        )
    ).scalars().all()
    usernames = await clients_service.usernames_by_id(session, [p.assigned_to for p in produits])

    out = clients_service.base_to_dict(base)
    out["produits"] = [clients_service.produit_to_dict(p, usernames) for p in produits]
    return out


@router.patch("/{client_id}")
async def update_client(
    client_id: int,
    body: ClientUpdate,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Champs communs uniquement (les produits se modifient via /clients/produits/{id})."""
    base = await _get_base_or_404(session, client_id)

    data = body.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=400, detail="Aucune donnée commune à mettre à jour")

    if "societe" in data and not (data["societe"] or "").strip():
        raise HTTPException(status_code=400, detail="Société requise")

    for field, value in data.items():
        setattr(base, field, value)
    base.updated_at = utcnow()

    await session.commit()
    await session.refresh(base)
    return clients_service.base_to_dict(base)


@router.delete("/{client_id}")
async def delete_client(
    client_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    base = await _get_base_or_404(session, client_id)
    await clients_service.delete_client(session, base)
    return {"message": "Client supprimé"}


@router.post("/{client_id}/produits", status_code=201)
async def add_produit(
    client_id: int,
    body: ProduitIn,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    if not body.type_produit:
        raise HTTPException(status_code=400, detail="type_produit requis")
    t = _type_or_400(body.type_produit)

    base = await _get_base_or_404(session, client_id)

    exists = (
        await session.execute(
            select(ClientProduit.id).where(
                ClientProduit.client_base_id == base.id,
                ClientProduit.type_produit == t,
            )
        )
    ).first()
    if exists:
        raise HTTPException(status_code=400, detail="Ce client possède déjà ce produit")

    await _check_assignee(session, body.assigned_to)

    produit = ClientProduit(
        client_base_id=base.id,
        type_produit=t,
        donnees_techniques=clients_service.filter_technical(t, body.donnees_techniques),
        statut=body.statut or DEFAULT_STATUT,
        assigned_to=body.assigned_to or current_user.id,
    )
    session.add(produit)
    base.updated_at = utcnow()
    await session.commit()
    await session.refresh(produit)

    usernames = await clients_service.usernames_by_id(session, [produit.assigned_to])
    return clients_service.produit_to_dict(produit, usernames)


@router.patch("/{produit_id}/assign")
async def assign_produit(
    produit_id: int,
    body: AssignIn,
    session: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin),
):
    produit = await _get_produit_or_404(session, produit_id)

    await _check_assignee(session, body.userId)
    produit.assigned_to = body.userId or None
    await session.commit()
    return {"message": "Produit attribué", "produit_id": produit.id, "assigned_to": produit.assigned_to}


@router.post("/{client_id}/duplicate", status_code=201)
async def duplicate_client(
    client_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    base = await _get_base_or_404(session, client_id)
    return await clients_service.duplicate_client(session, base, current_user)


# =========================================================
# COMMENTAIRES CLIENT
# =========================================================
@router.get("/{client_id}/comments", response_model=List[CommentOut])
async def list_client_comments(
    client_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    await _get_base_or_404(session, client_id)
    rows = (await session.execute(comments_query().where(Comment.client_base_id == client_id))).all()
    return [comment_out(c, username) for c, username in rows]


@router.post("/{client_id}/comments", response_model=CommentOut, status_code=201)
async def add_client_comment(
    client_id: int,
    body: ClientCommentIn,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    content = (body.content or "").strip()
    if not content:
        raise HTTPException(status_code=400, detail="Le contenu est requis")

    base = await _get_base_or_404(session, client_id)

    c = Comment(client_base_id=base.id, user_id=current_user.id, content=content)
    session.add(c)
    await session.commit()
    await session.refresh(c)
    return comment_out(c, current_user.username)


@router.delete("/{client_id}/comments/{comment_id}")
async def delete_client_comment(
    client_id: int,
    comment_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    c = await session.get(Comment, comment_id)
    if not c or c.client_base_id != client_id:
        raise HTTPException(status_code=404, detail="Commentaire introuvable")
    if c.user_id != current_user.id and not current_user.is_admin:
        raise HTTPException(status_code=403, detail="Non autorisé")

    await session.delete(c)
    await session.commit()
    return {"message": "Commentaire supprimé"}


# =========================================================
# RENDEZ-VOUS CLIENT
# =========================================================
@router.get("/{client_id}/appointments", response_model=List[AppointmentOut])
async def list_client_appointments(
    client_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    await _get_base_or_404(session, client_id)
    rows = (await session.execute(appointments_query().where(Appointment.client_base_id == client_id))).all()
    return [appointment_out(r) for r in rows]


@router.post("/{client_id}/appointments", response_model=AppointmentOut, status_code=201)
async def add_client_appointment(
    client_id: int,
    body: ClientAppointmentIn,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    title = (body.title or "").strip()
    if not title or not body.date or not body.time:
        raise HTTPException(status_code=400, detail="Titre, date et heure requis")

    base = await _get_base_or_404(session, client_id)

    appt = Appointment(
        client_base_id=base.id,
        user_id=current_user.id,
        title=title,
        date=parse_date(body.date),
        time=parse_time(body.time),
        location=body.location,
        notes=body.notes,
    )
    session.add(appt)
    await session.commit()

    row = (await session.execute(appointments_query().where(Appointment.id == appt.id))).one()
    return appointment_out(row)


@router.delete("/{client_id}/appointments/{appointment_id}")
async def delete_client_appointment(
    client_id: int,
    appointment_id: int,
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    appt = await session.get(Appointment, appointment_id)
    if not appt or appt.client_base_id != client_id:
        raise HTTPException(status_code=404, detail="Rendez-vous introuvable")
    if appt.user_id != current_user.id and not current_user.is_admin:
        raise HTTPException(status_code=403, detail="Non autorisé")

    await session.delete(appt)
    await session.commit()
    return {"message": "Rendez-vous supprimé"}
