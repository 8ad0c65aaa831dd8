# app/routers/statuts.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.roles import get_current_user, require_admin
from app.db.models import Statut, User
from app.db.session import get_async_session
from app.schemas.statut import StatutCreate, StatutUpdate, StatutOut, StatutReorderIn

router = APIRouter(prefix="/statuts", tags=["statuts"])


async def _get_or_404(session: AsyncSession, statut_id: int) -> Statut:
    statut = await session.get(Statut, statut_id)
    if not statut:
        raise HTTPException(status_code=404, detail="Statut non trouvé")
    return statut


async def _all_ordered(session: AsyncSession) -> List[Statut]:
    return list((await session.execute(select(Statut).order_by(Statut.ordre.asc(), Statut.id.asc()))).scalars())


@router.get("", response_model=List[StatutOut])
async def list_statuts(
    session: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user),
):
    """Les non-admins ne voient que les statuts actifs."""
    q = select(Statut).order_by(Statut.ordre.asc(), Statut.id.asc())
    if not current_user.is_admin:
        q = q.where(Statut.active.is_(True))
    return (await session.execute(q)).scalars().all()


@router.post("", response_model=StatutOut, status_code=201)
async def create_statut(
    body: StatutCreate,
    session: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin),
):
    key = (body.key or "").strip()
    if not key or not body.label or not body.color:
        raise HTTPException(status_code=400, detail="key, label et color requis")

    if (await session.execute(select(Statut.id).where(Statut.key == key))).first():
        raise HTTPException(status_code=400, detail="Un statut avec cette clé existe déjà")

    ordre = body.ordre
    if not ordre:
        ordre = ((await session.execute(select(func.max(Statut.ordre)))).scalar() or 0) + 1

    statut = Statut(key=key, label=body.label, color=body.color, ordre=ordre, active=True)
    session.add(statut)
    await session.commit()
    await session.refresh(statut)
    return statut


# /reorder avant /{statut_id}
@router.post("/reorder")
async def reorder_statuts(
    body: StatutReorderIn,
    session: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin),
):
    if not body.statutIds:
        raise HTTPException(status_code=400, detail="statutIds requis (array)")

    for index, statut_id in enumerate(body.statutIds):
        statut = await session.get(Statut, statut_id)
        if statut is not None:
            statut.ordre = index + 1
    await session.commit()

    statuts = await _all_ordered(session)
    return {
        "message": "Statuts réordonnés avec succès",
        "statuts": [StatutOut.model_validate(s) for s in statuts],
    }


@router.patch("/{statut_id}", response_model=StatutOut)
async def update_statut(
    statut_id: int,
    body: StatutUpdate,
    session: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin),
):
    statut = await _get_or_404(session, statut_id)

    data = body.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=400, detail="Aucune donnée à mettre à jour")

    for field, value in data.items():
        setattr(statut, field, value)
    await session.commit()
    await session.refresh(statut)
    return statut


@router.patch("/{statut_id}/toggle")
async def toggle_statut(
    statut_id: int,
    session: AsyncSession = Depends(get_async_session),
    admin: User = Depends(require_admin),
):
    statut = await _get_or_404(session, statut_id)
    statut.active = not statut.active
    await session.commit()
    await session.refresh(statut)

    return {
        "message": "Statut activé" if statut.active else "Statut désactivé",
        "statut": StatutOut.model_validate(statut),
    }
